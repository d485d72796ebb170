"""Stable public API for building tooling on top of ps2ctl.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Sequence

from ps2ctl.core.errors import (
    CatalogLoadError,
    CatalogValidationError,
    CommandAbortedError,
    CommandArgumentError,
    CommandTimeoutError,
    CyclicDefinitionError,
    EngineBusyError,
    ExecutionError,
    FramingDesyncError,
    Ps2ctlError,
    ResponseMismatchError,
    TransportError,
    TransportOpenError,
    TransportReadError,
    TransportWriteError,
    UnknownCommandError,
)
from ps2ctl.core.model import (
    WILDCARD,
    Buttons,
    Catalog,
    CommandDefinition,
    CommandRef,
    DecodedPacket,
    ExecutionResult,
    Gesture,
    Movement,
    NodeReport,
)
from ps2ctl.core.session import PacketSink, Ps2Session
from ps2ctl.transports.base import Transport
from ps2ctl.transports.device_file import DeviceFileTransport

__all__ = [
    "Ps2ctlError",
    "CatalogLoadError",
    "CatalogValidationError",
    "CyclicDefinitionError",
    "UnknownCommandError",
    "CommandArgumentError",
    "ExecutionError",
    "ResponseMismatchError",
    "CommandTimeoutError",
    "CommandAbortedError",
    "EngineBusyError",
    "FramingDesyncError",
    "TransportError",
    "TransportOpenError",
    "TransportReadError",
    "TransportWriteError",
    "WILDCARD",
    "Buttons",
    "Catalog",
    "CommandDefinition",
    "CommandRef",
    "DecodedPacket",
    "ExecutionResult",
    "Gesture",
    "Movement",
    "NodeReport",
    "DeviceFileTransport",
    "Client",
]


class Client:
    """Public client for driving a PS/2 device.

    A `Client` wraps catalog loading, command resolution, execution and
    telemetry decoding behind a stable API intended for third-party tools
    (GUI/TUI/services/scripts). Bytes read from the device must be passed to
    `feed`; `DeviceFileTransport.open(client.feed)` does that.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        catalog: Catalog | None = None,
        poll_interval_s: float = 0.25,
        reply_timeout_s: float | None = None,
        on_packet: PacketSink | None = None,
    ) -> None:
        self._session = Ps2Session(
            transport=transport,
            catalog=catalog,
            poll_interval_s=poll_interval_s,
            reply_timeout_s=reply_timeout_s,
            on_packet=on_packet,
        )

    @property
    def load_warnings(self) -> tuple[str, ...]:
        return self._session.load_warnings

    @property
    def gestures(self) -> dict[int, str]:
        return self._session.gestures

    def list_commands(self) -> list[CommandDefinition]:
        return self._session.list_commands()

    def describe_command(self, name: str) -> CommandDefinition | None:
        return self._session.describe_command(name)

    async def invoke(self, name: str, args: Sequence[int] = ()) -> ExecutionResult:
        return await self._session.invoke(name, args)

    def feed(self, chunk: bytes) -> list[DecodedPacket]:
        return self._session.feed(chunk)

    def abort(self) -> bool:
        return self._session.abort()

    def flush(self) -> bytes:
        return self._session.flush()
