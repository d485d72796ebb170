"""Session layer used by CLI, shell and future UI frontends."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from ps2ctl.core.buffer import InboundBuffer
from ps2ctl.core.catalog_loader import load_catalog
from ps2ctl.core.decoder import PacketDecoder
from ps2ctl.core.engine import DEFAULT_POLL_INTERVAL_S, ExecutionEngine
from ps2ctl.core.errors import FramingDesyncError
from ps2ctl.core.formatting import format_bytes
from ps2ctl.core.model import (
    Catalog,
    CommandDefinition,
    DecodedPacket,
    ExecutionResult,
    ResolvedCommand,
)
from ps2ctl.core.resolver import CommandResolver
from ps2ctl.transports.base import Transport

LOGGER = logging.getLogger(__name__)

PacketSink = Callable[[DecodedPacket], None]


class Ps2Session:
    def __init__(
        self,
        *,
        transport: Transport,
        catalog: Catalog | None = None,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        reply_timeout_s: float | None = None,
        on_packet: PacketSink | None = None,
    ) -> None:
        if catalog is None:
            loaded = load_catalog()
            catalog = loaded.catalog
            self.load_warnings = loaded.warnings
        else:
            self.load_warnings = ()
        self.catalog = catalog
        self.resolver = CommandResolver(catalog)
        self.buffer = InboundBuffer()
        self.engine = ExecutionEngine(
            transport,
            self.buffer,
            poll_interval_s=poll_interval_s,
            reply_timeout_s=reply_timeout_s,
        )
        self.decoder = PacketDecoder(self.buffer, catalog.gestures)
        self.on_packet = on_packet

    @property
    def gestures(self) -> dict[int, str]:
        return self.catalog.gestures

    @property
    def busy(self) -> bool:
        return self.engine.active

    def list_commands(self) -> list[CommandDefinition]:
        return sorted(self.catalog.commands.values(), key=lambda c: c.name)

    def describe_command(self, name: str) -> CommandDefinition | None:
        return self.catalog.get(name)

    async def invoke(self, name: str, args: Sequence[int] = ()) -> ExecutionResult:
        """Resolve and run a command; raises before any I/O if it cannot resolve."""
        return await self.execute(self.resolver.resolve(name, args))

    async def execute(self, root: ResolvedCommand) -> ExecutionResult:
        try:
            return await self.engine.execute(root)
        finally:
            if not self.engine.active:
                self.drain_packets()

    def feed(self, chunk: bytes) -> list[DecodedPacket]:
        """Accept bytes from the transport and route them to matcher or decoder."""
        self.buffer.extend(chunk)
        self.engine.notify_received()
        if self.engine.active:
            return []
        return self.drain_packets()

    def drain_packets(self) -> list[DecodedPacket]:
        packets: list[DecodedPacket] = []
        while True:
            try:
                packet = self.decoder.decode_next()
            except FramingDesyncError as exc:
                LOGGER.warning("%s", exc)
                LOGGER.warning("Flushing input queue")
                continue
            if packet is None:
                return packets
            packets.append(packet)
            if self.on_packet is not None:
                self.on_packet(packet)
            else:
                LOGGER.info("%s", packet)

    def abort(self) -> bool:
        if self.engine.abort():
            return True
        self.flush()
        return False

    def flush(self) -> bytes:
        discarded = self.buffer.flush()
        LOGGER.info("Flushing input queue")
        if discarded:
            LOGGER.debug("discarded: %s", format_bytes(discarded))
        return discarded

    def pending_bytes(self) -> bytes:
        return self.buffer.snapshot()
