"""Raw device-file transport (e.g. /dev/serio_raw0) driven by the asyncio loop."""

from __future__ import annotations

import asyncio
import logging
import os

from ps2ctl.core.errors import TransportOpenError, TransportReadError, TransportWriteError
from ps2ctl.core.formatting import format_bytes
from ps2ctl.transports.base import DataCallback

LOGGER = logging.getLogger(__name__)

_READ_SIZE = 4096


class DeviceFileTransport:
    def __init__(self, path: str) -> None:
        self.path = path
        self.failure: asyncio.Future[None] | None = None
        self._fd: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_data: DataCallback | None = None

    def open(self, on_data: DataCallback) -> None:
        """Open the device and deliver every inbound chunk to `on_data`.

        Must be called from a running event loop. Read failures are reported
        through the `failure` future.
        """
        try:
            fd = os.open(self.path, os.O_RDWR | os.O_NONBLOCK | os.O_NOCTTY)
        except OSError as exc:
            raise TransportOpenError(f"Could not open device {self.path}: {exc}") from exc

        self._fd = fd
        self._on_data = on_data
        self._loop = asyncio.get_running_loop()
        self.failure = self._loop.create_future()
        try:
            self._loop.add_reader(fd, self._read_ready)
        except (OSError, ValueError) as exc:
            self.close()
            raise TransportOpenError(f"Could not watch device {self.path}: {exc}") from exc
        LOGGER.debug("opened %s (fd %d)", self.path, fd)

    def write(self, payload: bytes) -> None:
        if self._fd is None:
            raise TransportWriteError(f"Device {self.path} is not open")
        try:
            written = os.write(self._fd, payload)
        except OSError as exc:
            raise TransportWriteError(f"Write to {self.path} failed: {exc}") from exc
        if written != len(payload):
            raise TransportWriteError(
                f"Short write to {self.path}: {written} of {len(payload)} bytes"
            )
        LOGGER.debug("TO_PAD: %s", format_bytes(payload))

    def close(self) -> None:
        if self._fd is None:
            return
        if self._loop is not None:
            self._loop.remove_reader(self._fd)
        try:
            os.close(self._fd)
        finally:
            self._fd = None

    def _read_ready(self) -> None:
        assert self._fd is not None and self._on_data is not None
        try:
            chunk = os.read(self._fd, _READ_SIZE)
        except BlockingIOError:
            return
        except OSError as exc:
            self._fail(TransportReadError(f"Read from {self.path} failed: {exc}"))
            return
        if not chunk:
            self._fail(TransportReadError(f"Device {self.path} was closed"))
            return
        self._on_data(chunk)

    def _fail(self, error: TransportReadError) -> None:
        LOGGER.error("%s", error)
        self.close()
        if self.failure is not None and not self.failure.done():
            self.failure.set_exception(error)
