"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

DataCallback = Callable[[bytes], None]


class Transport(Protocol):
    def write(self, payload: bytes) -> None:
        """Write payload to the device, raising `TransportError` on failure."""
