"""Inbound byte buffer shared by the response matcher and packet decoder."""

from __future__ import annotations


class InboundBuffer:
    def __init__(self) -> None:
        self._data = bytearray()

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def extend(self, chunk: bytes) -> None:
        self._data.extend(chunk)

    def peek(self) -> int:
        return self._data[0]

    def popleft(self) -> int:
        value = self._data[0]
        del self._data[:1]
        return value

    def take(self, count: int) -> bytes:
        chunk = bytes(self._data[:count])
        del self._data[:count]
        return chunk

    def flush(self) -> bytes:
        """Empty the buffer and return what it held."""
        drained = bytes(self._data)
        self._data.clear()
        return drained

    def snapshot(self) -> bytes:
        return bytes(self._data)
