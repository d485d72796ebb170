from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest


class ScriptedDevice:
    """Fake transport that answers each write with the next scripted reply.

    An empty reply means the device stays silent for that write.
    """

    def __init__(self) -> None:
        self.writes: list[bytes] = []
        self.replies: list[bytes] = []
        self.failure: asyncio.Future[None] | None = None
        self.closed = False
        self._on_data: Callable[[bytes], None] | None = None

    def script(self, *replies: bytes) -> ScriptedDevice:
        self.replies.extend(replies)
        return self

    def attach(self, on_data: Callable[[bytes], None]) -> None:
        self._on_data = on_data

    def open(self, on_data: Callable[[bytes], None]) -> None:
        self.attach(on_data)
        self.failure = asyncio.get_running_loop().create_future()

    def close(self) -> None:
        self.closed = True

    def write(self, payload: bytes) -> None:
        self.writes.append(bytes(payload))
        if not self.replies:
            return
        reply = self.replies.pop(0)
        if reply and self._on_data is not None:
            asyncio.get_running_loop().call_soon(self._on_data, reply)

    @property
    def sent(self) -> bytes:
        return b"".join(self.writes)


@pytest.fixture
def device() -> ScriptedDevice:
    return ScriptedDevice()


@pytest.fixture(autouse=True)
def isolated_catalog_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
