"""Turn-taking execution of resolved command trees.

The engine walks a `ResolvedCommand` tree one tick at a time. A literal byte is
only written once the device has replied to the previous one; nested commands
are entered without waiting. Response bytes are matched against the active
node as they arrive, and any mismatch aborts the whole tree.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from collections.abc import Callable

from ps2ctl.core.buffer import InboundBuffer
from ps2ctl.core.errors import (
    CommandAbortedError,
    CommandTimeoutError,
    EngineBusyError,
    ExecutionError,
    ResponseMismatchError,
    TransportError,
)
from ps2ctl.core.formatting import format_bytes, format_pattern
from ps2ctl.core.model import (
    WILDCARD,
    ExecutionResult,
    ExecutionStack,
    NodeReport,
    ResolvedCommand,
)
from ps2ctl.transports.base import Transport

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 0.25


class Tick(enum.Enum):
    IDLE = "idle"
    SENT = "sent"
    DESCENDED = "descended"
    WAITING = "waiting"
    FINISHED = "finished"


class ExecutionEngine:
    def __init__(
        self,
        transport: Transport,
        buffer: InboundBuffer,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        reply_timeout_s: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.transport = transport
        self.buffer = buffer
        self.poll_interval_s = poll_interval_s
        self.reply_timeout_s = reply_timeout_s
        self.stack = ExecutionStack()
        self._clock = clock
        self._awaiting_reply = False
        self._last_activity = clock()
        self._reports: list[NodeReport] = []
        self._failure: ExecutionError | None = None
        self._wakeup: asyncio.Event | None = None

    @property
    def active(self) -> bool:
        return self.stack.current is not None

    @property
    def awaiting_reply(self) -> bool:
        return self._awaiting_reply

    async def execute(self, root: ResolvedCommand) -> ExecutionResult:
        """Run `root` to completion.

        Returns the per-node reports once the whole tree has finished. Raises
        an `ExecutionError` subclass if the tree was aborted, after the stack
        and the inbound buffer have been cleared.
        """
        if self.active:
            running = self.stack.root.name if self.stack.root else "?"
            raise EngineBusyError(
                f"Can't process '{root.name}': command '{running}' is still running",
                command=root.name,
            )

        self.stack = ExecutionStack(root=root, current=root)
        self._reports = []
        self._failure = None
        self._awaiting_reply = False
        self._last_activity = self._clock()
        self._wakeup = asyncio.Event()

        try:
            while self.active:
                outcome = self.step()
                if outcome is Tick.WAITING:
                    await self._wait_for_reply()
                elif outcome is Tick.SENT:
                    await asyncio.sleep(0)
        except TransportError:
            self.stack.clear()
            self.buffer.flush()
            raise
        except asyncio.CancelledError:
            self.stack.clear()
            raise
        finally:
            self._wakeup = None

        if self._failure is not None:
            raise self._failure
        return ExecutionResult(command=root.name, reports=tuple(self._reports))

    def step(self) -> Tick:
        node = self.stack.current
        if node is None:
            return Tick.IDLE

        if not node.to_send and not node.expect:
            self._finish(node)
            return Tick.FINISHED

        if not node.to_send or self._awaiting_reply:
            return Tick.WAITING

        item = node.to_send[0]
        if isinstance(item, ResolvedCommand):
            node.to_send.popleft()
            LOGGER.debug("descending into %s", item.name)
            self.stack.descend(item)
            return Tick.DESCENDED

        if not node.received:
            LOGGER.info("sending command: %s: %s", node.name, format_bytes(node.flatten()))
        LOGGER.debug("Sending Byte: %02x", item)
        self.transport.write(bytes([item]))
        node.to_send.popleft()
        self._awaiting_reply = True
        self._last_activity = self._clock()
        return Tick.SENT

    def notify_received(self) -> None:
        """Open the turn-taking gate and match buffered bytes, if a command is active."""
        self._awaiting_reply = False
        self._last_activity = self._clock()
        LOGGER.debug("in_data: %s", format_bytes(self.buffer.snapshot()))
        self._match()
        self._wake()

    def abort(self) -> bool:
        node = self.stack.current
        if node is None:
            LOGGER.info("No command to abort.")
            return False
        self._abort(CommandAbortedError(f"Command '{node.name}' aborted by operator", command=node.name))
        return True

    def _match(self) -> None:
        node = self.stack.current
        while node is not None:
            while self.buffer and node.expect:
                expected = node.expect[0]
                actual = self.buffer.peek()
                if expected is not WILDCARD and expected != actual:
                    self._abort(ResponseMismatchError(node.name, expected, actual))
                    return
                node.expect.popleft()
                node.received.append(self.buffer.popleft())

            if node.expect or node.to_send:
                return
            self._finish(node)
            if not self.buffer:
                return
            node = self.stack.current

    def _finish(self, node: ResolvedCommand) -> None:
        LOGGER.info("Command %s finished: %s", node.name, format_bytes(node.received))
        self._reports.append(NodeReport(name=node.name, received=bytes(node.received)))
        if self.stack.pop() is None:
            self.stack.clear()
        self._wake()

    def _abort(self, error: ExecutionError) -> None:
        if isinstance(error, ResponseMismatchError):
            LOGGER.error("%s", error)
        else:
            LOGGER.warning("%s", error)
        node = self.stack.current
        if node is not None:
            LOGGER.debug("remaining response pattern: %s", format_pattern(node.expect))
        LOGGER.warning("Command %s aborted!", error.command)
        LOGGER.warning("A reset may be required to restore pad to working order")
        self.stack.clear()
        self._failure = error
        self._awaiting_reply = False
        discarded = self.buffer.flush()
        LOGGER.warning("Flushing input queue%s", f": {format_bytes(discarded)}" if discarded else "")
        self._wake()

    async def _wait_for_reply(self) -> None:
        assert self._wakeup is not None
        self._wakeup.clear()
        try:
            await asyncio.wait_for(self._wakeup.wait(), self.poll_interval_s)
        except asyncio.TimeoutError:
            LOGGER.debug("waiting for reply from pad")

        node = self.stack.current
        if node is None or self.reply_timeout_s is None:
            return
        if self._clock() - self._last_activity >= self.reply_timeout_s:
            self._abort(
                CommandTimeoutError(
                    f"No reply from device within {self.reply_timeout_s:g}s while running '{node.name}'",
                    command=node.name,
                )
            )

    def _wake(self) -> None:
        if self._wakeup is not None:
            self._wakeup.set()
