"""Line-oriented interactive shell on top of a `Ps2Session`."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from collections.abc import AsyncIterator, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import typer

from ps2ctl.core.errors import CommandArgumentError, Ps2ctlError, TransportError
from ps2ctl.core.formatting import dump_lines, format_bytes
from ps2ctl.core.model import CommandDefinition
from ps2ctl.core.session import Ps2Session

_HEX_BYTE_RE = re.compile(r"^[0-9a-fA-F]{2}$")

BUILTINS = {
    "help": "This help",
    "abort": "abort the running command",
    "flush": "clear input buffer",
    "debug": "toggle debug logging",
    "show_data": "show current input buffer",
    "quit": "leave the shell",
}


@dataclass(frozen=True)
class ShellLine:
    action: str
    command: str | None = None
    args: tuple[int, ...] = ()
    topics: tuple[str, ...] = ()


def parse_hex_args(words: Sequence[str]) -> tuple[int, ...]:
    values: list[int] = []
    for word in words:
        try:
            values.append(int(word, 16))
        except ValueError:
            raise CommandArgumentError(f"Cant parse {word}") from None
    return tuple(values)


def parse_line(line: str) -> ShellLine:
    words = line.split()
    if not words:
        return ShellLine(action="empty")

    command, rest = words[0], words[1:]
    keyword = command.lower()
    if keyword == "help":
        return ShellLine(action="help", topics=tuple(rest))
    if keyword in ("quit", "exit"):
        return ShellLine(action="quit")
    if keyword in BUILTINS:
        return ShellLine(action=keyword)

    if _HEX_BYTE_RE.match(command):
        return ShellLine(action="invoke", command="raw", args=parse_hex_args(words))
    return ShellLine(action="invoke", command=command, args=parse_hex_args(rest))


def format_arg_labels(definition: CommandDefinition) -> str | None:
    if not definition.args:
        return None
    labels = " ".join(f"{value:x}={label}" for value, label in sorted(definition.args.items()))
    return f"({labels})"


def help_lines(definitions: Iterable[CommandDefinition]) -> list[str]:
    lines: list[str] = []
    for definition in definitions:
        lines.append(f"    {definition.name} - {definition.description}")
        labels = format_arg_labels(definition)
        if labels:
            lines.append(f"        {labels}")
    return lines


class Shell:
    def __init__(self, session: Ps2Session) -> None:
        self.session = session
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, lines: AsyncIterator[str]) -> None:
        """Feed `lines` to `handle` until quit or end of input.

        A transport failure in a running command ends the loop at once and
        propagates, even while the shell is waiting for the next line.
        """
        typer.echo(">", nl=False)
        reader = aiter(lines)
        while True:
            next_line = asyncio.ensure_future(anext(reader, None))
            try:
                while not next_line.done():
                    waiting: set[asyncio.Future[Any]] = {next_line}
                    if self.running:
                        waiting.add(self._task)
                    await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                    self._raise_if_failed()
            finally:
                if not next_line.done():
                    next_line.cancel()
            line = next_line.result()
            if line is None or not self.handle(line):
                break
            typer.echo(">", nl=False)
        if self.running:
            self.session.abort()
            await self.wait()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    def _raise_if_failed(self) -> None:
        task = self._task
        if task is not None and task.done() and not task.cancelled():
            self._task = None
            error = task.exception()
            if error is not None:
                raise error

    def handle(self, line: str) -> bool:
        """Act on one input line; returns False when the shell should exit."""
        try:
            parsed = parse_line(line)
        except CommandArgumentError as exc:
            typer.echo(str(exc), err=True)
            return True

        if parsed.action == "quit":
            return False
        if parsed.action == "help":
            self._help(parsed.topics)
        elif parsed.action == "abort":
            self.session.abort()
        elif parsed.action == "flush":
            self.session.flush()
        elif parsed.action == "debug":
            _toggle_debug()
        elif parsed.action == "show_data":
            pending = self.session.pending_bytes()
            typer.echo(f"in_data: {format_bytes(pending)}")
            for text in dump_lines(pending, prefix="  "):
                typer.echo(text)
        elif parsed.action == "invoke":
            self._start(parsed.command or "", parsed.args)
        return True

    def _start(self, name: str, args: tuple[int, ...]) -> None:
        if self.running:
            typer.echo(f"Error: Can't process '{name}': a command is still running", err=True)
            return
        self._task = asyncio.get_running_loop().create_task(self._invoke(name, args))

    async def _invoke(self, name: str, args: tuple[int, ...]) -> None:
        try:
            await self.session.invoke(name, args)
        except TransportError:
            raise
        except Ps2ctlError as exc:
            typer.echo(f"Error: Can't process '{name}': {exc}", err=True)

    def _help(self, topics: Sequence[str]) -> None:
        if topics:
            typer.echo("Usage: ")
            definitions = []
            for topic in topics:
                definition = self.session.describe_command(topic)
                if definition is None:
                    typer.echo(f"    {topic} - unknown command")
                else:
                    definitions.append(definition)
        else:
            typer.echo("Command Help:\n")
            for name, text in BUILTINS.items():
                typer.echo(f"    {name} - {text}")
            definitions = self.session.list_commands()
        for text in help_lines(definitions):
            typer.echo(text)
        typer.echo("")


def _toggle_debug() -> None:
    root = logging.getLogger()
    enabled = root.level != logging.DEBUG
    root.setLevel(logging.DEBUG if enabled else logging.INFO)
    typer.echo(f"Debug set to {str(enabled).lower()}")


async def stdin_lines() -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    while True:
        line = await reader.readline()
        if not line:
            return
        yield line.decode(errors="replace")
