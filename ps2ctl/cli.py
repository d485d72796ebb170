"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer

from ps2ctl.core.catalog_loader import load_catalog
from ps2ctl.core.engine import DEFAULT_POLL_INTERVAL_S
from ps2ctl.core.errors import Ps2ctlError, UnknownCommandError
from ps2ctl.core.formatting import format_bytes, format_packet, format_pattern, format_send_spec
from ps2ctl.core.model import Catalog, DecodedPacket
from ps2ctl.core.session import Ps2Session
from ps2ctl.shell import Shell, format_arg_labels, help_lines, parse_hex_args, stdin_lines
from ps2ctl.transports.device_file import DeviceFileTransport

T = TypeVar("T")

app = typer.Typer(help="PS/2 touchpad configuration and debugging tool")

POLL_OPTION = typer.Option(
    DEFAULT_POLL_INTERVAL_S, "--poll-interval", help="Seconds between checks while waiting on the device"
)
TIMEOUT_OPTION = typer.Option(
    None, "--reply-timeout", help="Abort a command after this many silent seconds (default: wait forever)"
)


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Log every byte sent and received")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        force=True,
    )


def _load_catalog() -> Catalog:
    loaded = load_catalog()
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return loaded.catalog


def _build_session(
    transport: DeviceFileTransport,
    *,
    poll_interval: float,
    reply_timeout: float | None,
    on_packet: Callable[[DecodedPacket], None] | None = None,
) -> Ps2Session:
    return Ps2Session(
        transport=transport,
        catalog=_load_catalog(),
        poll_interval_s=poll_interval,
        reply_timeout_s=reply_timeout,
        on_packet=on_packet,
    )


async def _drive(
    transport: DeviceFileTransport,
    session: Ps2Session,
    body: Callable[[], Awaitable[T]],
) -> T:
    """Run `body` with the device open; a device read failure ends it early."""
    transport.open(session.feed)
    try:
        main_task = asyncio.ensure_future(body())
        assert transport.failure is not None
        done, _ = await asyncio.wait(
            {main_task, transport.failure},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if main_task in done:
            return main_task.result()
        main_task.cancel()
        try:
            await main_task
        except asyncio.CancelledError:
            pass
        exc = transport.failure.exception()
        assert exc is not None
        raise exc
    finally:
        transport.close()


@app.command("list")
def list_commands() -> None:
    """List available commands with their argument labels."""
    try:
        catalog = _load_catalog()
        definitions = sorted(catalog.commands.values(), key=lambda c: c.name)
        if not definitions:
            typer.echo("No commands loaded")
            raise typer.Exit(code=1)
        for text in help_lines(definitions):
            typer.echo(text)
    except Ps2ctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("describe")
def describe(names: list[str] = typer.Argument(..., help="Command names")) -> None:
    """Show what a command sends and the response it expects."""
    try:
        catalog = _load_catalog()
        for name in names:
            definition = catalog.get(name)
            if definition is None:
                raise UnknownCommandError(name)
            typer.echo(f"{definition.name} - {definition.description}")
            typer.echo(f"  send: {format_send_spec(definition.send) or '-'}")
            typer.echo(f"  expect: {format_pattern(definition.expect) or '-'}")
            labels = format_arg_labels(definition)
            if labels:
                typer.echo(f"  args: {labels}")
    except Ps2ctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("gestures")
def list_gestures() -> None:
    """List known gesture codes."""
    try:
        catalog = _load_catalog()
        for code, name in sorted(catalog.gestures.items()):
            typer.echo(f"{code:02x}: {name}")
    except Ps2ctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("run")
def run_command(
    device: str = typer.Argument(..., help="Raw device file, e.g. /dev/serio_raw0"),
    command: str = typer.Argument(..., help="Command name"),
    args: list[str] | None = typer.Argument(None, help="Argument bytes in hex"),
    poll_interval: float = POLL_OPTION,
    reply_timeout: float | None = TIMEOUT_OPTION,
) -> None:
    """Execute one command and report every finished step."""
    try:
        transport = DeviceFileTransport(device)
        session = _build_session(transport, poll_interval=poll_interval, reply_timeout=reply_timeout)
        root = session.resolver.resolve(command, parse_hex_args(args or []))
        result = asyncio.run(_drive(transport, session, lambda: session.execute(root)))
        for report in result.reports:
            typer.echo(f"{report.name}: {format_bytes(report.received) or '-'}")
    except Ps2ctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("monitor")
def monitor(
    device: str = typer.Argument(..., help="Raw device file, e.g. /dev/serio_raw0"),
    start: bool = typer.Option(False, "--start", help="Send start_reporting before listening"),
    poll_interval: float = POLL_OPTION,
    reply_timeout: float | None = TIMEOUT_OPTION,
) -> None:
    """Print decoded movement and gesture packets until interrupted."""

    def _print(packet: DecodedPacket) -> None:
        typer.echo(format_packet(packet))

    async def _listen(session: Ps2Session) -> None:
        if start:
            await session.invoke("start_reporting")
        await asyncio.Event().wait()

    try:
        transport = DeviceFileTransport(device)
        session = _build_session(
            transport,
            poll_interval=poll_interval,
            reply_timeout=reply_timeout,
            on_packet=_print,
        )
        asyncio.run(_drive(transport, session, lambda: _listen(session)))
    except KeyboardInterrupt:
        return
    except Ps2ctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("shell")
def shell(
    device: str = typer.Argument(..., help="Raw device file, e.g. /dev/serio_raw0"),
    poll_interval: float = POLL_OPTION,
    reply_timeout: float | None = TIMEOUT_OPTION,
) -> None:
    """Interactive session: type command names with hex arguments, or 'help'."""
    try:
        transport = DeviceFileTransport(device)
        session = _build_session(transport, poll_interval=poll_interval, reply_timeout=reply_timeout)
        asyncio.run(_drive(transport, session, lambda: Shell(session).run(stdin_lines())))
    except KeyboardInterrupt:
        return
    except Ps2ctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
