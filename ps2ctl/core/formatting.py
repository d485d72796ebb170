"""Fixed-width byte renderings used in diagnostics."""

from __future__ import annotations

from collections.abc import Iterable

from ps2ctl.core.model import Buttons, CommandRef, DecodedPacket, ExpectElement, SendElement, Wildcard


def hex_byte(value: int) -> str:
    return f"{value:02x}"


def bin_byte(value: int) -> str:
    return f"{value:08b}"


def format_bytes(values: Iterable[int]) -> str:
    return " ".join(hex_byte(v) for v in values)


def format_pattern(values: Iterable[ExpectElement]) -> str:
    return " ".join("*" if isinstance(v, Wildcard) else hex_byte(v) for v in values)


def dump_lines(values: Iterable[int], prefix: str = "") -> list[str]:
    """One `index: hex binary` line per byte, for buffer dumps."""
    return [f"{prefix}{index}: {hex_byte(v)} {bin_byte(v)}" for index, v in enumerate(values)]


def format_send_spec(values: Iterable[SendElement]) -> str:
    parts: list[str] = []
    for item in values:
        if isinstance(item, CommandRef):
            parts.append(" ".join([item.name, *(hex_byte(a) for a in item.args)]))
        else:
            parts.append(hex_byte(item))
    return ", ".join(parts)


def format_buttons(buttons: Buttons) -> str:
    pressed = [
        name
        for name, down in (
            ("left", buttons.left),
            ("right", buttons.right),
            ("middle", buttons.middle),
            ("fourth", buttons.fourth),
            ("fifth", buttons.fifth),
        )
        if down
    ]
    return ",".join(pressed) or "-"


def format_packet(packet: DecodedPacket) -> str:
    prefix = f"[{format_bytes(packet.raw)}] buttons={format_buttons(packet.buttons)}"
    if packet.received_at is not None:
        prefix = f"{packet.received_at:.3f} {prefix}"
    if packet.gesture is not None:
        gesture = packet.gesture
        return (
            f"{prefix} gesture={gesture.name} ({hex_byte(gesture.code)}) "
            f"x_position={gesture.x_position} y_position={gesture.y_position}"
        )
    movement = packet.movement
    assert movement is not None
    text = f"{prefix} x={movement.x} y={movement.y} z={movement.z}"
    if movement.x_overflow:
        text += " x_overflow"
    if movement.y_overflow:
        text += " y_overflow"
    return text
