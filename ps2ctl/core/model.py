"""Core data models used across loader, resolver, engine and CLI."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field
from typing import Union


class Wildcard(enum.Enum):
    """Expected-response element that matches any single byte."""

    ANY = "*"

    def __repr__(self) -> str:
        return "*"


WILDCARD = Wildcard.ANY

ExpectElement = Union[int, Wildcard]


@dataclass(frozen=True)
class CommandRef:
    name: str
    args: tuple[int, ...] = ()


SendElement = Union[int, CommandRef]


@dataclass(frozen=True)
class CommandDefinition:
    name: str
    description: str
    send: tuple[SendElement, ...]
    expect: tuple[ExpectElement, ...]
    args: dict[int, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Catalog:
    commands: dict[str, CommandDefinition]
    gestures: dict[int, str]

    def get(self, name: str) -> CommandDefinition | None:
        return self.commands.get(name)


@dataclass
class ResolvedCommand:
    """Runtime instance of a command definition.

    `to_send` holds literal bytes and nested `ResolvedCommand` nodes in send
    order. `expect` is consumed from the front as response bytes match and
    every matched byte is appended to `received`.
    """

    name: str
    to_send: deque[int | ResolvedCommand] = field(default_factory=deque)
    expect: deque[ExpectElement] = field(default_factory=deque)
    received: list[int] = field(default_factory=list)

    def flatten(self) -> list[int]:
        """Literal bytes still queued in this subtree, in send order."""
        flat: list[int] = []
        for item in self.to_send:
            if isinstance(item, ResolvedCommand):
                flat.extend(item.flatten())
            else:
                flat.append(item)
        return flat


@dataclass
class ExecutionStack:
    root: ResolvedCommand | None = None
    current: ResolvedCommand | None = None
    parents: list[ResolvedCommand] = field(default_factory=list)

    def descend(self, child: ResolvedCommand) -> None:
        if self.current is not None:
            self.parents.append(self.current)
        self.current = child

    def pop(self) -> ResolvedCommand | None:
        self.current = self.parents.pop() if self.parents else None
        return self.current

    def clear(self) -> None:
        self.root = None
        self.current = None
        self.parents.clear()


@dataclass(frozen=True)
class NodeReport:
    name: str
    received: bytes


@dataclass(frozen=True)
class ExecutionResult:
    command: str
    reports: tuple[NodeReport, ...]

    @property
    def received(self) -> bytes:
        """Bytes matched by the root command itself."""
        for report in reversed(self.reports):
            if report.name == self.command:
                return report.received
        return b""


@dataclass(frozen=True)
class Buttons:
    left: bool
    right: bool
    middle: bool
    fourth: bool = False
    fifth: bool = False


@dataclass(frozen=True)
class Movement:
    x: int
    y: int
    x_overflow: bool
    y_overflow: bool
    z: int = 0


@dataclass(frozen=True)
class Gesture:
    code: int
    name: str
    x_position: int
    y_position: int


@dataclass(frozen=True)
class DecodedPacket:
    raw: bytes
    buttons: Buttons
    movement: Movement | None = None
    gesture: Gesture | None = None
    received_at: float | None = None
