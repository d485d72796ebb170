"""Expansion of catalog definitions into executable command trees."""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence

from ps2ctl.core.errors import CommandArgumentError, CyclicDefinitionError, UnknownCommandError
from ps2ctl.core.model import Catalog, CommandRef, ResolvedCommand


class CommandResolver:
    def __init__(self, catalog: Catalog) -> None:
        self.catalog = catalog

    def resolve(self, name: str, args: Sequence[int] = ()) -> ResolvedCommand:
        """Build the command tree for `name`.

        Nested references stay nested: each one becomes a single child node in
        its parent's `to_send` queue. `args` are appended after the command's
        own bytes, on this node only.
        """
        for value in args:
            if not 0 <= value <= 0xFF:
                raise CommandArgumentError(f"Argument {value} for '{name}' is not a byte (0-255)")
        return self._resolve(name, tuple(args), ())

    def _resolve(self, name: str, args: tuple[int, ...], chain: tuple[str, ...]) -> ResolvedCommand:
        if name in chain:
            raise CyclicDefinitionError(chain[chain.index(name):] + (name,))
        definition = self.catalog.get(name)
        if definition is None:
            raise UnknownCommandError(name)

        node = ResolvedCommand(name=name, expect=deque(definition.expect))
        for item in definition.send:
            if isinstance(item, CommandRef):
                node.to_send.append(self._resolve(item.name, item.args, chain + (name,)))
            else:
                node.to_send.append(item)
        node.to_send.extend(args)
        return node
