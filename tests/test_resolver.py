from __future__ import annotations

import pytest

from ps2ctl.core.catalog_loader import load_catalog
from ps2ctl.core.errors import CommandArgumentError, CyclicDefinitionError, UnknownCommandError
from ps2ctl.core.model import WILDCARD, Catalog, CommandDefinition, CommandRef, ResolvedCommand
from ps2ctl.core.resolver import CommandResolver


def _definition(name: str, send: tuple, expect: tuple = ()) -> CommandDefinition:
    return CommandDefinition(name=name, description=name, send=send, expect=expect)


def _expand(catalog: Catalog, name: str, args: tuple[int, ...] = ()) -> list[int]:
    flat: list[int] = []
    for item in catalog.commands[name].send:
        if isinstance(item, CommandRef):
            flat.extend(_expand(catalog, item.name, item.args))
        else:
            flat.append(item)
    return flat + list(args)


def test_every_packaged_command_resolves_to_its_expansion() -> None:
    catalog = load_catalog().catalog
    resolver = CommandResolver(catalog)
    for name in catalog.commands:
        root = resolver.resolve(name)
        assert root.name == name
        assert root.flatten() == _expand(catalog, name)


def test_init_im_expands_in_declaration_order() -> None:
    resolver = CommandResolver(load_catalog().catalog)
    root = resolver.resolve("init_im")
    assert bytes(root.flatten()).hex() == "fff6f3c8f364f350f2"
    assert [c.name for c in root.to_send if isinstance(c, ResolvedCommand)] == [
        "init_ps2",
        "set_sample_rate",
        "set_sample_rate",
        "set_sample_rate",
        "get_device_id",
    ]


def test_unknown_command_rejected() -> None:
    resolver = CommandResolver(load_catalog().catalog)
    with pytest.raises(UnknownCommandError) as exc:
        resolver.resolve("nonexistent")
    assert exc.value.name == "nonexistent"


def test_nested_reference_precedes_outer_bytes() -> None:
    catalog = Catalog(
        commands={
            "inner": _definition("inner", (0x01, 0x02), (0xFA,)),
            "outer": _definition("outer", (CommandRef("inner"), 0x03), (0xFA,)),
        },
        gestures={},
    )
    root = CommandResolver(catalog).resolve("outer")
    assert isinstance(root.to_send[0], ResolvedCommand)
    assert root.to_send[0].name == "inner"
    assert root.to_send[1] == 0x03
    assert root.flatten() == [0x01, 0x02, 0x03]


def test_caller_args_go_to_root_only() -> None:
    catalog = Catalog(
        commands={
            "inner": _definition("inner", (0xF3,)),
            "outer": _definition("outer", (CommandRef("inner", (0x64,)),)),
        },
        gestures={},
    )
    root = CommandResolver(catalog).resolve("outer", [0x01])
    child = root.to_send[0]
    assert isinstance(child, ResolvedCommand)
    assert list(child.to_send) == [0xF3, 0x64]
    assert root.to_send[-1] == 0x01
    assert root.flatten() == [0xF3, 0x64, 0x01]


def test_expect_is_copied_per_invocation() -> None:
    resolver = CommandResolver(load_catalog().catalog)
    first = resolver.resolve("get_device_id")
    second = resolver.resolve("get_device_id")
    first.expect.popleft()
    assert list(second.expect) == [0xFA, WILDCARD]
    assert resolver.catalog.commands["get_device_id"].expect == (0xFA, WILDCARD)


def test_cycle_fails_fast() -> None:
    catalog = Catalog(
        commands={
            "a": _definition("a", (CommandRef("b"),)),
            "b": _definition("b", (CommandRef("a"),)),
        },
        gestures={},
    )
    with pytest.raises(CyclicDefinitionError) as exc:
        CommandResolver(catalog).resolve("a")
    assert exc.value.chain == ("a", "b", "a")


def test_argument_must_be_a_byte() -> None:
    resolver = CommandResolver(load_catalog().catalog)
    with pytest.raises(CommandArgumentError):
        resolver.resolve("raw", [0x100])
