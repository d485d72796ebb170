from __future__ import annotations

from pathlib import Path

import pytest

from ps2ctl.core.catalog_loader import check_references, load_catalog
from ps2ctl.core.errors import CatalogValidationError, CyclicDefinitionError
from ps2ctl.core.model import WILDCARD, CommandDefinition, CommandRef


def _write_catalog(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_load_packaged_catalog() -> None:
    loaded = load_catalog()
    commands = loaded.catalog.commands
    assert loaded.warnings == ()
    assert commands["reset"].send == (0xFF,)
    assert commands["reset"].expect == (0xFA, 0xAA, 0x00)
    assert commands["get_device_id"].expect == (0xFA, WILDCARD)
    assert commands["init_im"].send[1] == CommandRef(name="set_sample_rate", args=(0xC8,))
    assert commands["set_resolution"].args[3] == "8 counts/mm"
    assert commands["set_sample_rate"].args[0xC8] == "200/s"
    assert commands["byd_tapping"].args == {1: "on", 2: "off"}
    assert loaded.catalog.gestures[0x28] == "pinch out"
    assert loaded.catalog.gestures[0xD2] == "right-click"


def test_out_of_range_byte_rejected(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "bad.yaml",
        """
commands:
  bad_byte:
    description: Bad
    send: [0x1FF]
    expect: [0xFA]
""",
    )

    with pytest.raises(CatalogValidationError) as exc:
        load_catalog()
    assert "bad_byte" in str(exc.value)


def test_missing_required_keys_rejected(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "missing.yaml",
        """
commands:
  missing:
    description: No expect
    send: [0xF2]
""",
    )

    with pytest.raises(CatalogValidationError):
        load_catalog()


def test_user_command_overrides_packaged(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "data" / "ps2ctl" / "catalogs" / "override.yaml",
        """
commands:
  reset:
    description: Reset without the self-test result
    send: [0xFF]
    expect: [0xFA, "*", "*"]
gestures:
  - {code: 0x28, name: spread}
""",
    )

    loaded = load_catalog()
    assert loaded.catalog.commands["reset"].description == "Reset without the self-test result"
    assert loaded.catalog.commands["reset"].expect == (0xFA, WILDCARD, WILDCARD)
    assert loaded.catalog.gestures[0x28] == "spread"
    assert any("overrides packaged command" in warning for warning in loaded.warnings)
    assert any("pinch out" in warning for warning in loaded.warnings)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "dup.yaml",
        """
commands:
  dup:
    description: Duplicate
    send: [0xF2]
    expect: [0xFA]
    expect: ["*"]
""",
    )

    with pytest.raises(CatalogValidationError):
        load_catalog()


def test_unknown_reference_rejected(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "dangling.yaml",
        """
commands:
  init_custom:
    description: Refers to a command nobody defines
    send: [reset, [set_rate_typo, 0x64]]
    expect: []
""",
    )

    with pytest.raises(CatalogValidationError) as exc:
        load_catalog()
    assert "set_rate_typo" in str(exc.value)


def test_cyclic_user_catalog_rejected(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "cycle.yaml",
        """
commands:
  ping:
    description: Ping
    send: [pong]
    expect: []
  pong:
    description: Pong
    send: [0xF2, ping]
    expect: []
""",
    )

    with pytest.raises(CyclicDefinitionError) as exc:
        load_catalog()
    assert exc.value.chain in (("ping", "pong", "ping"), ("pong", "ping", "pong"))


def test_user_catalog_extends_with_new_commands(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "extra.yml",
        """
commands:
  init_quiet:
    description: Reset and stop reporting
    send: [init_ps2, stop_reporting]
    expect: []
    args: {"0a": ten}
""",
    )

    loaded = load_catalog()
    definition = loaded.catalog.commands["init_quiet"]
    assert definition.send == (CommandRef("init_ps2"), CommandRef("stop_reporting"))
    assert definition.args == {0x0A: "ten"}
    assert loaded.warnings == ()


def test_check_references_accepts_shared_children() -> None:
    commands = {
        "leaf": CommandDefinition(name="leaf", description="leaf", send=(0xF4,), expect=(0xFA,)),
        "left": CommandDefinition(name="left", description="l", send=(CommandRef("leaf"),), expect=()),
        "top": CommandDefinition(
            name="top",
            description="top",
            send=(CommandRef("left"), CommandRef("leaf")),
            expect=(),
        ),
    }
    check_references(commands)


def test_unquoted_arg_label_key_rejected(tmp_path: Path) -> None:
    _write_catalog(
        tmp_path / "cfg" / "ps2ctl" / "catalogs" / "labels.yaml",
        """
commands:
  set_rate_ten:
    description: Rate with an unquoted label key
    args: {10: ten}
    send: [0xF3]
    expect: [0xFA, 0xFA]
""",
    )
    with pytest.raises(CatalogValidationError) as exc:
        load_catalog()
    assert "set_rate_ten" in str(exc.value)
    assert "quoted hex string" in str(exc.value)
