"""Catalog loading and validation for YAML-based ps2ctl command catalogs."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from ps2ctl.core.errors import CatalogLoadError, CatalogValidationError, CyclicDefinitionError
from ps2ctl.core.model import (
    WILDCARD,
    Catalog,
    CommandDefinition,
    CommandRef,
    ExpectElement,
    SendElement,
)

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


UniqueKeyLoader.yaml_implicit_resolvers = {
    key: list(value) for key, value in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

for first_char, mappings in list(UniqueKeyLoader.yaml_implicit_resolvers.items()):
    UniqueKeyLoader.yaml_implicit_resolvers[first_char] = [
        (tag, regexp)
        for tag, regexp in mappings
        if tag != "tag:yaml.org,2002:bool"
    ]


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[Any, Any]:
    mapping: dict[Any, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise CatalogValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedCatalog:
    catalog: Catalog
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("ps2ctl.schemas").joinpath("catalog.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _catalog_dirs() -> tuple[Path, Path]:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    xdg_data = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local/share"))
    return xdg_config / "ps2ctl/catalogs", xdg_data / "ps2ctl/catalogs"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogLoadError(f"Could not read catalog file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise CatalogValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise CatalogValidationError(f"Catalog file {path} must contain a mapping at root")
    return loaded


def _parse_send(items: list[Any]) -> tuple[SendElement, ...]:
    parsed: list[SendElement] = []
    for item in items:
        if isinstance(item, int):
            parsed.append(item)
        elif isinstance(item, str):
            parsed.append(CommandRef(name=item))
        else:
            parsed.append(CommandRef(name=item[0], args=tuple(item[1:])))
    return tuple(parsed)


def _parse_expect(items: list[Any]) -> tuple[ExpectElement, ...]:
    return tuple(WILDCARD if item == "*" else item for item in items)


def _parse_arg_labels(labels: dict[Any, str], *, context: str) -> dict[int, str]:
    parsed: dict[int, str] = {}
    for key, label in labels.items():
        if not isinstance(key, str):
            raise CatalogValidationError(
                f"{context} argument label key {key!r} must be a quoted hex string, e.g. \"0a\""
            )
        value = int(key, 16)
        if value in parsed:
            raise CatalogValidationError(f"{context} declares argument {value:02x} twice")
        parsed[value] = label
    return parsed


def _validate_document(doc: dict[str, Any], source: Path | Traversable) -> None:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.absolute_path)
        where = f" ({path})" if path else ""
        raise CatalogValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc


def _build_commands(doc: dict[str, Any], source: Path | Traversable) -> dict[str, CommandDefinition]:
    _validate_document(doc, source)
    commands: dict[str, CommandDefinition] = {}
    for name, spec in doc.get("commands", {}).items():
        commands[name] = CommandDefinition(
            name=name,
            description=spec["description"],
            send=_parse_send(spec["send"]),
            expect=_parse_expect(spec["expect"]),
            args=_parse_arg_labels(spec.get("args", {}), context=f"{source}:{name}"),
        )
    return commands


def _build_gestures(doc: dict[str, Any]) -> dict[int, str]:
    return {entry["code"]: entry["name"] for entry in doc.get("gestures", [])}


def check_references(commands: dict[str, CommandDefinition]) -> None:
    """Reject dangling command references and reference cycles."""
    for definition in commands.values():
        for item in definition.send:
            if isinstance(item, CommandRef) and item.name not in commands:
                raise CatalogValidationError(
                    f"Command '{definition.name}' references unknown command '{item.name}'"
                )

    done: set[str] = set()

    def _visit(name: str, chain: tuple[str, ...]) -> None:
        if name in chain:
            raise CyclicDefinitionError(chain[chain.index(name):] + (name,))
        if name in done:
            return
        for item in commands[name].send:
            if isinstance(item, CommandRef):
                _visit(item.name, chain + (name,))
        done.add(name)

    for name in sorted(commands):
        _visit(name, ())


def _iter_packaged_catalog_paths() -> list[Traversable]:
    catalog_root = resources.files("ps2ctl.catalogs")
    return [item for item in catalog_root.iterdir() if item.name.endswith((".yml", ".yaml"))]


def _iter_user_catalog_paths() -> list[Path]:
    paths: list[Path] = []
    for directory in _catalog_dirs():
        if not directory.exists() or not directory.is_dir():
            continue
        paths.extend(sorted(p for p in directory.iterdir() if p.suffix in {".yml", ".yaml"}))
    return paths


def load_catalog() -> LoadedCatalog:
    commands: dict[str, CommandDefinition] = {}
    gestures: dict[int, str] = {}
    warnings: list[str] = []

    for path in sorted(_iter_packaged_catalog_paths(), key=lambda p: p.name):
        doc = _read_yaml(path)
        for name, definition in _build_commands(doc, path).items():
            if name in commands:
                raise CatalogValidationError(f"Packaged catalog {path} redefines command '{name}'")
            commands[name] = definition
        gestures.update(_build_gestures(doc))

    for path in _iter_user_catalog_paths():
        doc = _read_yaml(path)
        for name, definition in _build_commands(doc, path).items():
            if name in commands:
                warning = f"User command '{name}' from {path} overrides packaged command"
                LOGGER.warning(warning)
                warnings.append(warning)
            commands[name] = definition
        for code, gesture in _build_gestures(doc).items():
            if code in gestures:
                warning = f"User gesture {code:02x} from {path} overrides '{gestures[code]}'"
                LOGGER.warning(warning)
                warnings.append(warning)
            gestures[code] = gesture

    check_references(commands)
    return LoadedCatalog(catalog=Catalog(commands=commands, gestures=gestures), warnings=tuple(warnings))
