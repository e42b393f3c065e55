"""Command mapping loading, validation and lookup."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Mapping
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from visubridge.core.errors import MappingLoadError, MappingValidationError
from visubridge.core.model import CoverCommands, device_key

READONLY = "READONLY"
CATEGORIES = ("lights", "blinds", "dimmers", "ventilation", "scenes", "switches", "sensors")
COVER_ACTIONS = ("up", "stop", "down")

_CONTROL_RE = re.compile(r"^[^+&\s]+\+0[123]\+00\+[^+&\s]+$")
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


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise MappingValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("visubridge.schemas").joinpath("mappings.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise MappingLoadError(f"Could not read mapping file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise MappingValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise MappingValidationError(f"Mapping file {path} must contain a mapping at root")
    return loaded


def _normalize_control(value: str, *, context: str) -> str:
    normalized = value.strip()
    if normalized == READONLY:
        return normalized
    if not _CONTROL_RE.match(normalized):
        raise MappingValidationError(
            f"{context} must be '{READONLY}' or a control string 'index+01|02|03+00+page', got '{value}'"
        )
    return normalized


class CommandMapper:
    """Flat, read-only lookup table from device key to control string."""

    def __init__(self, table: Mapping[str, str], categories: Mapping[str, str] | None = None) -> None:
        self._table = MappingProxyType(dict(table))
        self._categories = MappingProxyType(dict(categories or {}))

    @classmethod
    def from_document(cls, doc: Mapping[str, Any], source: str = "<document>") -> CommandMapper:
        validator = _load_schema_validator()
        try:
            validator.validate(doc)
        except ValidationError as exc:
            path = ".".join(str(p) for p in exc.path)
            where = f" ({path})" if path else ""
            raise MappingValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

        table: dict[str, str] = {}
        categories: dict[str, str] = {}
        for category in CATEGORIES:
            for key, value in (doc.get(category) or {}).items():
                if key in table:
                    raise MappingValidationError(
                        f"Duplicate key '{key}' in categories '{categories[key]}' and '{category}' of {source}"
                    )
                table[key] = _normalize_control(value, context=f"{source}: {category}.{key}")
                categories[key] = category

        LOGGER.info("Loaded %d command mappings from %s", len(table), source)
        return cls(table, categories)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, key: object) -> bool:
        return key in self._table

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    @property
    def categories(self) -> Mapping[str, str]:
        return self._categories

    def keys(self) -> list[str]:
        return sorted(self._table)

    def raw(self, key: str) -> str | None:
        return self._table.get(key)

    def get_command(self, device_id: str, page: str) -> str | None:
        key = device_key(device_id, page)
        command = self._table.get(key)
        if command is None:
            LOGGER.debug("No command mapping found for device: %s", key)
            return None
        if command == READONLY:
            LOGGER.debug("Device %s is read-only", key)
            return None
        return command

    def get_cover_command(self, device_id: str, page: str, action: str) -> str | None:
        if action not in COVER_ACTIONS:
            raise ValueError(f"Unknown cover action '{action}'. Expected one of: {', '.join(COVER_ACTIONS)}")
        command = self._table.get(f"{device_key(device_id, page)}_{action}")
        if command is None or command == READONLY:
            return None
        return command

    def get_cover_commands(self, device_id: str, page: str) -> CoverCommands | None:
        commands = [self.get_cover_command(device_id, page, action) for action in COVER_ACTIONS]
        if any(command is None for command in commands):
            return None
        up, stop, down = commands
        return CoverCommands(up=up, stop=stop, down=down)

    def is_read_only(self, device_id: str, page: str) -> bool:
        return self._table.get(device_key(device_id, page)) == READONLY


def load_mappings(path: str | Path) -> CommandMapper:
    path = Path(path)
    doc = _read_yaml(path)
    return CommandMapper.from_document(doc, source=str(path))
