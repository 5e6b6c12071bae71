"""Configuration loading and validation for YAML-based device settings."""

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
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validators

from rfmatrixctl.core.errors import ConfigLoadError, ConfigValidationError
from rfmatrixctl.core.model import DeviceConfig

MIN_ALIAS_POLL_MS = 500
MIN_STATUS_POLL_MS = 200
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class LoadedConfig:
    config: DeviceConfig
    warnings: tuple[str, ...]
    sources: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("rfmatrixctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "rfmatrixctl/config.yaml"


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def _normalize_addr(value: str, *, context: str, warnings: list[str]) -> str:
    addr = value[0]
    if not addr.isascii() or addr in "{},":
        raise ConfigValidationError(f"{context} must be a single ASCII character outside '{{}},'")
    if len(value) > 1:
        warnings.append(f"{context} '{value}' truncated to '{addr}'")
    return addr


def _clamp_interval(value: int, floor: int, *, context: str, warnings: list[str]) -> int:
    if value >= floor:
        return value
    warnings.append(f"{context} {value} ms is below the {floor} ms floor; using {floor} ms")
    return floor


def _build_config(doc: dict[str, Any], source: str) -> tuple[DeviceConfig, list[str]]:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except SchemaValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    warnings: list[str] = []
    config = DeviceConfig(
        host=doc["host"].strip(),
        port=int(doc["port"]),
        dst_addr=_normalize_addr(doc["dst_addr"], context="dst_addr", warnings=warnings),
        src_addr=_normalize_addr(doc["src_addr"], context="src_addr", warnings=warnings),
        inputs=int(doc["inputs"]),
        outputs=int(doc["outputs"]),
        alias_poll_ms=_clamp_interval(
            int(doc["alias_poll_ms"]), MIN_ALIAS_POLL_MS, context="alias_poll_ms", warnings=warnings
        ),
        status_poll_ms=_clamp_interval(
            int(doc["status_poll_ms"]), MIN_STATUS_POLL_MS, context="status_poll_ms", warnings=warnings
        ),
        idle_timeout_ms=int(doc["idle_timeout_ms"]),
        overall_timeout_ms=int(doc["overall_timeout_ms"]),
        verify_reply_checksum=bool(doc["verify_reply_checksum"]),
    )
    return config, warnings


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> LoadedConfig:
    """Merge packaged defaults, the user file and explicit overrides.

    Args:
        path: Explicit config file. When omitted the XDG user file is used if
            it exists.
        overrides: Keys that win over every file; ``None`` values are ignored.

    Raises:
        ConfigLoadError: If an explicit file is missing or unreadable.
        ConfigValidationError: If the merged document is invalid.
    """
    defaults_path = resources.files("rfmatrixctl.data").joinpath("defaults.yaml")
    doc = _read_yaml(defaults_path)
    sources = ["<packaged defaults>"]

    if path is not None:
        if not path.is_file():
            raise ConfigLoadError(f"Config file {path} does not exist")
        user_path: Path | None = path
    else:
        candidate = user_config_path()
        user_path = candidate if candidate.is_file() else None

    if user_path is not None:
        user_doc = _read_yaml(user_path)
        LOGGER.debug("Merging config from %s: %s", user_path, sorted(user_doc))
        doc.update(user_doc)
        sources.append(str(user_path))

    if overrides:
        explicit = {key: value for key, value in overrides.items() if value is not None}
        if explicit:
            doc.update(explicit)
            sources.append("<overrides>")

    config, warnings = _build_config(doc, " + ".join(sources))
    for warning in warnings:
        LOGGER.warning(warning)
    return LoadedConfig(config=config, warnings=tuple(warnings), sources=tuple(sources))
