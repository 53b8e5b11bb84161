"""Configuration loading for the ledgeracio command line.

Resolution order: built-in defaults, then environment variables (see
:class:`~ledgeracio.settings.LedgeracioSettings`), then an optional YAML or
JSON file. Unreadable or malformed files are ignored.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import cast

import yaml

from .settings import LedgeracioSettings, get_settings

__all__ = ["LedgeracioConfig", "LoggingSettings", "load_config"]

LOGGER = logging.getLogger(__name__)

_DEFAULT_CANDIDATES: tuple[Path, ...] = (
    Path("config/ledgeracio.yml"),
    Path("config/ledgeracio.yaml"),
    Path("config/ledgeracio.json"),
)


@dataclass(slots=True)
class LoggingSettings:
    """Logging output controls."""

    level: str = "WARNING"
    json: bool = False


@dataclass(slots=True)
class LedgeracioConfig:
    """Strongly typed configuration container."""

    network: str | None = None
    allow_custom_network: bool = False
    nonce_store: str | None = None
    custody_dir: str = str(Path.home() / ".ledgeracio" / "custody")
    logging: LoggingSettings = field(default_factory=LoggingSettings)


def load_config(
    path: str | None = None, *, settings: LedgeracioSettings | None = None
) -> LedgeracioConfig:
    """Load configuration from environment and optional file sources.

    Args:
        path: Optional explicit configuration file path.
        settings: Optional pre-instantiated environment settings.

    Returns:
        Fully populated :class:`LedgeracioConfig`.
    """

    env_settings = settings or get_settings()
    config = _apply_environment(LedgeracioConfig(), env_settings)
    structured = _load_structured(path, env_settings)
    if structured is None:
        return config
    return _apply_structured(config, structured)


def _apply_environment(
    config: LedgeracioConfig, settings: LedgeracioSettings
) -> LedgeracioConfig:
    updated = config
    if settings.network:
        updated = replace(updated, network=settings.network)
    if settings.allow_custom_network is not None:
        updated = replace(updated, allow_custom_network=settings.allow_custom_network)
    if settings.nonce_store:
        updated = replace(updated, nonce_store=settings.nonce_store)
    if settings.custody_dir:
        updated = replace(updated, custody_dir=settings.custody_dir)
    if settings.log_level:
        updated = replace(
            updated, logging=replace(updated.logging, level=settings.log_level.upper())
        )
    if settings.log_json is not None:
        updated = replace(updated, logging=replace(updated.logging, json=settings.log_json))
    return updated


def _apply_structured(
    config: LedgeracioConfig, data: Mapping[str, object]
) -> LedgeracioConfig:
    updated = config
    network = data.get("network")
    if isinstance(network, str) and network.strip():
        updated = replace(updated, network=network.strip())
    allow_custom = data.get("allow_custom_network")
    if isinstance(allow_custom, bool):
        updated = replace(updated, allow_custom_network=allow_custom)
    for key in ("nonce_store", "custody_dir"):
        value = data.get(key)
        if isinstance(value, str) and value:
            updated = replace(updated, **{key: value})

    section = data.get("logging")
    if isinstance(section, Mapping):
        level = section.get("level")
        if isinstance(level, str) and level:
            updated = replace(
                updated, logging=replace(updated.logging, level=level.upper())
            )
        as_json = section.get("json")
        if isinstance(as_json, bool):
            updated = replace(updated, logging=replace(updated.logging, json=as_json))
    return updated


def _load_structured(
    path: str | None, settings: LedgeracioSettings
) -> dict[str, object] | None:
    candidates: Iterable[Path]
    if path is not None:
        candidates = (Path(path),)
    elif settings.config_path:
        candidates = (Path(settings.config_path),)
    else:
        candidates = _DEFAULT_CANDIDATES

    for candidate in candidates:
        data = _load_config_file(candidate)
        if data is not None:
            LOGGER.debug("Loaded configuration", extra={"path": str(candidate)})
            return data
    return None


def _load_config_file(path: Path) -> dict[str, object] | None:
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(text)
        elif suffix in {".yml", ".yaml"}:
            data = yaml.safe_load(text)
        else:
            return None
    except (json.JSONDecodeError, yaml.YAMLError):
        LOGGER.warning("Ignoring malformed configuration file", extra={"path": str(path)})
        return None
    return _normalize_mapping(data)


def _normalize_mapping(value: object) -> dict[str, object] | None:
    if not isinstance(value, dict):
        return None
    value_dict = cast(dict[object, object], value)
    return {key: item for key, item in value_dict.items() if isinstance(key, str)}
