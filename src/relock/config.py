"""YAML configuration for the relock engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .credentials import HostRuleStore
from .schema import UpdateConfig

DEFAULT_CONFIG_NAME = "relock.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "engine": {
        "binary_source": "direct",
        "post_update_options": [],
        "compatibility": {},
        "app_mode": False,
    },
    "host_rules": [],
}


class ConfigError(ValueError):
    """Raised when the configuration file cannot be parsed or validated."""


@dataclass(slots=True)
class EngineSettings:
    """Parsed configuration: update knobs plus the credential store."""

    update: UpdateConfig = field(default_factory=UpdateConfig)
    host_rules: HostRuleStore = field(default_factory=HostRuleStore)


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _resolve_cache_dir(value: Any, base: Path | None) -> Any:
    if not isinstance(value, str) or not value.strip():
        return value
    candidate = Path(value.strip())
    if base is not None and not candidate.is_absolute():
        candidate = (base / candidate).resolve()
    return candidate


def parse_settings(data: Mapping[str, Any], *, base_dir: Path | None = None) -> EngineSettings:
    """Validate a raw configuration mapping into :class:`EngineSettings`."""

    merged = _copy_config_template()
    for key, value in data.items():
        if key not in merged:
            raise ConfigError(f"Unknown configuration section: {key}")
        if value is None:
            continue
        if key == "engine":
            if not isinstance(value, Mapping):
                raise ConfigError("'engine' must be a mapping")
            merged["engine"].update(value)
        else:
            if not isinstance(value, list):
                raise ConfigError("'host_rules' must be a list")
            merged["host_rules"] = value

    engine = dict(merged["engine"])
    cache_dir = _resolve_cache_dir(engine.get("cache_dir"), base_dir)
    if cache_dir in (None, ""):
        engine.pop("cache_dir", None)
    else:
        engine["cache_dir"] = cache_dir
    options = engine.get("post_update_options") or ()
    if isinstance(options, str):
        options = [options]
    engine["post_update_options"] = frozenset(str(option) for option in options)
    compatibility = engine.get("compatibility") or {}
    if not isinstance(compatibility, Mapping):
        raise ConfigError("'engine.compatibility' must be a mapping")
    # YAML reads unquoted versions such as 1.14 as floats.
    engine["compatibility"] = {str(name): str(value) for name, value in compatibility.items()}
    try:
        update = UpdateConfig.model_validate(engine)
        rules = HostRuleStore.from_entries(merged["host_rules"])
    except (ValidationError, TypeError) as error:
        raise ConfigError(f"Invalid configuration: {error}") from error
    return EngineSettings(update=update, host_rules=rules)


def load_settings(config_path: Path | str | None) -> EngineSettings:
    """Read settings from ``config_path``; defaults apply when it is ``None`` or absent."""

    if config_path is None:
        return parse_settings({})
    path = Path(config_path)
    if not path.exists():
        return parse_settings({})
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        raise ConfigError(f"Failed to parse config {path}: {error}") from error
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return parse_settings(data, base_dir=path.parent.resolve())


def write_default_config(config_path: Path) -> None:
    """Persist the default configuration with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(_copy_config_template(), handle, sort_keys=False)


__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_NAME",
    "EngineSettings",
    "load_settings",
    "parse_settings",
    "write_default_config",
]
