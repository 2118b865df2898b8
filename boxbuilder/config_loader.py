"""Workspace settings loading and validation."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping
import json
import tomllib

import yaml

from .errors import ConfigurationError


CONFIG_STEM = "boxbuilder"

ConfigLoader = Callable[[Any], Mapping[str, Any]]

_FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}

_HEADLESS_CHOICES = {"auto": None, "true": True, "false": False}


def _load_config_file(path: Path) -> Mapping[str, Any]:
    suffix = path.suffix.lower()
    loader = _FILE_LOADERS.get(suffix)
    if loader is None:
        raise ConfigurationError(f"Unsupported configuration file extension: {suffix}")
    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"
    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to parse configuration file '{path}': {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def _find_config_file(directory: Path) -> Path | None:
    found: Path | None = None
    for suffix in _FILE_LOADERS:
        candidate = directory / f"{CONFIG_STEM}{suffix}"
        if not candidate.is_file():
            continue
        if found is not None:
            raise ConfigurationError(
                f"Multiple configuration files found for '{CONFIG_STEM}': '{found.name}' and '{candidate.name}'. "
                "Only one format per configuration entry is allowed."
            )
        found = candidate
    return found


def _parse_headless(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text not in _HEADLESS_CHOICES:
        raise ConfigurationError("global.headless must be 'auto', true or false")
    return _HEADLESS_CHOICES[text]


@dataclass(frozen=True, slots=True)
class Settings:
    builder: str = "packer"
    output_dir: str = "builds"
    cache_dir: str = "packer_cache"
    cache_env_var: str = "PACKER_CACHE_DIR"
    headless: bool | None = None
    log_level: str = "info"
    source: Path | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, source: Path | None = None) -> "Settings":
        global_section = data.get("global", {})
        if not isinstance(global_section, Mapping):
            raise ConfigurationError("[global] must be a table")
        defaults = cls()
        builder = str(global_section.get("builder") or defaults.builder).strip()
        if not builder:
            raise ConfigurationError("global.builder cannot be empty")
        return cls(
            builder=builder,
            output_dir=str(global_section.get("output_dir", defaults.output_dir)),
            cache_dir=str(global_section.get("cache_dir", defaults.cache_dir)),
            cache_env_var=str(global_section.get("cache_env_var", defaults.cache_env_var)),
            headless=_parse_headless(global_section.get("headless")),
            log_level=str(global_section.get("log_level", defaults.log_level)).lower(),
            source=source,
        )

    def output_path(self, workspace: Path) -> Path:
        path = Path(self.output_dir).expanduser()
        return path if path.is_absolute() else workspace / path

    def cache_path(self, workspace: Path) -> Path:
        path = Path(self.cache_dir).expanduser()
        return path if path.is_absolute() else workspace / path


def load_settings(workspace: Path) -> Settings:
    """Load ``boxbuilder.{toml,json,yaml,yml}`` from the workspace, if present."""
    path = _find_config_file(workspace)
    if path is None:
        return Settings()
    return Settings.from_mapping(_load_config_file(path), source=path)
