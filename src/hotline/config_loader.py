"""Load HotlineConfig from hotline.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

import tomllib
from pathlib import Path

import yaml

from hotline._errors import ConfigError
from hotline.config import HotlineConfig

_KNOWN_KEYS = frozenset({
    "host", "port", "hmr_path", "debugger_path", "packager",
    "watch_extensions", "watch_debounce_ms", "close_client_on_debugger_exit",
})


def load_config(root: Path, **overrides: object) -> HotlineConfig:
    """Load HotlineConfig from root, optionally merging hotline.yaml.

    Looks for hotline.yaml, hotline.yml, or hotline.toml in root. If found,
    loads and merges with overrides. Overrides take precedence; ``None``
    overrides are ignored so unset CLI flags fall through to the file.

    Raises:
        ConfigError: If a config file exists but cannot be parsed.

    """
    file_config = _read_hotline_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    if "watch_extensions" in merged:
        merged["watch_extensions"] = tuple(merged["watch_extensions"])  # type: ignore[arg-type]
    return HotlineConfig(root=root, **merged)  # type: ignore[arg-type]


def _read_hotline_config(root: Path) -> dict[str, object]:
    """Read hotline config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("hotline.yaml", "hotline.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "hotline.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path} must contain a mapping, got {type(data).__name__}"
        raise ConfigError(msg)
    return _flatten_hotline_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc
    return _flatten_hotline_section(data)


def _flatten_hotline_section(data: dict[str, object]) -> dict[str, object]:
    """Extract hotline.* keys and known top-level keys into one mapping."""
    result: dict[str, object] = {}
    for k, v in data.items():
        if k in _KNOWN_KEYS:
            result[k] = v
    section = data.get("hotline")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _KNOWN_KEYS:
                result[k] = v
    return result
