"""Load KilnConfig from kiln.yaml / kiln.toml if present.

Merges file config with CLI kwargs. CLI overrides file.

Example ``kiln.yaml``::

    port: 4000
    notify: true
    assets:
      styles:
        src: "src/scss/**/*.scss"
        options:
          include_paths: ["node_modules/bootstrap/scss"]
      iconfont:
        options:
          font_name: glyphs

"""

from __future__ import annotations

import tomllib
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from kiln._errors import ConfigError
from kiln.config import ASSET_NAMES, AssetConfig, KilnConfig, default_assets

CONFIG_FILENAMES: tuple[str, ...] = ("kiln.yaml", "kiln.yml", "kiln.toml")

_TOP_LEVEL_KEYS = frozenset({
    "host", "port", "dist_dir", "output_style", "notify", "open_browser",
})

_ASSET_KEYS = frozenset({"src", "dest", "options", "reload", "ignore_initial"})


def load_config(root: Path, **overrides: object) -> KilnConfig:
    """Load KilnConfig from root, optionally merging kiln.yaml.

    Looks for kiln.yaml, kiln.yml, or kiln.toml in root. If found, loads
    and merges with overrides. Overrides take precedence; ``None`` overrides
    are ignored so CLI flags left unset don't clobber file values.

    Raises:
        ConfigError: If the file cannot be parsed or names unknown keys.

    """
    file_config = read_config_file(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    assets = merged.pop("assets", None)
    if assets is not None:
        merged["assets"] = _build_assets(assets)
    return KilnConfig(root=root, **merged)


def read_config_file(root: Path) -> dict[str, Any]:
    """Read kiln config from yaml/toml if present. Returns empty dict otherwise."""
    for name in CONFIG_FILENAMES:
        path = root / name
        if not path.is_file():
            continue
        if path.suffix == ".toml":
            return _flatten_kiln_section(_parse_toml(path), path)
        return _flatten_kiln_section(_parse_yaml(path), path)
    return {}


def _parse_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path.name}: {exc}"
        raise ConfigError(msg) from exc
    if not isinstance(data, dict):
        msg = f"{path.name} must contain a mapping at the top level"
        raise ConfigError(msg)
    return data


def _parse_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path.name}: {exc}"
        raise ConfigError(msg) from exc


def _flatten_kiln_section(data: dict[str, Any], path: Path) -> dict[str, Any]:
    """Extract kiln.* keys into top-level config."""
    section = data.get("kiln", data)
    if not isinstance(section, dict):
        msg = f"{path.name}: [kiln] must be a table"
        raise ConfigError(msg)

    result: dict[str, Any] = {}
    for key, value in section.items():
        if key == "assets" or key in _TOP_LEVEL_KEYS:
            result[key] = value
        else:
            msg = f"{path.name}: unknown key {key!r}"
            raise ConfigError(msg)
    return result


def _build_assets(raw: object) -> dict[str, AssetConfig]:
    """Overlay per-class file settings on the default asset classes."""
    if not isinstance(raw, dict):
        msg = "assets must be a mapping of asset class to settings"
        raise ConfigError(msg)

    defaults = default_assets()
    assets: dict[str, AssetConfig] = {}
    for name, settings in raw.items():
        if name not in ASSET_NAMES:
            msg = f"Unknown asset class in config: {name!r}"
            raise ConfigError(msg)
        if not isinstance(settings, dict):
            msg = f"assets.{name} must be a mapping"
            raise ConfigError(msg)
        unknown = set(settings) - _ASSET_KEYS
        if unknown:
            msg = f"assets.{name}: unknown key(s) {', '.join(sorted(unknown))}"
            raise ConfigError(msg)

        base = defaults[name]
        options = settings.get("options") or {}
        if not isinstance(options, dict):
            msg = f"assets.{name}.options must be a mapping"
            raise ConfigError(msg)
        assets[name] = replace(
            base.with_options(**options),
            source_glob=settings.get("src", base.source_glob),
            dest_dir=settings.get("dest", base.dest_dir),
            reload=settings.get("reload", base.reload),
            ignore_initial=settings.get("ignore_initial", base.ignore_initial),
        )
    return assets
