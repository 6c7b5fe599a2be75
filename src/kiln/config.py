"""Kiln configuration.

KilnConfig is the central configuration object, frozen after creation.
Every pipeline run receives it explicitly; build mode derives a new value
with :meth:`KilnConfig.for_production` rather than mutating a shared one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from kiln._errors import ConfigError

if TYPE_CHECKING:
    from kiln._types import OutputStyle, ReloadMode

ASSET_NAMES: tuple[str, ...] = (
    "templates",
    "styles",
    "scripts",
    "fonts",
    "images",
    "iconfont",
)

OUTPUT_STYLES: frozenset[str] = frozenset({"nested", "expanded", "compact", "compressed"})

_RELOAD_MODES: frozenset[str] = frozenset({"full", "inject", "none"})


def _frozen(mapping: Mapping[str, Any] | None = None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class AssetConfig:
    """Source glob, destination and stage options for one asset class.

    Attributes:
        name: Asset class name (one of :data:`ASSET_NAMES`).
        source_glob: Glob relative to the project root selecting source files.
        dest_dir: Output directory relative to the project root.
        options: Read-only stage options (``include_paths``, ``font_name``...).
        reload: Browser reaction after a watched rebuild.
        ignore_initial: When False, the watch binding fires once at setup.

    """

    name: str
    source_glob: str
    dest_dir: str
    options: Mapping[str, Any] = field(default_factory=_frozen, hash=False)
    reload: ReloadMode = "none"
    ignore_initial: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.options, MappingProxyType):
            object.__setattr__(self, "options", _frozen(self.options))
        if self.reload not in _RELOAD_MODES:
            msg = f"{self.name}: reload must be one of {sorted(_RELOAD_MODES)}, got {self.reload!r}"
            raise ConfigError(msg)

    def option(self, key: str, default: Any = None) -> Any:
        """Look up a stage option."""
        return self.options.get(key, default)

    def with_options(self, **options: Any) -> AssetConfig:
        """Return a copy with *options* merged over the current ones."""
        return replace(self, options={**self.options, **options})


def default_assets() -> dict[str, AssetConfig]:
    """The standard ``src/`` -> ``dist/`` layout."""
    return {
        "templates": AssetConfig(
            name="templates",
            source_glob="src/pug/**/*.pug",
            dest_dir="dist",
            reload="full",
            ignore_initial=False,
        ),
        "styles": AssetConfig(
            name="styles",
            source_glob="src/sass/**/*.scss",
            dest_dir="dist/assets/css",
            options={
                "include_paths": ("node_modules/foundation-sites/scss",),
                "source_map_dir": "sass-maps",
                "autoprefix_command": ("postcss", "--use", "autoprefixer", "--no-map"),
            },
            reload="inject",
        ),
        "scripts": AssetConfig(
            name="scripts",
            source_glob="src/js/**/*.js",
            dest_dir="dist/assets/js",
            reload="full",
        ),
        "fonts": AssetConfig(
            name="fonts",
            source_glob="src/fonts/**/*.*",
            dest_dir="dist/assets/fonts",
        ),
        "images": AssetConfig(
            name="images",
            source_glob="src/img/**/*.*",
            dest_dir="dist/assets/img",
            options={
                "interlaced": True,
                "progressive": True,
                "optimization_level": 5,
                "svg_keep_ids": True,
            },
        ),
        "iconfont": AssetConfig(
            name="iconfont",
            source_glob="src/iconfonts/**/*.*",
            dest_dir="dist/assets/fonts",
            options={
                "font_name": "iconfonts",
                "template": "src/icon-font-template.scss",
                "target": "src/sass/components/iconfonts.scss",
                "font_path": "/assets/fonts/",
                "formats": ("ttf", "woff", "woff2", "svg"),
                "font_height": 1001,
                "normalize": True,
                "start_codepoint": 0xEA01,
                "timestamp": None,
            },
        ),
    }


@dataclass(frozen=True, slots=True)
class KilnConfig:
    """Configuration for a kiln project.

    Attributes:
        root: Project root (contains ``src/`` and ``dist/``).
              Always resolved to an absolute path on construction.
        host: Bind address for the dev server.
        port: Bind port for the dev server (0 = ephemeral).
        dist_dir: Document root served in dev mode, relative to root.
        output_style: libsass output style for the styles pipeline.
        notify: Send desktop notifications when a pipeline fails.
        open_browser: Open the dev server URL in a browser on startup.
        assets: Asset class configs keyed by name; missing classes get defaults.

    """

    root: Path = field(default_factory=Path.cwd)
    host: str = "127.0.0.1"
    port: int = 3000
    dist_dir: str = "dist"
    output_style: OutputStyle = "expanded"
    notify: bool = False
    open_browser: bool = False
    assets: Mapping[str, AssetConfig] = field(default_factory=default_assets, hash=False)

    def __post_init__(self) -> None:
        # Resolve root to absolute so that watchfiles (which returns
        # absolute paths) can be compared via Path.relative_to().
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())

        for name, kind in (
            ("host", str), ("dist_dir", str), ("notify", bool), ("open_browser", bool),
        ):
            value = getattr(self, name)
            if not isinstance(value, kind):
                msg = f"{name} must be a {kind.__name__}, got {value!r}"
                raise ConfigError(msg)

        # bool is an int subclass
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            msg = f"port must be an integer, got {self.port!r}"
            raise ConfigError(msg)
        if not 0 <= self.port <= 65535:
            msg = f"port must be between 0 and 65535, got {self.port}"
            raise ConfigError(msg)

        if self.output_style not in OUTPUT_STYLES:
            msg = (
                f"output_style must be one of {sorted(OUTPUT_STYLES)}, "
                f"got {self.output_style!r}"
            )
            raise ConfigError(msg)

        unknown = set(self.assets) - set(ASSET_NAMES)
        if unknown:
            msg = f"Unknown asset class(es): {', '.join(sorted(unknown))}"
            raise ConfigError(msg)

        object.__setattr__(
            self, "assets", MappingProxyType({**default_assets(), **self.assets}),
        )

    def asset(self, name: str) -> AssetConfig:
        """Return the config for asset class *name*."""
        try:
            return self.assets[name]
        except KeyError:
            msg = f"Unknown asset class: {name!r}"
            raise ConfigError(msg) from None

    def dest_path(self, name: str) -> Path:
        """Absolute output directory for asset class *name*."""
        return self.root / self.asset(name).dest_dir

    @property
    def dist_path(self) -> Path:
        """Absolute path to the served output root."""
        return self.root / self.dist_dir

    def for_production(self) -> KilnConfig:
        """Derive the one-shot build configuration (compact stylesheets)."""
        return replace(self, output_style="compact")
