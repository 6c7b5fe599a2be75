"""Pipeline registry — which stages each asset class runs.

The registry is pure data: paths and options live in
:class:`~kiln.config.AssetConfig`, stage order lives here.

    templates  pug
    styles     sass -> autoprefixer
    scripts    (copy)
    fonts      (copy)
    images     [newer] -> imagemin
    iconfont   iconfont
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from kiln._errors import ConfigError
from kiln.pipeline.stage import Pipeline, Stage
from kiln.stages.iconfont import generate_iconfont
from kiln.stages.images import newer, optimize_images
from kiln.stages.styles import autoprefix, compile_sass
from kiln.stages.templates import compile_pug

PIPELINES: Mapping[str, Pipeline] = MappingProxyType({
    "templates": Pipeline("templates", (Stage("pug", compile_pug),)),
    "styles": Pipeline(
        "styles",
        (Stage("sass", compile_sass), Stage("autoprefixer", autoprefix)),
    ),
    "scripts": Pipeline("scripts"),
    "fonts": Pipeline("fonts"),
    "images": Pipeline("images", (Stage("imagemin", optimize_images),), select=newer),
    "iconfont": Pipeline("iconfont", (Stage("iconfont", generate_iconfont),)),
})

# Asset classes run by the one-shot production build
BUILD_ASSETS: tuple[str, ...] = ("styles", "fonts", "images", "iconfont")


def get_pipeline(name: str) -> Pipeline:
    """Look up the pipeline for asset class *name*."""
    try:
        return PIPELINES[name]
    except KeyError:
        msg = f"No pipeline registered for asset class {name!r}"
        raise ConfigError(msg) from None
