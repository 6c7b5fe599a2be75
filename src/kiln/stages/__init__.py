"""Transformation stages — thin adapters over the compiler / optimiser libraries.

Each stage takes a batch of :class:`~kiln.pipeline.files.AssetFile` values and
returns a new batch; none of them touch the destination tree.
"""

from kiln.stages.iconfont import generate_iconfont
from kiln.stages.images import newer, optimize_images
from kiln.stages.styles import autoprefix, compile_sass
from kiln.stages.templates import compile_pug

__all__ = [
    "autoprefix",
    "compile_pug",
    "compile_sass",
    "generate_iconfont",
    "newer",
    "optimize_images",
]
