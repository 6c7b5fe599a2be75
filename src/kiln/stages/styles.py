"""Styles stages — Sass compilation via libsass, then vendor prefixing.

``compile_sass`` compiles each non-partial ``.scss`` file from disk (so
relative ``@import`` / ``@use`` resolve) and, when ``source_map_dir`` is
set, emits a ``.css.map`` next to the CSS under that directory::

    dist/assets/css/main.css
    dist/assets/css/sass-maps/main.css.map

``autoprefix`` pipes CSS through the configured ``autoprefix_command``
(PostCSS + Autoprefixer by default).  When the command isn't installed
the CSS passes through unchanged.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

import sass

from kiln._console import log_warning
from kiln._errors import PipelineError
from kiln.pipeline.files import AssetFile
from kiln.stages.templates import is_partial

if TYPE_CHECKING:
    from kiln.config import AssetConfig
    from kiln.pipeline.stage import StageContext

# Commands already reported as missing (one warning per process)
_missing_commands: set[str] = set()


def missing_autoprefixer(asset: AssetConfig) -> str | None:
    """The configured autoprefix command when it is set but not installed."""
    command = tuple(asset.option("autoprefix_command") or ())
    if command and shutil.which(command[0]) is None:
        return command[0]
    return None


def source_map_relative(css_relative: PurePosixPath, map_dir: str) -> PurePosixPath:
    """``layout/main.css`` -> ``<map_dir>/layout/main.css.map``."""
    return PurePosixPath(map_dir) / css_relative.with_name(css_relative.name + ".map")


def compile_sass(files: tuple[AssetFile, ...], ctx: StageContext) -> tuple[AssetFile, ...]:
    """Compile ``.scss`` sources to CSS (plus source maps).

    Raises:
        PipelineError: On the first stylesheet libsass rejects.

    """
    include_paths = [str(ctx.root / p) for p in ctx.asset.option("include_paths", ())]
    map_dir = ctx.asset.option("source_map_dir")
    output_style = ctx.config.output_style

    results: list[AssetFile] = []
    for file in files:
        if is_partial(file) or file.source is None:
            continue

        css_relative = file.relative.with_suffix(".css")
        try:
            if map_dir:
                map_relative = source_map_relative(css_relative, map_dir)
                css, source_map = sass.compile(
                    filename=str(file.source),
                    output_style=output_style,
                    include_paths=include_paths,
                    source_map_filename=str(ctx.dest / map_relative),
                    output_filename_hint=str(ctx.dest / css_relative),
                    source_map_contents=True,
                )
                results.append(file.derive(css, relative=css_relative))
                results.append(AssetFile(
                    relative=map_relative,
                    contents=source_map.encode("utf-8"),
                    source=file.source,
                ))
            else:
                css = sass.compile(
                    filename=str(file.source),
                    output_style=output_style,
                    include_paths=include_paths,
                )
                results.append(file.derive(css, relative=css_relative))
        except sass.CompileError as exc:
            raise PipelineError(
                str(exc), asset=ctx.asset.name, stage="sass", path=file.source,
            ) from exc

    return tuple(results)


def autoprefix(files: tuple[AssetFile, ...], ctx: StageContext) -> tuple[AssetFile, ...]:
    """Add vendor prefixes to every ``.css`` file via an external command.

    Raises:
        PipelineError: If the command exits non-zero.

    """
    command = tuple(ctx.asset.option("autoprefix_command") or ())
    if not command:
        return files

    if shutil.which(command[0]) is None:
        if command[0] not in _missing_commands:
            _missing_commands.add(command[0])
            log_warning(f"{command[0]} not found, skipping autoprefixer")
        return files

    results: list[AssetFile] = []
    for file in files:
        if file.relative.suffix != ".css":
            results.append(file)
            continue
        proc = subprocess.run(
            command,
            input=file.contents,
            capture_output=True,
            cwd=ctx.root,
            check=False,
        )
        if proc.returncode != 0:
            msg = proc.stderr.decode("utf-8", "replace").strip() or f"exit {proc.returncode}"
            raise PipelineError(
                msg, asset=ctx.asset.name, stage="autoprefixer", path=file.source,
            )
        results.append(file.derive(proc.stdout))
    return tuple(results)
