"""Images stage — lossless-ish optimisation via Pillow and scour.

- PNG: re-encoded with ``optimize=True`` at the configured zlib level
- JPEG: re-encoded progressive with the source quantisation tables kept
- GIF: re-encoded optimised (and interlaced), all frames preserved
- SVG: cleaned with scour (comments and metadata dropped, ids kept)

Any other file type is copied as-is.  An optimised result larger than its
source is discarded in favour of the original bytes.

``newer`` is the pipeline's selection filter: a source is skipped when its
output already exists and is at least as recent.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

from PIL import Image
from scour import scour

from kiln._console import GREEN, RESET, log
from kiln._errors import PipelineError
from kiln.pipeline.files import output_path

if TYPE_CHECKING:
    from kiln.pipeline.files import AssetFile
    from kiln.pipeline.stage import StageContext

_RASTER_FORMATS: dict[str, str] = {
    ".png": "PNG",
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".gif": "GIF",
}


def newer(file: AssetFile, ctx: StageContext) -> bool:
    """True when *file* must be (re)generated.

    Skips when the destination exists and its mtime >= the source mtime.
    """
    if file.source is None:
        return True
    try:
        dest_mtime = output_path(ctx.dest, file).stat().st_mtime_ns
    except FileNotFoundError:
        return True
    return file.source.stat().st_mtime_ns > dest_mtime


def _optimize_raster(file: AssetFile, fmt: str, ctx: StageContext) -> bytes:
    level = int(ctx.asset.option("optimization_level", 5))
    buf = io.BytesIO()
    with Image.open(io.BytesIO(file.contents)) as img:
        if fmt == "PNG":
            img.save(buf, "PNG", optimize=True, compress_level=min(9, max(0, level + 4)))
        elif fmt == "JPEG":
            img.save(
                buf,
                "JPEG",
                quality="keep",
                subsampling="keep",
                optimize=True,
                progressive=bool(ctx.asset.option("progressive", True)),
            )
        else:
            img.save(
                buf,
                "GIF",
                save_all=getattr(img, "is_animated", False),
                optimize=True,
                interlace=bool(ctx.asset.option("interlaced", True)),
            )
    return buf.getvalue()


def _optimize_svg(file: AssetFile, ctx: StageContext) -> bytes:
    options = scour.sanitizeOptions()
    options.strip_ids = not ctx.asset.option("svg_keep_ids", True)
    options.shorten_ids = False
    options.strip_comments = True
    options.remove_metadata = True
    return scour.scourString(file.text(), options).encode("utf-8")


def optimize_images(files: tuple[AssetFile, ...], ctx: StageContext) -> tuple[AssetFile, ...]:
    """Optimise every image, keeping whichever of source / result is smaller.

    Raises:
        PipelineError: If an image cannot be decoded.

    """
    verbose = bool(ctx.asset.option("verbose", True))
    results: list[AssetFile] = []
    for file in files:
        suffix = file.relative.suffix.lower()
        fmt = _RASTER_FORMATS.get(suffix)
        try:
            if fmt is not None:
                optimized = _optimize_raster(file, fmt, ctx)
            elif suffix == ".svg":
                optimized = _optimize_svg(file, ctx)
            else:
                results.append(file)
                continue
        except Exception as exc:
            raise PipelineError(
                str(exc), asset=ctx.asset.name, stage="imagemin", path=file.source,
            ) from exc

        original = len(file.contents)
        if len(optimized) >= original:
            results.append(file)
            continue

        results.append(file.derive(optimized))
        if verbose:
            saved = original - len(optimized)
            percent = saved / original * 100 if original else 0.0
            log(f"{GREEN}✔{RESET} {file.relative} (saved {saved / 1024:.1f} kB - {percent:.0f}%)")
    return tuple(results)
