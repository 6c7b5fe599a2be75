"""Icon-font stage — SVG icons to a font plus a stylesheet fragment.

Each ``.svg`` icon becomes one glyph.  Glyphs are ordered by file name and
assigned codepoints from ``start_codepoint`` (``U+EA01``) upward, unless the
file name pins one with a ``uXXXX-`` prefix (``uEA10-home.svg``).

Outputs, for ``font_name = "iconfonts"``:

- ``iconfonts.ttf`` / ``.woff`` / ``.woff2`` built with fontTools
- ``iconfonts.svg`` (legacy SVG font)
- the stylesheet fragment rendered from ``template`` to ``target``, a path
  relative to the project root and outside the font output directory

Icons are scaled into a ``font_height``-unit em with the baseline at the
bottom of each viewBox.  With ``normalize`` on every icon fills the em
height; otherwise icons keep their size relative to the tallest one.

The only non-deterministic input is ``timestamp`` (seconds since the Unix
epoch, default now), which lands in the ``head`` table and the SVG font
metadata.  Fixing it makes the output byte-for-byte reproducible.
"""

from __future__ import annotations

import io
import os
import re
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from html import escape
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Any

from fontTools.fontBuilder import FontBuilder
from fontTools.misc.timeTools import timestampSinceEpoch
from fontTools.misc.transform import Transform
from fontTools.pens.cu2quPen import Cu2QuPen
from fontTools.pens.svgPathPen import SVGPathPen
from fontTools.pens.ttGlyphPen import TTGlyphPen
from fontTools.svgLib.path import SVGPath
from jinja2 import Environment

from kiln._console import log_warning
from kiln._errors import PipelineError
from kiln.pipeline.files import AssetFile

if TYPE_CHECKING:
    from fontTools.ttLib import TTFont

    from kiln.config import AssetConfig
    from kiln.pipeline.stage import StageContext

_PINNED_CODEPOINT = re.compile(r"^u([0-9A-Fa-f]{4,6})-(.+)$")
_LENGTH = re.compile(r"^\s*([0-9.]+)")

_BINARY_FLAVORS: dict[str, str | None] = {"ttf": None, "woff": "woff", "woff2": "woff2"}
_CSS_FORMATS: dict[str, str] = {
    "woff2": "woff2",
    "woff": "woff",
    "ttf": "truetype",
    "svg": "svg",
}

DEFAULT_TEMPLATE = """\
@font-face {
  font-family: "{{ font_name }}";
  src: {% for fmt in formats %}url('{{ font_path }}{{ font_name }}.{{ fmt.extension }}') format('{{ fmt.css }}'){{ ", " if not loop.last else ";" }}{% endfor %}
  font-weight: normal;
  font-style: normal;
}

.{{ css_class }}:before {
  font-family: "{{ font_name }}";
  -webkit-font-smoothing: antialiased;
  -moz-osx-font-smoothing: grayscale;
  font-style: normal;
  font-variant: normal;
  font-weight: normal;
  line-height: 1;
  speak: never;
  text-decoration: none;
  text-transform: none;
}

{% for glyph in glyphs %}
.{{ css_class }}-{{ glyph.file_name }}:before {
  content: "\\{{ glyph.codepoint }}";
}
{% endfor %}
"""

_SVG_FONT = """\
<?xml version="1.0" standalone="no"?>
<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" "http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">
<svg xmlns="http://www.w3.org/2000/svg">
<metadata>Generated by kiln at {timestamp}</metadata>
<defs>
<font id="{font_name}" horiz-adv-x="{height}">
<font-face font-family="{font_name}" units-per-em="{height}" ascent="{height}" descent="0" />
<missing-glyph horiz-adv-x="0" />
{glyphs}
</font>
</defs>
</svg>
"""


@dataclass(frozen=True, slots=True)
class IconGlyph:
    """One icon resolved to font coordinates.

    Attributes:
        name: Glyph / CSS name derived from the file name.
        codepoint: Unicode codepoint assigned to the glyph.
        path: Parsed SVG outline, already transformed into font units.
        advance: Horizontal advance in font units.

    """

    name: str
    codepoint: int
    path: SVGPath
    advance: int

    @property
    def hex(self) -> str:
        return f"{self.codepoint:X}"


def _parse_length(value: str | None) -> float | None:
    if not value:
        return None
    match = _LENGTH.match(value)
    return float(match.group(1)) if match else None


def _viewbox(data: bytes) -> tuple[float, float, float, float]:
    """``(min_x, min_y, width, height)`` of an SVG document."""
    root = ET.fromstring(data)
    view_box = root.get("viewBox")
    if view_box:
        parts = [float(p) for p in re.split(r"[\s,]+", view_box.strip())]
        if len(parts) == 4 and parts[2] > 0 and parts[3] > 0:
            return parts[0], parts[1], parts[2], parts[3]
    width = _parse_length(root.get("width"))
    height = _parse_length(root.get("height"))
    if not width or not height:
        msg = "icon has neither a usable viewBox nor width/height"
        raise ValueError(msg)
    return 0.0, 0.0, width, height


def _split_name(stem: str) -> tuple[str, int | None]:
    match = _PINNED_CODEPOINT.match(stem)
    if match:
        return match.group(2), int(match.group(1), 16)
    return stem, None


def collect_glyphs(files: tuple[AssetFile, ...], ctx: StageContext) -> tuple[IconGlyph, ...]:
    """Resolve icons to glyphs with codepoints and font-space outlines.

    Raises:
        PipelineError: If an icon can't be parsed, or two icons share a name
            or a pinned codepoint.

    """
    height = int(ctx.asset.option("font_height", 1001))
    normalize = bool(ctx.asset.option("normalize", True))
    next_codepoint = int(ctx.asset.option("start_codepoint", 0xEA01))

    icons = sorted(
        (f for f in files if f.relative.suffix.lower() == ".svg"),
        key=lambda f: f.relative.name,
    )

    boxes: list[tuple[AssetFile, tuple[float, float, float, float]]] = []
    for icon in icons:
        try:
            boxes.append((icon, _viewbox(icon.contents)))
        except (ET.ParseError, ValueError) as exc:
            raise PipelineError(
                str(exc), asset=ctx.asset.name, stage="iconfont", path=icon.source,
            ) from exc

    tallest = max((box[3] for _, box in boxes), default=1.0)
    pinned = {cp for f, _ in boxes if (cp := _split_name(f.relative.stem)[1]) is not None}

    glyphs: list[IconGlyph] = []
    seen: set[str] = set()
    assigned: set[int] = set()
    for icon, (min_x, min_y, width, box_height) in boxes:
        name, codepoint = _split_name(icon.relative.stem)
        if name in seen:
            msg = f"duplicate icon name {name!r}"
            raise PipelineError(msg, asset=ctx.asset.name, stage="iconfont", path=icon.source)
        seen.add(name)

        if codepoint is None:
            while next_codepoint in pinned:
                next_codepoint += 1
            codepoint = next_codepoint
            next_codepoint += 1
        elif codepoint in assigned:
            msg = f"duplicate codepoint U+{codepoint:04X} for icon {name!r}"
            raise PipelineError(msg, asset=ctx.asset.name, stage="iconfont", path=icon.source)
        assigned.add(codepoint)

        scale = height / (box_height if normalize else tallest)
        # SVG is y-down from the viewBox origin; fonts are y-up from the baseline
        transform = Transform(scale, 0, 0, -scale, -min_x * scale, (min_y + box_height) * scale)
        try:
            path = SVGPath.fromstring(icon.contents, transform=transform)
        except Exception as exc:
            raise PipelineError(
                str(exc), asset=ctx.asset.name, stage="iconfont", path=icon.source,
            ) from exc

        glyphs.append(IconGlyph(
            name=name,
            codepoint=codepoint,
            path=path,
            advance=round(width * scale),
        ))
    return tuple(glyphs)


def build_font(
    glyphs: tuple[IconGlyph, ...],
    *,
    font_name: str,
    height: int,
    timestamp: int,
) -> TTFont:
    """Build a TrueType font with one glyph per icon."""
    glyph_order = [".notdef", *(g.name for g in glyphs)]

    outlines = {".notdef": TTGlyphPen(None).glyph()}
    for glyph in glyphs:
        pen = TTGlyphPen(None)
        glyph.path.draw(Cu2QuPen(pen, max_err=1.0, reverse_direction=True))
        outlines[glyph.name] = pen.glyph()

    fb = FontBuilder(height, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap({g.codepoint: g.name for g in glyphs})
    fb.setupGlyf(outlines)

    glyf = fb.font["glyf"]
    advances = {".notdef": 0, **{g.name: g.advance for g in glyphs}}
    fb.setupHorizontalMetrics({
        name: (advance, getattr(glyf[name], "xMin", 0))
        for name, advance in advances.items()
    })
    fb.setupHorizontalHeader(ascent=height, descent=0)
    fb.setupNameTable({
        "familyName": font_name,
        "styleName": "Regular",
        "fullName": font_name,
        "psName": font_name.replace(" ", ""),
        "version": "Version 1.0",
    })
    fb.setupOS2(
        sTypoAscender=height,
        sTypoDescender=0,
        sTypoLineGap=0,
        usWinAscent=height,
        usWinDescent=0,
        achVendID="KILN",
    )
    fb.setupPost()

    font = fb.font
    font.recalcTimestamp = False
    font["head"].created = timestampSinceEpoch(timestamp)
    font["head"].modified = timestampSinceEpoch(timestamp)
    return font


def _font_bytes(font: TTFont, flavor: str | None) -> bytes:
    buf = io.BytesIO()
    font.flavor = flavor
    try:
        font.save(buf, reorderTables=True)
    finally:
        font.flavor = None
    return buf.getvalue()


def build_svg_font(
    glyphs: tuple[IconGlyph, ...],
    *,
    font_name: str,
    height: int,
    timestamp: int,
) -> str:
    """Render the legacy SVG font document."""
    lines: list[str] = []
    for glyph in glyphs:
        pen = SVGPathPen(None)
        glyph.path.draw(pen)
        lines.append(
            f'<glyph glyph-name="{escape(glyph.name)}" unicode="&#x{glyph.hex};" '
            f'horiz-adv-x="{glyph.advance}" d="{pen.getCommands()}" />'
        )
    return _SVG_FONT.format(
        timestamp=timestamp,
        font_name=escape(font_name),
        height=height,
        glyphs="\n".join(lines),
    )


def render_stylesheet(
    glyphs: tuple[IconGlyph, ...],
    template_source: str,
    *,
    font_name: str,
    font_path: str,
    css_class: str,
    formats: tuple[str, ...],
) -> str:
    """Render the glyph-mapping stylesheet fragment (Jinja2 template)."""
    env = Environment(autoescape=False, keep_trailing_newline=True)
    template = env.from_string(template_source)
    context: dict[str, Any] = {
        "font_name": font_name,
        "font_path": font_path,
        "css_class": css_class,
        "glyphs": [
            {"file_name": g.name, "name": g.name, "codepoint": g.hex} for g in glyphs
        ],
        "formats": [
            {"extension": fmt, "css": _CSS_FORMATS[fmt]}
            for fmt in ("woff2", "woff", "ttf", "svg")
            if fmt in formats
        ],
    }
    return template.render(**context)


def unsupported_formats(asset: AssetConfig) -> tuple[str, ...]:
    """Configured output formats this stage cannot produce (e.g. ``eot``)."""
    formats = asset.option("formats", ("ttf", "woff", "woff2", "svg"))
    return tuple(fmt for fmt in formats if fmt not in _BINARY_FLAVORS and fmt != "svg")


def generate_iconfont(files: tuple[AssetFile, ...], ctx: StageContext) -> tuple[AssetFile, ...]:
    """Turn the icon set into font files plus the stylesheet fragment.

    An empty icon set produces nothing.

    Raises:
        PipelineError: On unreadable icons or an unreadable template.

    """
    glyphs = collect_glyphs(files, ctx)
    if not glyphs:
        return ()

    opts = ctx.asset.options
    font_name = str(opts.get("font_name", "iconfonts"))
    height = int(opts.get("font_height", 1001))
    timestamp = opts.get("timestamp")
    timestamp = int(time.time()) if timestamp is None else int(timestamp)
    formats = tuple(opts.get("formats", ("ttf", "woff", "woff2", "svg")))

    outputs: list[AssetFile] = []

    binary = [fmt for fmt in formats if fmt in _BINARY_FLAVORS]
    if binary:
        font = build_font(glyphs, font_name=font_name, height=height, timestamp=timestamp)
        for fmt in binary:
            outputs.append(AssetFile(
                relative=PurePosixPath(f"{font_name}.{fmt}"),
                contents=_font_bytes(font, _BINARY_FLAVORS[fmt]),
            ))

    if "svg" in formats:
        svg = build_svg_font(glyphs, font_name=font_name, height=height, timestamp=timestamp)
        outputs.append(AssetFile(
            relative=PurePosixPath(f"{font_name}.svg"),
            contents=svg.encode("utf-8"),
        ))

    unsupported = unsupported_formats(ctx.asset)
    if unsupported:
        log_warning(f"iconfont: cannot produce {', '.join(unsupported)}, skipped")

    target = opts.get("target")
    if target:
        template_path = ctx.root / str(opts.get("template", ""))
        if opts.get("template") and template_path.is_file():
            try:
                template_source = template_path.read_text(encoding="utf-8")
            except OSError as exc:
                raise PipelineError(
                    str(exc), asset=ctx.asset.name, stage="iconfont-css", path=template_path,
                ) from exc
        else:
            template_source = DEFAULT_TEMPLATE
        try:
            stylesheet = render_stylesheet(
                glyphs,
                template_source,
                font_name=font_name,
                font_path=str(opts.get("font_path", "./")),
                css_class=str(opts.get("css_class", "icon")),
                formats=formats,
            )
        except Exception as exc:
            raise PipelineError(
                str(exc), asset=ctx.asset.name, stage="iconfont-css", path=template_path,
            ) from exc
        relative = os.path.relpath(ctx.root / str(target), ctx.dest)
        outputs.append(AssetFile(
            relative=PurePosixPath(relative.replace(os.sep, "/")),
            contents=stylesheet.encode("utf-8"),
        ))

    return tuple(outputs)
