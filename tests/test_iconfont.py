"""Tests for kiln.stages.iconfont — SVG icons to fonts and a stylesheet."""

from __future__ import annotations

import io
from dataclasses import replace
from pathlib import Path, PurePosixPath

import pytest
from fontTools.ttLib import TTFont

from kiln.config import KilnConfig
from kiln.pipeline.files import AssetFile
from kiln.pipeline.runner import PipelineRunner
from kiln.pipeline.stage import StageContext
from kiln.stages.iconfont import collect_glyphs, generate_iconfont
from tests.conftest import ICON_SQUARE, write

_FONT_DIR = "dist/assets/fonts"
_TARGET = "src/sass/components/iconfonts.scss"


def _ctx(config: KilnConfig) -> StageContext:
    return StageContext(config=config, asset=config.asset("iconfont"))


def _icon(name: str, svg: str = ICON_SQUARE) -> AssetFile:
    return AssetFile(relative=PurePosixPath(name), contents=svg.encode())


def _with_options(config: KilnConfig, **options: object) -> KilnConfig:
    iconfont = config.asset("iconfont").with_options(**options)
    return replace(config, assets={**config.assets, "iconfont": iconfont})


def _outputs(root: Path) -> dict[str, bytes]:
    files = sorted((root / _FONT_DIR).iterdir())
    return {p.name: p.read_bytes() for p in files} | {"fragment": (root / _TARGET).read_bytes()}


class TestCollectGlyphs:
    """Codepoint assignment and ordering."""

    def test_sorted_by_name_from_start_codepoint(self, config: KilnConfig) -> None:
        glyphs = collect_glyphs((_icon("zoom.svg"), _icon("arrow.svg")), _ctx(config))
        assert [(g.name, g.codepoint) for g in glyphs] == [("arrow", 0xEA01), ("zoom", 0xEA02)]

    def test_pinned_codepoint(self, config: KilnConfig) -> None:
        glyphs = collect_glyphs((_icon("uEA01-star.svg"), _icon("arrow.svg")), _ctx(config))
        assert {g.name: g.codepoint for g in glyphs} == {"star": 0xEA01, "arrow": 0xEA02}

    def test_non_svg_ignored(self, config: KilnConfig) -> None:
        assert collect_glyphs((_icon("notes.txt"),), _ctx(config)) == ()

    def test_duplicate_names_rejected(self, config: KilnConfig) -> None:
        from kiln._errors import PipelineError

        files = (_icon("home.svg"), _icon("uEA20-home.svg"))
        with pytest.raises(PipelineError, match="duplicate"):
            collect_glyphs(files, _ctx(config))

    def test_duplicate_pinned_codepoints_rejected(self, config: KilnConfig) -> None:
        from kiln._errors import PipelineError

        files = (_icon("uEA01-a.svg"), _icon("uEA01-b.svg"))
        with pytest.raises(PipelineError, match="U\+EA01"):
            collect_glyphs(files, _ctx(config))

    def test_unusable_icon(self, config: KilnConfig) -> None:
        from kiln._errors import PipelineError

        bad = _icon("bad.svg", '<svg xmlns="http://www.w3.org/2000/svg"><path d="M0 0"/></svg>')
        with pytest.raises(PipelineError, match="viewBox"):
            collect_glyphs((bad,), _ctx(config))

    def test_normalized_advance(self, config: KilnConfig) -> None:
        (glyph,) = collect_glyphs((_icon("home.svg"),), _ctx(config))
        assert glyph.advance == 1001


class TestIconfontPipeline:
    """The iconfont pipeline writes fonts plus the stylesheet fragment."""

    def test_outputs(self, config: KilnConfig) -> None:
        result = PipelineRunner(config).run("iconfont")
        assert result.ok
        fonts = config.root / _FONT_DIR
        for ext in ("ttf", "woff", "woff2", "svg"):
            assert (fonts / f"iconfonts.{ext}").is_file()
        assert (config.root / _TARGET) in result.written

    def test_cmap(self, config: KilnConfig) -> None:
        PipelineRunner(config).run("iconfont")
        data = (config.root / _FONT_DIR / "iconfonts.woff2").read_bytes()
        font = TTFont(io.BytesIO(data))
        assert font.getBestCmap() == {0xEA01: "home", 0xEA10: "star"}
        assert font["head"].unitsPerEm == 1001

    def test_fragment(self, config: KilnConfig) -> None:
        PipelineRunner(config).run("iconfont")
        scss = (config.root / _TARGET).read_text()
        assert 'font-family: "iconfonts";' in scss
        assert "url('/assets/fonts/iconfonts.woff2') format('woff2')" in scss
        assert ".icon-home:before" in scss
        assert '"\\EA01"' in scss
        assert ".icon-star:before" in scss
        assert '"\\EA10"' in scss

    def test_custom_template(self, config: KilnConfig) -> None:
        write(
            config.root,
            "src/icon-font-template.scss",
            "{% for glyph in glyphs %}${{ glyph.name }}: '\\{{ glyph.codepoint }}';\n{% endfor %}",
        )
        PipelineRunner(config).run("iconfont")
        scss = (config.root / _TARGET).read_text()
        assert "$home: '\\EA01';" in scss

    def test_deterministic_with_fixed_timestamp(self, config: KilnConfig) -> None:
        runner = PipelineRunner(config)
        runner.run("iconfont")
        first = _outputs(config.root)
        runner.run("iconfont")
        assert _outputs(config.root) == first

    def test_selected_formats(self, config: KilnConfig) -> None:
        custom = _with_options(config, formats=("woff2", "eot"))
        result = PipelineRunner(custom).run("iconfont")
        assert result.ok
        names = sorted(p.name for p in (config.root / _FONT_DIR).iterdir())
        assert names == ["iconfonts.woff2"]

    def test_empty_icon_set(self, empty_config: KilnConfig) -> None:
        assert generate_iconfont((), _ctx(empty_config)) == ()

    def test_codepoint_collision_fails_without_writing(self, config: KilnConfig) -> None:
        write(config.root, "src/iconfonts/uEA10-pin.svg", ICON_SQUARE)
        result = PipelineRunner(config).run("iconfont")
        assert not result.ok
        assert result.error is not None
        assert result.error.stage == "iconfont"
        assert not (config.root / _FONT_DIR).exists()
