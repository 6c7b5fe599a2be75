"""Tests for kiln.stages.templates — Pug to HTML."""

from __future__ import annotations

from pathlib import PurePosixPath

from kiln.config import KilnConfig
from kiln.pipeline.files import AssetFile
from kiln.pipeline.runner import PipelineRunner
from kiln.stages.templates import is_partial
from tests.conftest import write


class TestIsPartial:
    def test_underscore_file(self) -> None:
        assert is_partial(AssetFile(relative=PurePosixPath("_layout.pug"), contents=b""))

    def test_underscore_directory(self) -> None:
        assert is_partial(AssetFile(relative=PurePosixPath("_mixins/nav.pug"), contents=b""))

    def test_regular_page(self) -> None:
        assert not is_partial(AssetFile(relative=PurePosixPath("blog/post.pug"), contents=b""))


class TestCompilePug:
    """The templates pipeline renders pages into the dist root."""

    def test_index_rendered(self, config: KilnConfig) -> None:
        result = PipelineRunner(config).run("templates")
        index = config.root / "dist/index.html"
        assert result.ok
        assert index in result.written
        html = index.read_text()
        assert "<h1>Hello</h1>" in html
        assert "<title>Home</title>" in html

    def test_partials_not_emitted(self, config: KilnConfig) -> None:
        PipelineRunner(config).run("templates")
        assert not (config.root / "dist/_layout.html").exists()

    def test_nested_page_keeps_directory(self, config: KilnConfig) -> None:
        write(config.root, "src/pug/blog/first.pug", "p First post\n")
        PipelineRunner(config).run("templates")
        assert "First post" in (config.root / "dist/blog/first.html").read_text()

    def test_locals_available(self, config: KilnConfig) -> None:
        from dataclasses import replace

        write(config.root, "src/pug/greet.pug", "p= greeting\n")
        templates = config.asset("templates").with_options(locals={"greeting": "Howdy"})
        custom = replace(config, assets={**config.assets, "templates": templates})
        PipelineRunner(custom).run("templates")
        assert "Howdy" in (config.root / "dist/greet.html").read_text()

    def test_bad_template_reports_stage(self, config: KilnConfig) -> None:
        write(config.root, "src/pug/broken.pug", "p= missing_filter | nosuchfilter\n")
        result = PipelineRunner(config).run("templates")
        assert result.error is not None
        assert result.error.stage == "pug"
        assert not (config.root / "dist/index.html").exists()
