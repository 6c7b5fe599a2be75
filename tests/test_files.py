"""Tests for kiln.pipeline.files — glob selection and output writing."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest

from kiln._errors import ConfigError
from kiln.pipeline.files import (
    AssetFile,
    glob_base,
    matches_glob,
    output_path,
    read_sources,
    write_outputs,
)
from tests.conftest import write


class TestGlobBase:
    """glob_base — the non-magic leading directory."""

    def test_recursive_glob(self) -> None:
        assert glob_base("src/pug/**/*.pug") == PurePosixPath("src/pug")

    def test_single_level(self) -> None:
        assert glob_base("src/js/*.js") == PurePosixPath("src/js")

    def test_literal_file(self) -> None:
        assert glob_base("src/app.js") == PurePosixPath("src")

    def test_magic_first_segment(self) -> None:
        assert glob_base("*.txt") == PurePosixPath(".")


class TestMatchesGlob:
    """matches_glob — root-relative path matching."""

    @pytest.mark.parametrize(
        ("path", "pattern"),
        [
            ("src/sass/main.scss", "src/sass/**/*.scss"),
            ("src/sass/components/iconfonts.scss", "src/sass/**/*.scss"),
            ("src/iconfonts/home.svg", "src/iconfonts/**/*.*"),
            ("src/js/app.js", "src/js/*.js"),
        ],
    )
    def test_matches(self, path: str, pattern: str) -> None:
        assert matches_glob(path, pattern)

    @pytest.mark.parametrize(
        ("path", "pattern"),
        [
            ("src/sass/main.css", "src/sass/**/*.scss"),
            ("src/js/vendor/lib.js", "src/js/*.js"),
            ("dist/assets/css/main.scss", "src/sass/**/*.scss"),
            ("src/fonts/README", "src/fonts/**/*.*"),
        ],
    )
    def test_does_not_match(self, path: str, pattern: str) -> None:
        assert not matches_glob(path, pattern)

    def test_dotfiles_never_match(self) -> None:
        assert not matches_glob("src/js/.cache/app.js", "src/js/**/*.js")
        assert not matches_glob("src/img/.DS_Store.png", "src/img/**/*.*")


class TestReadSources:
    """read_sources — files matching a glob, relative to its base."""

    def test_relative_to_base(self, tmp_path: Path) -> None:
        write(tmp_path, "src/sass/main.scss", "a")
        write(tmp_path, "src/sass/layout/grid.scss", "b")
        files = read_sources(tmp_path, "src/sass/**/*.scss")
        assert [f.relative for f in files] == [
            PurePosixPath("layout/grid.scss"),
            PurePosixPath("main.scss"),
        ]
        assert files[1].contents == b"a"
        assert files[1].source == tmp_path / "src/sass/main.scss"

    def test_missing_base_is_empty(self, tmp_path: Path) -> None:
        assert read_sources(tmp_path, "src/pug/**/*.pug") == ()

    def test_no_matches_is_empty(self, tmp_path: Path) -> None:
        write(tmp_path, "src/js/readme.md", "x")
        assert read_sources(tmp_path, "src/js/**/*.js") == ()

    def test_skips_dotfiles(self, tmp_path: Path) -> None:
        write(tmp_path, "src/js/app.js", "x")
        write(tmp_path, "src/js/.hidden.js", "x")
        files = read_sources(tmp_path, "src/js/**/*.js")
        assert [f.name for f in files] == ["app.js"]

    def test_absolute_pattern_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="relative"):
            read_sources(tmp_path, "/etc/**/*.conf")


class TestAssetFile:
    """AssetFile — immutable file in flight."""

    def test_derive_suffix(self) -> None:
        file = AssetFile(relative=PurePosixPath("pages/about.pug"), contents=b"p hi")
        html = file.derive("<p>hi</p>", suffix=".html")
        assert html.relative == PurePosixPath("pages/about.html")
        assert html.contents == b"<p>hi</p>"
        assert file.contents == b"p hi"

    def test_text(self) -> None:
        assert AssetFile(relative=PurePosixPath("a"), contents="é".encode()).text() == "é"


class TestWriteOutputs:
    """write_outputs — files land under the destination."""

    def test_creates_directories(self, tmp_path: Path) -> None:
        files = (AssetFile(relative=PurePosixPath("a/b/c.txt"), contents=b"x"),)
        written = write_outputs(tmp_path / "dist", files)
        assert written == (tmp_path / "dist/a/b/c.txt",)
        assert written[0].read_bytes() == b"x"
        assert sorted(p.name for p in written[0].parent.iterdir()) == ["c.txt"]

    def test_parent_segments_normalised(self, tmp_path: Path) -> None:
        file = AssetFile(relative=PurePosixPath("../../src/out.scss"), contents=b"x")
        assert output_path(tmp_path / "dist/fonts", file) == tmp_path / "src/out.scss"
