"""Shared test fixtures for kiln."""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from kiln.config import KilnConfig, default_assets

ICON_SQUARE = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24">'
    '<path d="M2 2h20v20H2z"/></svg>'
)
ICON_TRIANGLE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="32" height="32">'
    '<path d="M16 2L30 30H2z"/></svg>'
)

# Fixed icon-font timestamp so outputs are reproducible
ICON_TIMESTAMP = 1_700_000_000


def write(root: Path, relative: str, contents: str | bytes) -> Path:
    """Write *contents* to root/relative, creating parent directories."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(contents, bytes):
        path.write_bytes(contents)
    else:
        path.write_text(contents, encoding="utf-8")
    return path


def make_project(root: Path) -> Path:
    """Populate *root* with one source file (or more) per asset class."""
    write(root, "src/pug/index.pug", "doctype html\nhtml\n  head\n    title Home\n  body\n    h1 Hello\n")
    write(root, "src/pug/_layout.pug", "html\n  body\n    block content\n")

    write(root, "src/sass/_vars.scss", "$brand: #336699;\n")
    write(root, "src/sass/main.scss", '@import "vars";\n\nbody {\n  color: $brand;\n}\n')

    write(root, "src/js/app.js", "console.log('kiln');\n")
    write(root, "src/fonts/body.woff2", b"wOF2fake-font-bytes")

    image = root / "src/img/red.png"
    image.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (32, 32), (255, 0, 0)).save(image)

    write(root, "src/iconfonts/home.svg", ICON_SQUARE)
    write(root, "src/iconfonts/uEA10-star.svg", ICON_TRIANGLE)
    return root


def make_config(root: Path, **kwargs: object) -> KilnConfig:
    """A KilnConfig for tests: no external autoprefixer, fixed icon timestamp."""
    defaults = default_assets()
    assets = {
        "styles": defaults["styles"].with_options(autoprefix_command=()),
        "iconfont": defaults["iconfont"].with_options(timestamp=ICON_TIMESTAMP),
    }
    return KilnConfig(root=root, assets=assets, **kwargs)  # type: ignore[arg-type]


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A complete source tree under a temp directory."""
    return make_project(tmp_path)


@pytest.fixture
def config(project: Path) -> KilnConfig:
    """Test config rooted at the ``project`` tree."""
    return make_config(project)


@pytest.fixture
def empty_config(tmp_path: Path) -> KilnConfig:
    """Test config rooted at an empty directory."""
    return make_config(tmp_path)
