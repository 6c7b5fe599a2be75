"""Kiln — front-end asset builds with a watch / rebuild / reload loop.

Compiles Pug templates, Sass stylesheets, optimised images and icon fonts
into a ``dist/`` tree, then keeps a browser session in sync while you edit.

Quick start::

    import kiln

    kiln.dev("my-project/")

Two modes::

    kiln.dev("my-project/")       # Watch, rebuild, live reload
    kiln.build("my-project/")     # One-shot production build

Every transformation is delegated to a library:

    pypugjs + jinja2   templates   (Pug -> HTML)
    libsass            stylesheets (Sass -> CSS + source maps)
    Pillow + scour     images      (PNG, JPEG, GIF, SVG)
    fontTools          icon fonts  (SVG icons -> TTF, WOFF, WOFF2, SVG)
    watchfiles         watching
    websockets         reload server

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0.dev0"
__all__ = [
    "KilnConfig",
    "__version__",
    "build",
    "dev",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import kiln`` fast; the stage libraries load on first use.
    """
    if name == "KilnConfig":
        from kiln.config import KilnConfig

        return KilnConfig

    if name == "dev":
        from kiln.app import dev

        return dev

    if name == "build":
        from kiln.app import build

        return build

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
