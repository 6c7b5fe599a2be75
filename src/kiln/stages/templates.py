"""Templates stage — Pug to HTML via pypugjs and Jinja2.

pypugjs preprocesses ``.pug`` sources into Jinja2 syntax; Jinja2 then
resolves ``extends`` / ``include`` against the template directory and
renders the page.  Partials (any path segment starting with ``_``) are
available to includes but are not emitted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jinja2 import Environment, FileSystemLoader
from pypugjs.ext.jinja import PyPugJSExtension

from kiln._errors import PipelineError
from kiln.pipeline.files import glob_base

if TYPE_CHECKING:
    from kiln.pipeline.files import AssetFile
    from kiln.pipeline.stage import StageContext


def is_partial(file: AssetFile) -> bool:
    """Files or directories prefixed with ``_`` are include-only."""
    return any(part.startswith("_") for part in file.relative.parts)


def _environment(ctx: StageContext) -> Environment:
    template_dir = ctx.root / glob_base(ctx.asset.source_glob)
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        extensions=[PyPugJSExtension],
        autoescape=False,
    )


def compile_pug(files: tuple[AssetFile, ...], ctx: StageContext) -> tuple[AssetFile, ...]:
    """Render each non-partial ``.pug`` file to ``.html``.

    Raises:
        PipelineError: On the first template that fails to compile or render.

    """
    env = _environment(ctx)
    context = dict(ctx.asset.option("locals") or {})

    rendered: list[AssetFile] = []
    for file in files:
        if is_partial(file):
            continue
        try:
            template = env.get_template(file.relative.as_posix())
            html = template.render(**context)
        except Exception as exc:
            raise PipelineError(
                str(exc), asset=ctx.asset.name, stage="pug", path=file.source,
            ) from exc
        rendered.append(file.derive(html, suffix=".html"))
    return tuple(rendered)
