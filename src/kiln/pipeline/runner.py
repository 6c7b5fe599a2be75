"""Pipeline runner — glob -> stages -> dest, with failures contained.

A run reads every source matching the asset class glob, applies the
registered stages in memory, and only then writes the outputs.  A failing
stage therefore leaves the previous build output untouched.

Failures never propagate: they are wrapped in a
:class:`~kiln._errors.PipelineError`, handed to the error sink, recorded in
the event log, and returned on the :class:`PipelineResult`.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from kiln._console import CYAN, MAGENTA, RESET, log, plural
from kiln._errors import PipelineError
from kiln.observability.events import PipelineRun, now_ns
from kiln.pipeline.files import read_sources, write_outputs
from kiln.pipeline.registry import PIPELINES
from kiln.pipeline.sink import ErrorSink
from kiln.pipeline.stage import StageContext

if TYPE_CHECKING:
    from kiln.config import KilnConfig
    from kiln.observability.log import EventLog
    from kiln.pipeline.stage import Pipeline


@dataclass(frozen=True, slots=True)
class PipelineResult:
    """Outcome of one pipeline run.

    Attributes:
        asset: Asset class name.
        written: Absolute paths of files written.
        skipped: Sources skipped by the pipeline's selection filter.
        error: The failure, if the run failed (nothing was written).
        duration_ms: Wall time of the run in milliseconds.

    """

    asset: str
    written: tuple[Path, ...] = ()
    skipped: int = 0
    error: PipelineError | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def urls(self, document_root: Path, suffix: str | None = None) -> tuple[str, ...]:
        """Written files under *document_root* as site-absolute URL paths."""
        urls: list[str] = []
        for path in self.written:
            if suffix is not None and path.suffix != suffix:
                continue
            if not path.is_relative_to(document_root):
                continue
            urls.append("/" + path.relative_to(document_root).as_posix())
        return tuple(urls)


class PipelineRunner:
    """Runs asset pipelines against one immutable configuration.

    Safe to call from several threads at once for *different* asset
    classes; the registry, config and sink are shared read-only.

    Args:
        config: Project configuration passed to every stage.
        sink: Error sink for failed runs (a terminal-only sink by default).
        events: Optional event log receiving a :class:`PipelineRun` per run.
        registry: Asset class -> pipeline mapping.

    """

    def __init__(
        self,
        config: KilnConfig,
        *,
        sink: ErrorSink | None = None,
        events: EventLog | None = None,
        registry: Mapping[str, Pipeline] = PIPELINES,
    ) -> None:
        self._config = config
        self._sink = sink if sink is not None else ErrorSink(notify=config.notify)
        self._events = events
        self._registry = registry

    @property
    def config(self) -> KilnConfig:
        return self._config

    def run(self, name: str, *, trigger: str = "build") -> PipelineResult:
        """Run the pipeline for asset class *name*.

        Never raises for stage or file-system failures; inspect
        ``result.error`` instead.

        """
        t0 = time.perf_counter()
        log(f"Starting '{CYAN}{name}{RESET}'...")

        written: tuple[Path, ...] = ()
        skipped = 0
        error: PipelineError | None = None
        step = "read"
        try:
            asset = self._config.asset(name)
            pipeline = self._registry[name]
            ctx = StageContext(config=self._config, asset=asset)

            files = read_sources(self._config.root, asset.source_glob)
            if pipeline.select is not None:
                step = "select"
                selected = tuple(f for f in files if pipeline.select(f, ctx))
                skipped = len(files) - len(selected)
                files = selected

            for stage in pipeline.stages:
                if not files:
                    break
                step = stage.name
                files = stage.run(files, ctx)

            step = "write"
            written = write_outputs(ctx.dest, files)
        except PipelineError as exc:
            error = exc
        except Exception as exc:
            error = PipelineError(str(exc), asset=name, stage=step)
            error.__cause__ = exc

        duration_ms = (time.perf_counter() - t0) * 1000
        result = PipelineResult(
            asset=name,
            written=() if error else written,
            skipped=skipped,
            error=error,
            duration_ms=duration_ms,
        )

        if error is not None:
            self._sink.report(error)
        else:
            detail = plural(len(written), "file")
            if skipped:
                detail += f", {skipped} up to date"
            log(
                f"Finished '{CYAN}{name}{RESET}' after "
                f"{MAGENTA}{duration_ms:.0f} ms{RESET} ({detail})"
            )

        if self._events is not None:
            self._events.append(PipelineRun(
                asset=name,
                status="ok" if error is None else "failed",
                files_written=len(result.written),
                files_skipped=skipped,
                duration_ms=duration_ms,
                trigger=trigger,
                error=str(error) if error is not None else None,
                timestamp_ns=now_ns(),
            ))

        return result


def run_pipeline(name: str, config: KilnConfig, **kwargs: object) -> PipelineResult:
    """Run one asset pipeline with a throwaway runner."""
    return PipelineRunner(config, **kwargs).run(name)  # type: ignore[arg-type]
