"""Kiln application — the build and dev entry points.

``build`` runs the production asset pipelines once, concurrently, and
reports per-class results.  ``dev`` wires the watch scheduler, the pipeline
runner and the reload server into one event loop and keeps running until
interrupted.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import time
import webbrowser
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from kiln._console import GREEN, RED, RESET, log, log_error, plural
from kiln.config import ASSET_NAMES
from kiln.config_loader import load_config
from kiln.observability.log import EventLog, RunSummary
from kiln.pipeline.registry import BUILD_ASSETS
from kiln.pipeline.runner import PipelineResult, PipelineRunner
from kiln.pipeline.sink import ErrorSink
from kiln.reactive.broadcaster import Broadcaster
from kiln.reactive.server import ReloadServer
from kiln.stages.iconfont import unsupported_formats
from kiln.stages.styles import missing_autoprefixer
from kiln.watch.scheduler import WatchScheduler

if TYPE_CHECKING:
    from collections.abc import Iterable

    from kiln._types import WatchHandler
    from kiln.config import KilnConfig


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------

def startup_warnings(config: KilnConfig, names: Iterable[str]) -> list[str]:
    """Problems worth showing in the banner for the asset classes *names*."""
    warnings: list[str] = []
    wanted = set(names)
    if "styles" in wanted and (command := missing_autoprefixer(config.asset("styles"))):
        warnings.append(f"{command} not found, stylesheets are not autoprefixed")
    if "iconfont" in wanted and (formats := unsupported_formats(config.asset("iconfont"))):
        warnings.append(f"iconfont cannot produce {', '.join(formats)}, skipped")
    return warnings


@dataclass(frozen=True, slots=True)
class BuildReport:
    """Aggregated outcome of a one-shot build.

    Attributes:
        results: One result per asset class, in run order.
        duration_ms: Wall time of the whole build in milliseconds.

    """

    results: tuple[PipelineResult, ...]
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failed(self) -> tuple[str, ...]:
        """Names of the asset classes whose pipeline failed."""
        return tuple(r.asset for r in self.results if not r.ok)

    @property
    def files_written(self) -> int:
        return sum(len(r.written) for r in self.results)


def run_build(config: KilnConfig, *, events: EventLog | None = None) -> BuildReport:
    """Run the build asset classes concurrently and wait for all of them.

    A failing class never stops the others; its error is on its result.
    """
    runner = PipelineRunner(config, events=events)
    t0 = time.perf_counter()
    with ThreadPoolExecutor(max_workers=len(BUILD_ASSETS), thread_name_prefix="kiln-build") as pool:
        futures = [pool.submit(runner.run, name, trigger="build") for name in BUILD_ASSETS]
        results = tuple(f.result() for f in futures)
    return BuildReport(results=results, duration_ms=(time.perf_counter() - t0) * 1000)


def build(root: str | Path = ".", **kwargs: object) -> BuildReport:
    """Run the one-shot production build.

    Compiles stylesheets (compact), copies fonts, optimises images and
    generates icon fonts.

    Args:
        root: Path to the project root directory.
        **kwargs: Override KilnConfig fields.

    Returns:
        The aggregated :class:`BuildReport`; check ``report.ok``.

    """
    from kiln.banner import print_banner

    config = load_config(Path(root), **kwargs).for_production()
    print_banner(
        config, "build", assets=BUILD_ASSETS, warnings=startup_warnings(config, BUILD_ASSETS),
    )

    report = run_build(config)
    _print_build_summary(report)
    return report


def _print_build_summary(report: BuildReport) -> None:
    """Print build completion summary to stderr."""
    lines = ["", "─" * 41]
    if report.ok:
        lines.append(f"  {GREEN}Built{RESET} {plural(report.files_written, 'file')}")
    else:
        lines.append(f"  {RED}Failed{RESET}: {', '.join(report.failed)}")
    lines.append(f"  Done in {report.duration_ms:.0f}ms")
    print("\n".join(lines), file=sys.stderr)


# ---------------------------------------------------------------------------
# Dev
# ---------------------------------------------------------------------------

class DevSession:
    """Everything the dev loop needs, wired against one config.

    Each asset class becomes a watch binding whose handler runs the
    pipeline on a worker thread and then tells connected browsers what
    changed: a full reload, a stylesheet injection, or an error toast.

    Args:
        config: Project configuration (dev output style).
        events: Event log shared by the runner and the broadcaster.
        debounce: Milliseconds the watcher waits to group changes into a batch.

    """

    def __init__(
        self,
        config: KilnConfig,
        *,
        events: EventLog | None = None,
        debounce: int = 300,
    ) -> None:
        self.config = config
        self.events = events if events is not None else EventLog()
        self.broadcaster = Broadcaster(events=self.events)
        self.runner = PipelineRunner(
            config, sink=ErrorSink(notify=config.notify), events=self.events,
        )
        self.server = ReloadServer(
            config.dist_path, self.broadcaster, host=config.host, port=config.port,
        )
        self.scheduler = WatchScheduler(config.root, debounce=debounce)
        for name in ASSET_NAMES:
            asset = config.asset(name)
            self.scheduler.watch(
                name, asset.source_glob, self._handler(name), ignore_initial=asset.ignore_initial,
            )

    def _handler(self, name: str) -> WatchHandler:
        async def handle() -> PipelineResult:
            return await self.rebuild(name)

        return handle

    async def rebuild(self, name: str) -> PipelineResult:
        """Run one asset pipeline off the loop, then notify browsers."""
        result = await asyncio.to_thread(self.runner.run, name, trigger="watch")
        if result.error is not None:
            await self.broadcaster.push_error(result.error)
            return result

        reload = self.config.asset(name).reload
        if reload == "full":
            await self.broadcaster.reload(trigger=name)
        elif reload == "inject":
            urls = result.urls(self.config.dist_path, ".css")
            await self.broadcaster.inject_styles(urls, trigger=name)
        return result

    async def serve(self, stop: asyncio.Event | None = None) -> None:
        """Run until *stop* is set (or SIGINT / SIGTERM), then shut down.

        Shutdown order: stop the watcher, let in-flight runs finish, close
        browser sessions, close the server.
        """
        from kiln.banner import print_banner

        stop = stop if stop is not None else asyncio.Event()
        await self.server.start()

        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, stop.set)
                installed.append(sig)

        print_banner(
            self.config, "dev", url=self.server.url,
            warnings=startup_warnings(self.config, ASSET_NAMES),
        )
        if self.config.open_browser:
            webbrowser.open(self.server.url)

        watching = asyncio.create_task(self.scheduler.run())
        stopping = asyncio.create_task(stop.wait())
        try:
            await asyncio.wait({watching, stopping}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            log("Shutting down...")
            self.scheduler.stop()
            stopping.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stopping
            try:
                await watching
            except Exception as exc:
                log_error(f"Watcher stopped: {exc}")
            await self.scheduler.drain()
            await self.server.close()
            for sig in installed:
                loop.remove_signal_handler(sig)
            _print_session_summary(self.events.summary())


_PUSH_LABELS = {"reload": "reload", "inject": "style injection", "error": "error toast"}


def _print_session_summary(summary: RunSummary) -> None:
    """Print what the dev session did to stderr."""
    lines = [
        "",
        "─" * 41,
        f"  {plural(summary.runs, 'run')}, {summary.failed} failed, "
        f"{plural(summary.files_written, 'file')} written",
    ]
    pushes = [
        plural(count, _PUSH_LABELS[kind])
        for kind, count in sorted(summary.pushes.items())
        if kind in _PUSH_LABELS
    ]
    if pushes:
        lines.append(f"  Browser: {', '.join(pushes)}")
    if summary.failing:
        lines.append(f"  {RED}Still failing{RESET}: {', '.join(summary.failing)}")
    print("\n".join(lines), file=sys.stderr)


def dev(root: str | Path = ".", **kwargs: object) -> None:
    """Start the watch / rebuild / live-reload loop.

    Serves the dist tree with live reload, runs the templates pipeline
    once, and rebuilds each asset class as its sources change.

    Args:
        root: Path to the project root directory.
        **kwargs: Override KilnConfig fields.

    """
    config = load_config(Path(root), **kwargs)
    session = DevSession(config)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(session.serve())
