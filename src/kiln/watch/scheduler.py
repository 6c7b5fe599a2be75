"""Watch scheduler — glob bindings, change dispatch, coalesced re-runs.

A binding pairs an asset class glob with an async handler.  One
``watchfiles.awatch`` loop covers every binding's base directory; each
debounced change batch is dispatched so that a binding fires at most once
per batch, and only when one of the changed paths matches its glob.

Per binding the scheduler keeps a tiny state machine::

    idle -> running -> idle
              |  ^
              v  |     a trigger while running sets the pending slot;
            pending    the run loops once more when it finishes

Bursts of changes therefore coalesce into at most one extra run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from watchfiles import awatch

from kiln._console import CYAN, RESET, log, log_error
from kiln._errors import ConfigError
from kiln.pipeline.files import glob_base, matches_glob

if TYPE_CHECKING:
    from collections.abc import Iterable

    from watchfiles import Change

    from kiln._types import WatchHandler


@dataclass(frozen=True, slots=True)
class WatchBinding:
    """A glob whose matching changes fire *handler*.

    Attributes:
        name: Binding name (the asset class).
        glob: Glob relative to the project root.
        handler: Async callback run on a matching change batch.
        ignore_initial: When False, fire once when the scheduler starts.

    """

    name: str
    glob: str
    handler: WatchHandler
    ignore_initial: bool = True

    def matches(self, relative: PurePosixPath) -> bool:
        return matches_glob(relative, self.glob)


@dataclass(slots=True)
class BindingState:
    """Mutable run state of one binding (event loop thread only)."""

    running: bool = False
    pending: bool = False
    runs: int = 0


class WatchScheduler:
    """Maps file changes under *root* to binding handlers.

    Args:
        root: Project root; globs and change paths are relative to it.
        debounce: watchfiles debounce window in milliseconds.
        step: watchfiles polling step in milliseconds.

    """

    def __init__(self, root: Path, *, debounce: int = 300, step: int = 100) -> None:
        self._root = root.resolve()
        self._debounce = debounce
        self._step = step
        self._bindings: dict[str, WatchBinding] = {}
        self._states: dict[str, BindingState] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._stop_event = asyncio.Event()

    @property
    def bindings(self) -> tuple[WatchBinding, ...]:
        return tuple(self._bindings.values())

    def state(self, name: str) -> BindingState:
        return self._states[name]

    def watch(
        self,
        name: str,
        glob: str,
        handler: WatchHandler,
        *,
        ignore_initial: bool = True,
    ) -> WatchBinding:
        """Register a binding.

        Raises:
            ConfigError: If *name* is already bound.

        """
        if name in self._bindings:
            msg = f"Watch binding {name!r} already registered"
            raise ConfigError(msg)
        binding = WatchBinding(name=name, glob=glob, handler=handler, ignore_initial=ignore_initial)
        self._bindings[name] = binding
        self._states[name] = BindingState()
        return binding

    # -- dispatch --

    def _relative(self, path: str) -> PurePosixPath | None:
        try:
            rel = Path(path).relative_to(self._root)
        except ValueError:
            return None
        return PurePosixPath(rel.as_posix())

    def dispatch(self, changes: Iterable[tuple[Change, str]]) -> tuple[WatchBinding, ...]:
        """Trigger every binding matched by a change batch.

        Each binding fires at most once per batch; changes matching no glob
        trigger nothing.  Must be called from the event loop thread.

        Returns:
            The bindings that were triggered.

        """
        paths = [rel for _kind, path in changes if (rel := self._relative(path)) is not None]
        fired = tuple(b for b in self._bindings.values() if any(b.matches(p) for p in paths))
        for binding in fired:
            self.trigger(binding.name)
        return fired

    def trigger(self, name: str) -> None:
        """Run binding *name*, or mark it pending if already running."""
        state = self._states[name]
        if state.running:
            state.pending = True
            return
        state.running = True
        task = asyncio.get_running_loop().create_task(self._run(self._bindings[name]))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, binding: WatchBinding) -> None:
        state = self._states[binding.name]
        try:
            while True:
                state.pending = False
                state.runs += 1
                try:
                    await binding.handler()
                except Exception as exc:
                    log_error(f"Watch handler '{binding.name}' failed: {exc}")
                if not state.pending:
                    break
        finally:
            state.running = False

    async def drain(self) -> None:
        """Wait for every in-flight run, including pending re-runs."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # -- watch loop --

    def watch_paths(self) -> tuple[Path, ...]:
        """Directories to watch: the nearest existing base of every glob.

        Nested directories are dropped since watching is recursive.
        """
        bases: set[Path] = set()
        for binding in self._bindings.values():
            base = self._root / glob_base(binding.glob)
            while not base.is_dir() and base != self._root:
                base = base.parent
            bases.add(base)
        return tuple(
            sorted(b for b in bases if not any(b != o and b.is_relative_to(o) for o in bases))
        )

    async def run(self) -> None:
        """Fire the initial bindings, then dispatch changes until :meth:`stop`."""
        for binding in self._bindings.values():
            if not binding.ignore_initial:
                self.trigger(binding.name)

        paths = self.watch_paths()
        if not paths:
            return
        for path in paths:
            log(f"Watching {CYAN}{path.relative_to(self._root).as_posix()}{RESET}")

        async for changes in awatch(
            *paths,
            stop_event=self._stop_event,
            debounce=self._debounce,
            step=self._step,
        ):
            self.dispatch(changes)

    def stop(self) -> None:
        """Signal the watch loop to end after the current batch."""
        self._stop_event.set()
