"""Event log — what a dev session or build has done so far.

The runner appends a :class:`PipelineRun` per run and the broadcaster a
:class:`ReloadSent` per push.  ``dev`` reads it back on shutdown to print
the session summary (runs, failures, browser updates, classes still
failing).

Thread Safety:
    Pipelines append from worker threads while the event loop reads, so
    every access goes through one ``threading.Lock``.

"""

import threading
from collections import Counter, deque
from dataclasses import dataclass

from kiln.observability.events import KilnEvent, PipelineRun, ReloadSent


@dataclass(frozen=True, slots=True)
class RunSummary:
    """Totals over the retained events.

    Attributes:
        runs: Pipeline runs.
        failed: Pipeline runs that failed.
        files_written: Output files written across all runs.
        pushes: Browser messages sent, by kind (``reload``, ``inject``, ``error``).
        failing: Asset classes whose latest run failed, sorted.

    """

    runs: int
    failed: int
    files_written: int
    pushes: dict[str, int]
    failing: tuple[str, ...]


def _event_asset(event: KilnEvent) -> str:
    if isinstance(event, PipelineRun):
        return event.asset
    return event.trigger


class EventLog:
    """Bounded, thread-safe store of run events.

    Args:
        max_events: Events retained; the oldest are dropped first.

    """

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[KilnEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: KilnEvent) -> None:
        with self._lock:
            self._events.append(event)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def _snapshot(self) -> list[KilnEvent]:
        with self._lock:
            return list(self._events)

    def query(
        self,
        *,
        event_type: type | None = None,
        asset: str | None = None,
        limit: int = 100,
    ) -> list[KilnEvent]:
        """Matching events, most recent first.

        ``asset`` matches a run's asset class or the class that triggered a
        browser push.
        """
        results: list[KilnEvent] = []
        for event in reversed(self._snapshot()):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if asset is not None and _event_asset(event) != asset:
                continue
            results.append(event)
        return results

    def failing(self) -> tuple[str, ...]:
        """Asset classes whose most recent run failed."""
        latest: dict[str, PipelineRun] = {}
        for event in self._snapshot():
            if isinstance(event, PipelineRun):
                latest[event.asset] = event
        return tuple(sorted(name for name, run in latest.items() if run.status == "failed"))

    def summary(self) -> RunSummary:
        events = self._snapshot()
        runs = [e for e in events if isinstance(e, PipelineRun)]
        pushes = Counter(e.kind for e in events if isinstance(e, ReloadSent))
        return RunSummary(
            runs=len(runs),
            failed=sum(1 for r in runs if r.status == "failed"),
            files_written=sum(r.files_written for r in runs),
            pushes=dict(pushes),
            failing=self.failing(),
        )
