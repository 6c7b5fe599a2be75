"""Run events — what happened in pipelines and the reload server.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class PipelineRun:
    """One completed pipeline run.

    Attributes:
        asset: Asset class name.
        status: ``ok`` or ``failed``.
        files_written: Number of output files written.
        files_skipped: Number of sources skipped as up to date.
        duration_ms: Wall time of the run in milliseconds.
        trigger: What started the run (``build`` or ``watch``).
        error: Error message for failed runs.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    asset: str
    status: Literal["ok", "failed"]
    files_written: int
    files_skipped: int
    duration_ms: float
    trigger: str
    error: str | None
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class ReloadSent:
    """A message was pushed to connected browser sessions.

    Attributes:
        kind: ``reload`` (full page), ``inject`` (stylesheets) or ``error``.
        clients_notified: Number of sessions that received it.
        trigger: Asset class whose run caused it.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    kind: Literal["reload", "inject", "error"]
    clients_notified: int
    trigger: str
    timestamp_ns: int


type KilnEvent = PipelineRun | ReloadSent


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
