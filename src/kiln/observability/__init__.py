"""Observability — a bounded log of pipeline runs and reload broadcasts.

Quick Start:
    >>> from kiln.observability import EventLog, PipelineRun
    >>> log = EventLog()
    >>> # PipelineRunner and Broadcaster append to it as they work
    >>> failed = log.query(event_type=PipelineRun)
    >>> still_broken = log.failing()

"""

from kiln.observability.events import KilnEvent, PipelineRun, ReloadSent, now_ns
from kiln.observability.log import EventLog, RunSummary

__all__ = [
    "EventLog",
    "KilnEvent",
    "PipelineRun",
    "ReloadSent",
    "RunSummary",
    "now_ns",
]
