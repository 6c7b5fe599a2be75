"""File watching — glob bindings dispatched from a watchfiles loop."""

from kiln.watch.scheduler import BindingState, WatchBinding, WatchScheduler

__all__ = ["BindingState", "WatchBinding", "WatchScheduler"]
