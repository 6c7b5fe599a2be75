"""Error sink — reports a failed pipeline without taking the process down.

Every :class:`~kiln._errors.PipelineError` caught at the pipeline boundary
ends up here: it is printed with a highlighted marker and, when enabled,
raised as a desktop notification (``notify-send`` on Linux, ``osascript``
on macOS).
"""

from __future__ import annotations

import json
import shutil
import subprocess
import sys
import threading
from typing import TYPE_CHECKING

from kiln._console import log_error

if TYPE_CHECKING:
    from kiln._errors import PipelineError

NOTIFICATION_TITLE = "Error in Build"


def _notification_command(title: str, message: str) -> list[str]:
    if sys.platform == "darwin":
        script = f"display notification {json.dumps(message)} with title {json.dumps(title)}"
        return ["osascript", "-e", script]
    return ["notify-send", "--app-name=kiln", title, message]


def send_notification(title: str, message: str) -> bool:
    """Show a desktop notification. Returns False when no notifier is available."""
    command = _notification_command(title, message)
    if shutil.which(command[0]) is None:
        return False
    try:
        subprocess.run(command, capture_output=True, check=False, timeout=5)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return True


class ErrorSink:
    """Terminal + optional desktop reporting for pipeline failures.

    Args:
        notify: Also raise a desktop notification per failure.

    """

    def __init__(self, *, notify: bool = False) -> None:
        self._notify = notify
        self._reported = 0
        self._lock = threading.Lock()

    @property
    def reported(self) -> int:
        """Number of failures reported so far."""
        return self._reported

    def report(self, error: PipelineError) -> None:
        """Log *error* and notify. Never raises."""
        with self._lock:
            self._reported += 1
        log_error(f"{error.location}: {error}")
        if self._notify:
            send_notification(NOTIFICATION_TITLE, f"{error.location}: {error}")
