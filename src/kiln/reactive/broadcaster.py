"""Reload broadcaster — pushes reload / style-inject messages to browsers.

Each connected browser session owns a queue.  Pushing a message enqueues a
JSON string on every session's queue; the server's connection handler
drains the queue into the websocket.

Message types (JSON objects, ``type`` field):

- ``reload``: full page reload
- ``css``: swap the listed stylesheet URLs in place, no reload
- ``error``: show a build-error toast

Push methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio
import json
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from kiln.observability.events import ReloadSent, now_ns

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from kiln._errors import PipelineError
    from kiln.observability.log import EventLog


@dataclass(frozen=True, slots=True)
class ReloadConnection:
    """A connected browser session.

    Attributes:
        client_id: Unique identifier for this connection.
        page: The page URL the session reported when connecting.
        queue: Outgoing messages; ``None`` closes the session.

    """

    client_id: str
    page: str = "/"
    queue: asyncio.Queue[str | None] = field(
        default_factory=asyncio.Queue, compare=False, hash=False,
    )


class Broadcaster:
    """Tracks browser sessions and fans messages out to them.

    Thread-safe: the session set is protected by a lock, so connection
    handlers and pipeline callbacks may subscribe / snapshot concurrently.

    Args:
        events: Optional event log receiving a :class:`ReloadSent` per push.

    """

    def __init__(self, events: EventLog | None = None) -> None:
        self._connections: set[ReloadConnection] = set()
        self._lock = threading.Lock()
        self._events = events

    @property
    def subscriber_count(self) -> int:
        """Number of connected sessions."""
        with self._lock:
            return len(self._connections)

    def subscribe(self, conn: ReloadConnection) -> None:
        """Register a browser session."""
        with self._lock:
            self._connections.add(conn)

    def unsubscribe(self, conn: ReloadConnection) -> None:
        """Remove a browser session (no-op if unknown)."""
        with self._lock:
            self._connections.discard(conn)

    def get_subscribers(self) -> frozenset[ReloadConnection]:
        """Snapshot of all sessions (no lock held on return)."""
        with self._lock:
            return frozenset(self._connections)

    def _push(
        self,
        message: dict[str, Any],
        kind: Literal["reload", "inject", "error"],
        trigger: str,
    ) -> int:
        payload = json.dumps(message)
        count = 0
        for conn in self.get_subscribers():
            try:
                conn.queue.put_nowait(payload)
                count += 1
            except asyncio.QueueFull:
                pass  # Drop if client queue is full

        if self._events is not None:
            self._events.append(ReloadSent(
                kind=kind, clients_notified=count, trigger=trigger, timestamp_ns=now_ns(),
            ))
        return count

    async def reload(self, trigger: str = "manual") -> int:
        """Tell every session to reload the page.

        Returns:
            Number of sessions notified.

        """
        return self._push({"type": "reload"}, "reload", trigger)

    async def inject_styles(self, urls: Iterable[str], trigger: str = "styles") -> int:
        """Tell every session to re-fetch the given stylesheets in place.

        Returns:
            Number of sessions notified (0 when *urls* is empty).

        """
        paths = sorted(set(urls))
        if not paths:
            return 0
        return self._push({"type": "css", "paths": paths}, "inject", trigger)

    async def push_error(self, error: PipelineError) -> int:
        """Show a build-error toast in every session."""
        message = {
            "type": "error",
            "asset": error.asset,
            "stage": error.stage,
            "message": str(error),
            "file": str(error.path) if error.path is not None else "",
        }
        return self._push(message, "error", error.asset)

    def close(self) -> None:
        """End every session's message stream."""
        for conn in self.get_subscribers():
            conn.queue.put_nowait(None)

    async def client_generator(self, conn: ReloadConnection) -> AsyncIterator[str]:
        """Async generator that yields messages from a session's queue.

        Ends on the ``None`` sentinel (server shutdown or client gone).
        Catches ``CancelledError`` (task cancellation) and ``GeneratorExit``
        (generator cleanup) so shutdown doesn't leak into the loop's
        exception handler.

        """
        try:
            while True:
                message = await conn.queue.get()
                if message is None:
                    return
                yield message
        except (asyncio.CancelledError, GeneratorExit):
            return
