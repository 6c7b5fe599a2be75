"""Tests for kiln.reactive.broadcaster — session management and messages."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from kiln._errors import PipelineError
from kiln.observability.events import ReloadSent
from kiln.observability.log import EventLog
from kiln.reactive.broadcaster import Broadcaster, ReloadConnection


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _conn(client_id: str, page: str = "/") -> ReloadConnection:
    """Create a test ReloadConnection."""
    return ReloadConnection(client_id=client_id, page=page)


def _next(conn: ReloadConnection) -> dict:
    return json.loads(conn.queue.get_nowait())


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestReloadConnection:
    """Verify ReloadConnection dataclass."""

    def test_frozen(self) -> None:
        conn = _conn("c1")
        with pytest.raises(AttributeError):
            conn.client_id = "other"  # type: ignore[misc]

    def test_has_queue(self) -> None:
        assert isinstance(_conn("c1").queue, asyncio.Queue)

    def test_equality_ignores_queue(self) -> None:
        """Queue is excluded from comparison (compare=False)."""
        assert _conn("c1", "/a/") == _conn("c1", "/a/")


class TestBroadcasterSubscriptions:
    """Tests for subscribe/unsubscribe."""

    def test_subscribe_and_get(self) -> None:
        b = Broadcaster()
        conn = _conn("c1")
        b.subscribe(conn)
        assert conn in b.get_subscribers()
        assert b.subscriber_count == 1

    def test_unsubscribe(self) -> None:
        b = Broadcaster()
        conn = _conn("c1")
        b.subscribe(conn)
        b.unsubscribe(conn)
        assert b.subscriber_count == 0

    def test_unsubscribe_unknown_is_noop(self) -> None:
        Broadcaster().unsubscribe(_conn("ghost"))

    def test_snapshot_is_frozen(self) -> None:
        b = Broadcaster()
        b.subscribe(_conn("c1"))
        assert isinstance(b.get_subscribers(), frozenset)


class TestBroadcasterMessages:
    """reload / inject_styles / push_error reach every session."""

    @pytest.mark.asyncio
    async def test_reload_reaches_all(self) -> None:
        b = Broadcaster()
        c1, c2 = _conn("c1", "/"), _conn("c2", "/about/")
        b.subscribe(c1)
        b.subscribe(c2)

        assert await b.reload() == 2
        assert _next(c1) == {"type": "reload"}
        assert _next(c2) == {"type": "reload"}

    @pytest.mark.asyncio
    async def test_inject_styles(self) -> None:
        b = Broadcaster()
        conn = _conn("c1")
        b.subscribe(conn)

        await b.inject_styles(["/assets/css/main.css", "/assets/css/main.css"])
        assert _next(conn) == {"type": "css", "paths": ["/assets/css/main.css"]}

    @pytest.mark.asyncio
    async def test_inject_nothing_sends_nothing(self) -> None:
        b = Broadcaster()
        conn = _conn("c1")
        b.subscribe(conn)

        assert await b.inject_styles([]) == 0
        assert conn.queue.empty()

    @pytest.mark.asyncio
    async def test_push_error(self) -> None:
        b = Broadcaster()
        conn = _conn("c1")
        b.subscribe(conn)

        err = PipelineError("bad color", asset="styles", stage="sass", path=Path("/p/main.scss"))
        await b.push_error(err)
        message = _next(conn)
        assert message["type"] == "error"
        assert message["asset"] == "styles"
        assert message["stage"] == "sass"
        assert message["message"] == "bad color"
        assert message["file"].endswith("main.scss")

    @pytest.mark.asyncio
    async def test_no_subscribers(self) -> None:
        assert await Broadcaster().reload() == 0

    @pytest.mark.asyncio
    async def test_events_recorded(self) -> None:
        events = EventLog()
        b = Broadcaster(events=events)
        b.subscribe(_conn("c1"))

        await b.inject_styles(["/a.css"], trigger="styles")
        (event,) = events.query(event_type=ReloadSent)
        assert event.kind == "inject"
        assert event.clients_notified == 1
        assert event.trigger == "styles"


class TestClientGenerator:
    """client_generator drains a session until it is closed."""

    @pytest.mark.asyncio
    async def test_yields_until_close(self) -> None:
        b = Broadcaster()
        conn = _conn("c1")
        b.subscribe(conn)

        await b.reload()
        await b.inject_styles(["/a.css"])
        b.close()

        messages = [json.loads(m) async for m in b.client_generator(conn)]
        assert [m["type"] for m in messages] == ["reload", "css"]
