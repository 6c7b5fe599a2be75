"""Reload server — serves the dist tree and holds browser sessions.

One ``websockets`` server handles both roles:

- Plain HTTP ``GET`` requests are answered from ``process_request`` with
  files from the document root; HTML gets the reload client injected.
- Upgrade requests on ``/__kiln/reload`` become websocket sessions that
  receive :class:`~kiln.reactive.broadcaster.Broadcaster` messages.
"""

from __future__ import annotations

import asyncio
import contextlib
import mimetypes
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, unquote, urlsplit

from websockets.asyncio.server import ServerConnection, serve
from websockets.datastructures import Headers
from websockets.exceptions import ConnectionClosed
from websockets.http11 import Request, Response

from kiln._console import log, plural
from kiln._errors import ReloadError
from kiln.reactive.broadcaster import ReloadConnection
from kiln.reactive.hmr import RELOAD_PATH, inject_reload_script

if TYPE_CHECKING:
    from websockets.asyncio.server import Server

    from kiln.reactive.broadcaster import Broadcaster


def _response(status: int, reason: str, body: bytes, content_type: str) -> Response:
    headers = Headers([
        ("Content-Type", content_type),
        ("Content-Length", str(len(body))),
        ("Cache-Control", "no-cache"),
        ("Connection", "close"),
    ])
    return Response(status, reason, headers, body)


def _not_found(path: str) -> Response:
    return _response(404, "Not Found", f"Not found: {path}\n".encode(), "text/plain; charset=utf-8")


def resolve_request_path(document_root: Path, url_path: str) -> Path | None:
    """Map a URL path to a file under *document_root*.

    Directories resolve to their ``index.html``.  Returns None when the path
    escapes the document root or names no file.

    """
    root = document_root.resolve()
    relative = unquote(url_path).lstrip("/")
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root):
        return None
    if candidate.is_dir():
        candidate = candidate / "index.html"
    if not candidate.is_file():
        return None
    return candidate


class ReloadServer:
    """Static file server plus live-reload websocket endpoint.

    Args:
        document_root: Directory served over HTTP (the dist root).
        broadcaster: Source of messages for connected sessions.
        host: Bind address.
        port: Bind port; ``0`` picks an ephemeral port.

    """

    def __init__(
        self,
        document_root: Path,
        broadcaster: Broadcaster,
        *,
        host: str = "127.0.0.1",
        port: int = 3000,
    ) -> None:
        self._document_root = document_root
        self._broadcaster = broadcaster
        self._host = host
        self._port = port
        self._server: Server | None = None

    @property
    def is_serving(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> int:
        """The bound port (the requested one until started)."""
        if self._server is None:
            return self._port
        sockets = list(self._server.sockets)
        return sockets[0].getsockname()[1] if sockets else self._port

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self.port}"

    async def start(self) -> None:
        """Bind and start accepting connections.

        Raises:
            ReloadError: If the address cannot be bound.

        """
        if self._server is not None:
            return
        try:
            self._server = await serve(
                self._handle_session,
                self._host,
                self._port,
                process_request=self._process_request,
            )
        except OSError as exc:
            msg = f"Cannot bind reload server to {self._host}:{self._port}: {exc}"
            raise ReloadError(msg) from exc

    async def close(self) -> None:
        """End every session and stop the server."""
        self._broadcaster.close()
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None

    async def __aenter__(self) -> ReloadServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -- HTTP --

    async def _process_request(
        self, connection: ServerConnection, request: Request,
    ) -> Response | None:
        path = urlsplit(request.path).path
        if path == RELOAD_PATH:
            return None  # Continue with the websocket handshake

        target = resolve_request_path(self._document_root, path)
        if target is None:
            return _not_found(path)

        # Off the loop: reload sessions share it
        content_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        try:
            body = await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError:
            # Replaced or removed by a pipeline between resolve and read
            return _not_found(path)
        if content_type == "text/html":
            html = body.decode("utf-8", errors="replace")
            body = inject_reload_script(html).encode("utf-8")
            return _response(200, "OK", body, "text/html; charset=utf-8")
        return _response(200, "OK", body, content_type)

    # -- websocket sessions --

    async def _handle_session(self, connection: ServerConnection) -> None:
        query = parse_qs(urlsplit(connection.request.path).query)
        conn = ReloadConnection(
            client_id=str(connection.id),
            page=query.get("page", ["/"])[0],
        )
        self._broadcaster.subscribe(conn)
        sessions = plural(self._broadcaster.subscriber_count, "session")
        log(f"Browser connected: {conn.page} ({sessions})")
        closer = asyncio.create_task(self._end_on_disconnect(connection, conn))
        try:
            async for message in self._broadcaster.client_generator(conn):
                await connection.send(message)
        except ConnectionClosed:
            pass
        finally:
            closer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await closer
            self._broadcaster.unsubscribe(conn)

    @staticmethod
    async def _end_on_disconnect(connection: ServerConnection, conn: ReloadConnection) -> None:
        await connection.wait_closed()
        conn.queue.put_nowait(None)
