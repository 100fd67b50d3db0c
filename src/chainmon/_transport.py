"""WebSocket transport for the feed stream."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Protocol

import aiohttp
from yarl import URL

from chainmon._redact import redact_url
from chainmon.exceptions import ChainmonConfigError, ChainmonTransportError

_logger = logging.getLogger(__name__)

_SCHEME_UPGRADES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def build_stream_url(origin: str, path: str) -> URL:
    """Derive the stream URL from a page origin.

    The scheme is upgraded to its streaming equivalent (``http`` → ``ws``,
    ``https`` → ``wss``); any path, query or fragment on the origin is
    replaced by *path*.
    """
    parsed = URL(origin.strip())
    scheme = _SCHEME_UPGRADES.get(parsed.scheme.lower())
    if scheme is None or not parsed.host:
        raise ChainmonConfigError(f"Cannot derive a stream URL from origin {origin!r}")
    return parsed.with_scheme(scheme).with_path(path).with_query(None).with_fragment(None)


class FrameStream(Protocol):
    """An open stream yielding text frames until it is lost."""

    def frames(self) -> AsyncIterator[str]: ...

    async def close(self) -> None: ...


class StreamOpener(Protocol):
    """Opens a :class:`FrameStream`; raises :class:`ChainmonTransportError` on failure."""

    async def __call__(self, url: URL) -> FrameStream: ...


class WebSocketFrameStream:
    """Text frames read from an aiohttp client WebSocket."""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, url: URL) -> None:
        self._ws = ws
        self._url = url

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the server closes; a transport error raises.

        A clean close simply ends the iteration.
        """
        async for msg in self._ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type == aiohttp.WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise ChainmonTransportError(
                    f"Stream error: {self._ws.exception()}",
                    url=redact_url(self._url),
                    close_code=self._ws.close_code,
                )
        _logger.debug("Stream closed by peer code=%s", self._ws.close_code)

    async def close(self) -> None:
        if not self._ws.closed:
            await self._ws.close()


class WebSocketOpener:
    """Opens feed streams on a shared :class:`aiohttp.ClientSession`."""

    def __init__(self, http_session: aiohttp.ClientSession, *, heartbeat: float | None = None) -> None:
        self._http = http_session
        self._heartbeat = heartbeat

    async def __call__(self, url: URL) -> WebSocketFrameStream:
        _logger.debug("Opening stream %s", redact_url(url))
        try:
            ws = await self._http.ws_connect(url, heartbeat=self._heartbeat, autoping=True)
        except (aiohttp.ClientError, OSError) as exc:
            raise ChainmonTransportError(
                f"Connecting to {redact_url(url)} failed: {exc}",
                url=redact_url(url),
            ) from exc
        return WebSocketFrameStream(ws, url)
