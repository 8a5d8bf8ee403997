# =============================================================================
# client/transport.py - Realtime Connection Transport
# =============================================================================
# Thin wrapper over a `websockets` client connection so RealtimeSession can
# be driven by any object with the same four members (tests use a fake).
#
# Usage:
#   url = realtime_url("https://edufiliova.com", token)
#   transport = await WebSocketTransport.connect(url)
# =============================================================================

import logging
from typing import AsyncIterator, Protocol
from urllib.parse import urlencode, urlsplit, urlunsplit

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

logger = logging.getLogger(__name__)

REALTIME_PATH = "/ws"


def realtime_url(origin: str, token: str | None = None) -> str:
    """
    Derive the realtime endpoint from a page origin.

    http becomes ws and https becomes wss; the path is always /ws.

    Example:
        >>> realtime_url("https://edufiliova.com")
        'wss://edufiliova.com/ws'
    """
    parts = urlsplit(origin)
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    query = urlencode({"token": token}) if token else ""
    return urlunsplit((scheme, parts.netloc, REALTIME_PATH, query, ""))


class Transport(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...

    def messages(self) -> AsyncIterator[str]: ...


class WebSocketTransport:
    """Transport backed by websockets' asyncio client."""

    def __init__(self, connection: ClientConnection):
        self._connection = connection

    @classmethod
    async def connect(cls, url: str) -> "WebSocketTransport":
        connection = await connect(url)
        logger.info(f"Realtime connection opened to {urlsplit(url).netloc}")
        return cls(connection)

    @property
    def is_open(self) -> bool:
        return self._connection.state is State.OPEN

    async def send(self, message: str) -> None:
        await self._connection.send(message)

    async def close(self) -> None:
        await self._connection.close()

    async def messages(self) -> AsyncIterator[str]:
        try:
            async for message in self._connection:
                yield message if isinstance(message, str) else message.decode("utf-8", "replace")
        except ConnectionClosed as e:
            logger.info(f"Realtime connection closed: {e}")
