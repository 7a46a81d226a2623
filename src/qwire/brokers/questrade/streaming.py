"""Quote streaming over the Questrade WebSocket API

Handshake: the access token is sent as the first text frame and the server
answers with one JSON frame carrying a boolean ``success``. Every later frame
is a quote batch envelope ``{"quotes": [...]}``.

Ref: https://www.questrade.com/api/documentation/streaming
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import websockets
from loguru import logger
from pydantic import StrictBool, ValidationError

from qwire.domain.models import QuestradeModel, Quote, QuoteBatch
from qwire.shared.exceptions import QuestradeStreamError

Connector = Callable[[str], Awaitable[Any]]

_TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, websockets.WebSocketException)


class HandshakeAck(QuestradeModel):
    """Acknowledgment frame sent after the access token"""

    success: StrictBool = False


async def _close_connection(connection: Any) -> None:
    try:
        await connection.close()
    except _TRANSPORT_ERRORS as e:
        logger.debug(f"Error while closing quote stream: {e}")


async def open_quote_stream(
    uri: str,
    access_token: str,
    connect: Connector | None = None,
) -> "QuoteStream":
    """Connect to a quote stream and authenticate it

    Args:
        uri: WebSocket address (e.g. "wss://api01.iq.questrade.com:54321")
        access_token: Current access token
        connect: Connection factory, defaults to websockets.connect

    Returns:
        QuoteStream owning the authenticated connection

    Raises:
        QuestradeStreamError: If connecting or the handshake fails
    """
    connector = connect or websockets.connect
    logger.info(f"Connecting to quote stream at {uri}...")

    try:
        connection = await connector(uri)
    except _TRANSPORT_ERRORS as e:
        raise QuestradeStreamError(
            f"WebSocket failed to connect to {uri}: {e}"
        ) from e

    try:
        await connection.send(access_token)
    except _TRANSPORT_ERRORS as e:
        await _close_connection(connection)
        raise QuestradeStreamError(f"Failed to send access token: {e}") from e

    try:
        raw = await connection.recv()
    except _TRANSPORT_ERRORS as e:
        await _close_connection(connection)
        raise QuestradeStreamError(
            f"Failed to read server response: {e}"
        ) from e

    try:
        ack = HandshakeAck.model_validate_json(raw)
    except ValidationError as e:
        await _close_connection(connection)
        raise QuestradeStreamError(
            f"Failed to decode server response: {raw!r}"
        ) from e

    if not ack.success:
        await _close_connection(connection)
        raise QuestradeStreamError(
            f"Quote stream authentication rejected: {raw!r}"
        )

    logger.info(f"Quote stream authenticated at {uri}")
    return QuoteStream(connection)


class QuoteStream:
    """Single-owner reader over an authenticated quote stream connection

    ``read_next()`` blocks until one frame arrives. Any transport or decode
    failure is terminal for the connection; reconnecting is up to the caller.
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self._read_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once the stream failed or was closed"""
        return self._closed

    async def read_next(self) -> list[Quote]:
        """Wait for the next quote batch

        Returns:
            Quotes of the message, empty if it has no ``quotes`` key

        Raises:
            QuestradeStreamError: On transport/decode failure, on a closed
                stream, or when another reader is already waiting
        """
        if self._closed:
            raise QuestradeStreamError("Quote stream is closed")
        if self._read_lock.locked():
            raise QuestradeStreamError(
                "Quote stream already has a reader - concurrent reads are not allowed"
            )

        async with self._read_lock:
            try:
                raw = await self._connection.recv()
            except _TRANSPORT_ERRORS as e:
                await self._fail()
                raise QuestradeStreamError(
                    f"WebSocket connection failed to read: {e}"
                ) from e

            try:
                batch = QuoteBatch.model_validate_json(raw)
            except ValidationError as e:
                await self._fail()
                raise QuestradeStreamError(
                    f"Unable to decode quote message: {e}"
                ) from e

        logger.debug(f"Received {len(batch.quotes)} quotes")
        return batch.quotes

    async def close(self) -> None:
        """Close the underlying connection"""
        if self._closed:
            return
        self._closed = True
        await _close_connection(self._connection)
        logger.info("Quote stream closed")

    async def _fail(self) -> None:
        self._closed = True
        await _close_connection(self._connection)

    async def __aenter__(self) -> "QuoteStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __aiter__(self) -> "QuoteStream":
        return self

    async def __anext__(self) -> list[Quote]:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self.read_next()
        except QuestradeStreamError as e:
            if isinstance(e.__cause__, websockets.ConnectionClosedOK):
                raise StopAsyncIteration from e
            raise
