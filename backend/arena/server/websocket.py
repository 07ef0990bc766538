"""Starlette WebSocket transport for arena sessions."""

import contextlib
from typing import Any
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from arena.messaging.encoder import DecodeError, decode
from arena.messaging.protocol import ConnectionProtocol
from arena.messaging.router import MessageRouter
from arena.messaging.types import ErrorMessage, SessionErrorCode
from arena.server.rate_limit import TokenBucket

logger = structlog.get_logger()

_FRAMES_PER_SECOND = 10.0
_FRAME_BURST = 20

_MAX_DECODE_ERRORS = 5
_CLOSE_TOO_MANY_DECODE_ERRORS = 4004


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or uuid4().hex

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect as e:
            raise ConnectionError(f"connection {self._connection_id} is gone") from e

    async def receive_bytes(self) -> bytes:
        try:
            return await self._websocket.receive_bytes()
        except WebSocketDisconnect as e:
            raise ConnectionError(f"connection {self._connection_id} is gone") from e

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


class _InboundGate:
    """Decode and throttle frames from one connection.

    Consecutive undecodable frames count as strikes; a good frame clears them.
    """

    def __init__(self, connection: ConnectionProtocol) -> None:
        self._connection = connection
        self._bucket = TokenBucket(rate=_FRAMES_PER_SECOND, burst=_FRAME_BURST)
        self.strikes = 0

    async def admit(self, frame: bytes) -> dict[str, Any] | None:
        try:
            message = decode(frame)
        except DecodeError as e:
            self.strikes += 1
            logger.warning("decode error", connection_id=self._connection.connection_id, strikes=self.strikes, error=str(e))
            await self._reject(SessionErrorCode.INVALID_MESSAGE, str(e))
            return None
        self.strikes = 0
        if self._bucket.consume():
            return message
        await self._reject(SessionErrorCode.RATE_LIMITED, "Too many messages")
        return None

    @property
    def exhausted(self) -> bool:
        return self.strikes >= _MAX_DECODE_ERRORS

    async def _reject(self, code: SessionErrorCode, text: str) -> None:
        await self._connection.send_message(ErrorMessage(code=code, message=text).model_dump(mode="json"))


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    gate = _InboundGate(connection)
    logger.info("websocket connected", connection_id=connection.connection_id)

    try:
        while True:
            message = await gate.admit(await connection.receive_bytes())
            if message is not None:
                await router.handle_message(connection, message)
            elif gate.exhausted:
                logger.info("closing after repeated decode errors", connection_id=connection.connection_id)
                await connection.close(code=_CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                break
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected", connection_id=connection.connection_id)
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
