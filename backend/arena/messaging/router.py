from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from arena.messaging.types import ErrorMessage, SessionErrorCode, parse_client_message

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol
    from arena.session.registry import SessionRegistry

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes incoming messages to the session registry.

    Contains no transport code and can be tested without real WebSocket
    connections.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await connection.send_message(
                ErrorMessage(code=SessionErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(mode="json"),
            )
            return

        try:
            await self._registry.route_event(connection, message)
        except Exception:
            logger.exception("unexpected error while routing message", connection_id=connection.connection_id)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._registry.on_disconnect(connection)
