"""Shared broadcast utility for sending messages to a set of connections."""

from __future__ import annotations

import contextlib
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from arena.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: dict[str, Any],
) -> None:
    """Send a message to every connection, ignoring ones that already went away.

    The iterable is snapshotted first so a concurrent disconnect cannot
    mutate it while we yield on send_message.
    """
    for connection in list(connections):
        with contextlib.suppress(RuntimeError, OSError):
            await connection.send_message(message)
