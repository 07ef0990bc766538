"""Transport-neutral view of a client connection."""

from abc import ABC, abstractmethod
from typing import Any

from arena.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """A single client link carrying MessagePack frames.

    Sessions only push messages through ``send_message``; the transport
    layer implements the byte-level methods. Tests substitute an
    in-memory connection.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str: ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, message: dict[str, Any]) -> None:
        await self.send_bytes(encode(message))

    async def receive_message(self) -> dict[str, Any]:
        return decode(await self.receive_bytes())
