"""Abstract interface for the append-only game message log."""

from abc import ABC, abstractmethod


class PersistenceError(Exception):
    """Raised when the storage backend cannot complete a read or write."""


class MessageLog(ABC):
    """Append-only, per-game transcript of chat lines, votes and announcements.

    Lines are stored already attributed ("Name: text") and are read back in
    the order they were appended.
    """

    @abstractmethod
    async def create_game(self) -> str:
        """Allocate a new game record and return its id."""

    @abstractmethod
    async def append(self, game_id: str, text: str) -> None: ...

    @abstractmethod
    async def read_all(self, game_id: str) -> list[str]: ...

    @abstractmethod
    async def finish_game(self, game_id: str, winner: str) -> None: ...
