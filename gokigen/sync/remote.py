"""Remote document store collaborator interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from gokigen.models.entry import Entry


@dataclass
class RemotePage:
    """One page of a remote query, newest entries first."""

    entries: list[Entry] = field(default_factory=list)
    next_cursor: Any | None = None  # Opaque; None means there is nothing after this page


class RemoteStore(ABC):
    """
    Abstract base class for the remote entry store.

    Documents are keyed by entry id under a per-user collection. Every
    method may raise; the sync engine treats any exception as a failed
    remote operation.
    """

    @abstractmethod
    async def save_document(self, entry: Entry, user_id: str) -> None:
        """Create or replace one entry document."""
        pass

    @abstractmethod
    async def load_page(self, user_id: str, limit: int, cursor: Any | None = None) -> RemotePage:
        """
        Load one page ordered by date descending.

        Args:
            user_id: Owner of the collection.
            limit: Maximum number of entries to return.
            cursor: Cursor from a previous page; None starts from the top.
        """
        pass

    @abstractmethod
    async def delete_document(self, entry_id: UUID, user_id: str) -> None:
        """Delete one entry document."""
        pass

    @abstractmethod
    async def delete_all(self, user_id: str) -> None:
        """Delete every entry document for the user."""
        pass

    @abstractmethod
    async def batch_migrate(self, entries: list[Entry], user_id: str) -> None:
        """Write many entries in a single batch."""
        pass
