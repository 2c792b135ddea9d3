"""Base class for session-scoped storage backends."""
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any


class AbstractStorage(ABC):
    """Key/value area that lives only as long as the browsing session.

    Backends must never write to long-lived storage. Read or write
    failures are raised as ``StorageError``; backends do not retry.
    """

    @abstractmethod
    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        """Return the stored values for the present keys only."""

    @abstractmethod
    async def set(self, items: Mapping[str, Any]) -> None:
        """Write all items, or none of them."""

    @abstractmethod
    async def remove(self, keys: Iterable[str]) -> None:
        """Remove keys; missing keys are ignored."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop everything held by this area."""
