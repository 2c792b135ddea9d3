"""In-process session storage, backed by a :class:`SessionData` area."""
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from ..data import SessionData
from .abstract import AbstractStorage

logger = logging.getLogger("navigator.vault.storage")


class MemoryStorage(AbstractStorage):
    """Storage area kept in memory for the lifetime of the process.

    Values are encoded on write and decoded on read, so callers always
    get copies. ``set()`` encodes every value before writing any of them.
    """

    def __init__(self, area: Optional[SessionData] = None) -> None:
        self._area = area if area is not None else SessionData()

    @property
    def area(self) -> SessionData:
        return self._area

    async def get(self, keys: Iterable[str]) -> dict[str, Any]:
        return {key: self._area[key] for key in keys if key in self._area}

    async def set(self, items: Mapping[str, Any]) -> None:
        encoded = {key: self._area.encode(value) for key, value in items.items()}
        self._area.update_encoded(encoded)
        logger.debug("Storage write: keys=%s", sorted(encoded))

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            if key in self._area:
                del self._area[key]

    async def clear(self) -> None:
        self._area.invalidate()
