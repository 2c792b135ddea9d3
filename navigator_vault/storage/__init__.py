"""Session-scoped storage backends for the Session & Cache Store."""
from .abstract import AbstractStorage
from .memory import MemoryStorage

__all__ = (
    "AbstractStorage",
    "MemoryStorage",
)
