"""Credential Source adapters."""
from .abstract import CredentialSource, RangeSource
from .memory import MemorySource
from .sheets import SheetsSource
from .backend import BackendSource

__all__ = (
    "CredentialSource",
    "RangeSource",
    "MemorySource",
    "SheetsSource",
    "BackendSource",
)
