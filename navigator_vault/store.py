"""
SessionStore — session record and encrypted credential cache.

Provides the session-scoped state of the vault:
- ``save_session()`` / ``get_session()`` / ``clear_session()``
- ``cache_credentials()`` / ``get_cached_credentials()`` / ``clear_cache()``
- ``record_autofill()`` / ``was_recently_autofilled()`` — double-fill guard

Both the session and the cache carry their own write timestamp and TTL.
Expiry is checked on every read; the store runs no background clock.
The store never encrypts or decrypts: it only keeps what it is given.

Security Note:
    Never log the session token. Cache entries hold ciphertext only.
"""
import time
import logging
from collections.abc import Callable, Sequence
from typing import Optional

from .conf import (
    VAULT_SESSION_TTL,
    VAULT_CACHE_TTL,
    VAULT_AUTOFILL_WINDOW,
    SESSION_KEY,
    SESSION_TIMESTAMP,
    CACHE_KEY,
    CACHE_TIMESTAMP,
    AUTOFILL_HISTORY,
)
from .exceptions import StorageError
from .models import Session, CachedCredential
from .storage import AbstractStorage, MemoryStorage

logger = logging.getLogger("navigator.vault.store")


class SessionStore:
    """Session & cache state for the single active identity."""

    def __init__(
        self,
        storage: Optional[AbstractStorage] = None,
        session_ttl: int = VAULT_SESSION_TTL,
        cache_ttl: int = VAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
        autofill_window: float = VAULT_AUTOFILL_WINDOW,
    ):
        self._storage = storage if storage is not None else MemoryStorage()
        self._session_ttl = session_ttl
        self._cache_ttl = cache_ttl
        self._autofill_window = autofill_window
        self._clock = clock

    @property
    def session_ttl(self) -> int:
        return self._session_ttl

    @property
    def cache_ttl(self) -> int:
        return self._cache_ttl

    @property
    def autofill_window(self) -> float:
        return self._autofill_window

    def now(self) -> float:
        return self._clock()

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    async def _read(self, *keys: str) -> dict:
        try:
            return await self._storage.get(keys)
        except StorageError:
            raise
        except Exception as err:
            raise StorageError(f"Storage read failed: {err}") from err

    async def _write(self, items: dict) -> None:
        try:
            await self._storage.set(items)
        except StorageError:
            raise
        except Exception as err:
            raise StorageError(f"Storage write failed: {err}") from err

    async def _remove(self, *keys: str) -> None:
        try:
            await self._storage.remove(keys)
        except StorageError:
            raise
        except Exception as err:
            raise StorageError(f"Storage remove failed: {err}") from err

    def _expired(self, written_at: Optional[float], ttl: int) -> bool:
        return written_at is not None and (self.now() - written_at) > ttl

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def save_session(self, session: Session) -> None:
        """Overwrite the session record and stamp the write time.

        A new session token makes any cached ciphertext undecryptable;
        callers still clear the cache explicitly on logout.
        """
        await self._write({
            SESSION_KEY: session,
            SESSION_TIMESTAMP: self.now(),
        })
        logger.debug("Session saved for user=%s", session.user_id)

    async def get_session(self) -> Optional[Session]:
        """Return the current session, or None once it has expired.

        An expired session also drops the cache: without the session
        token the cached ciphertext cannot be decrypted anyway.
        """
        result = await self._read(SESSION_KEY, SESSION_TIMESTAMP)
        if self._expired(result.get(SESSION_TIMESTAMP), self._session_ttl):
            logger.info("Session expired, clearing session and cache")
            await self._remove(
                SESSION_KEY, SESSION_TIMESTAMP, CACHE_KEY, CACHE_TIMESTAMP
            )
            return None
        return result.get(SESSION_KEY)

    async def is_authenticated(self) -> bool:
        session = await self.get_session()
        return bool(
            session is not None and session.user_id and session.session_token
        )

    async def clear_session(self) -> None:
        await self._remove(SESSION_KEY, SESSION_TIMESTAMP, AUTOFILL_HISTORY)
        logger.debug("Session cleared")

    # ------------------------------------------------------------------
    # Credential cache
    # ------------------------------------------------------------------

    async def cache_credentials(
        self, credentials: Sequence[CachedCredential]
    ) -> None:
        """Store the full encrypted list and its timestamp in one write."""
        await self._write({
            CACHE_KEY: list(credentials),
            CACHE_TIMESTAMP: self.now(),
        })
        logger.debug("Cached %d credential(s)", len(credentials))

    async def get_cached_credentials(self) -> Optional[list[CachedCredential]]:
        """Return the cached list, or None when absent or expired."""
        result = await self._read(CACHE_KEY, CACHE_TIMESTAMP)
        if self._expired(result.get(CACHE_TIMESTAMP), self._cache_ttl):
            logger.debug("Credential cache expired")
            await self.clear_cache()
            return None
        return result.get(CACHE_KEY)

    async def clear_cache(self) -> None:
        await self._remove(CACHE_KEY, CACHE_TIMESTAMP)

    # ------------------------------------------------------------------
    # Autofill history
    # ------------------------------------------------------------------

    async def record_autofill(self, url: str) -> None:
        result = await self._read(AUTOFILL_HISTORY)
        history = result.get(AUTOFILL_HISTORY) or {}
        history[url] = self.now()
        await self._write({AUTOFILL_HISTORY: history})

    async def was_recently_autofilled(
        self, url: str, window: Optional[float] = None
    ) -> bool:
        """True if ``url`` was autofilled less than ``window`` seconds ago.

        ``window`` defaults to the store's ``autofill_window``.
        """
        if window is None:
            window = self._autofill_window
        result = await self._read(AUTOFILL_HISTORY)
        history = result.get(AUTOFILL_HISTORY) or {}
        last_fill = history.get(url)
        return last_fill is not None and (self.now() - last_fill) < window
