"""
CredentialOrchestrator — the credential lifecycle for one browsing session.

Per request:

1. no valid session            → ``Unauthenticated``, nothing touched;
2. cache present and fresh     → safe projection of the cache;
3. cache absent or expired     → fetch, authorize, encrypt, cache, project;
4. use one credential by id    → decrypt for exactly one injection;
5. refresh                     → run 3 unconditionally, replacing the cache;
6. logout                      → session and cache gone before returning.

Cache misses are serialized: a load holds the lock and re-reads the cache
once it owns it, so concurrent misses trigger a single source fetch and a
single cache write. The encrypted list is written in one storage call.

Security Note:
    Never log session tokens, keys or secrets. Access to a decrypted
    credential is logged with user and credential ids only.
"""
import time
import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Optional

from .conf import VAULT_KDF_ITERATIONS, VAULT_CIPHER_BACKEND
from .config import VaultConfig
from .crypto import (
    derive_key,
    encrypt,
    decrypt,
    generate_session_token,
    get_cipher_cls,
)
from .exceptions import (
    DecryptionError,
    InvalidInput,
    NotFound,
    SourceError,
    SourceUnavailable,
    Unauthenticated,
)
from .models import (
    CachedCredential,
    CredentialRecord,
    DecryptedCredential,
    Requester,
    SafeCredential,
    Session,
)
from .page.urls import filter_for_page
from .resolver import resolve
from .sources.abstract import CredentialSource
from .storage import AbstractStorage
from .store import SessionStore

logger = logging.getLogger("navigator.vault.orchestrator")


class CredentialOrchestrator:
    """Coordinates store, source, resolver and crypto for one identity."""

    def __init__(
        self,
        store: SessionStore,
        source: CredentialSource,
        kdf_iterations: int = VAULT_KDF_ITERATIONS,
        cipher_backend: str = VAULT_CIPHER_BACKEND,
    ):
        self._store = store
        self._source = source
        self._kdf_iterations = kdf_iterations
        self._cipher_cls = get_cipher_cls(cipher_backend)
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: VaultConfig,
        storage: Optional[AbstractStorage] = None,
        clock: Callable[[], float] = time.time,
        http_session: Optional[object] = None,
    ) -> "CredentialOrchestrator":
        store = SessionStore(
            storage,
            session_ttl=config.session_ttl,
            cache_ttl=config.cache_ttl,
            clock=clock,
            autofill_window=config.autofill_window,
        )
        return cls(
            store,
            config.build_source(http_session),
            kdf_iterations=config.kdf_iterations,
            cipher_backend=config.cipher_backend,
        )

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def source(self) -> CredentialSource:
        return self._source

    @property
    def cipher_cls(self) -> type:
        return self._cipher_cls

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_session(self) -> Session:
        session = await self._store.get_session()
        if session is None or not session.user_id or not session.session_token:
            raise Unauthenticated()
        return session

    async def _derive_key(self, session: Session) -> bytes:
        return await asyncio.to_thread(
            derive_key, session.session_token, self._kdf_iterations
        )

    def _encrypt_records(
        self, records: Sequence[CredentialRecord], key: bytes
    ) -> list[CachedCredential]:
        return [
            CachedCredential(
                id=record.id,
                website_url=record.website_url,
                username=record.username,
                encrypted_password=encrypt(record.password, key, self._cipher_cls),
            )
            for record in records
        ]

    async def _fetch_authorized(self, session: Session) -> list[CredentialRecord]:
        """Fetch from the source, filtered for the session's identity."""
        requester = Requester.from_session(session)
        try:
            records = await self._source.fetch_credentials(requester)
            if not self._source.prefiltered:
                permissions = await self._source.fetch_permissions()
                records = resolve(records, permissions, requester)
        except SourceError as err:
            logger.error(
                "Credential source failed for user=%s: %s", session.user_id, err
            )
            raise SourceUnavailable(
                f"Could not load credentials: {err.message}"
            ) from err
        return records

    async def _load(self, session: Session, force: bool = False) -> list[CachedCredential]:
        """Run the cache-miss path (step 3) under the load lock.

        With ``force`` the current cache is ignored; it is replaced only
        once the source answered, so a failed refresh leaves it in place.
        """
        async with self._lock:
            if not force:
                cached = await self._store.get_cached_credentials()
                if cached is not None:
                    return cached
            records = await self._fetch_authorized(session)
            key = await self._derive_key(session)
            encrypted = await asyncio.to_thread(self._encrypt_records, records, key)
            del key
            current = await self._store.get_session()
            if current is None or current.session_token != session.session_token:
                # session ended while fetching: never cache for a stale key
                raise Unauthenticated("Session ended while loading credentials")
            await self._store.cache_credentials(encrypted)
            logger.info(
                "Credentials cache loaded for user=%s: %d credential(s)",
                session.user_id, len(encrypted),
            )
            return encrypted

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_auth(self) -> bool:
        return await self._store.is_authenticated()

    async def authenticate(self, user_id: str, password: str) -> Session:
        """Validate an identity against the source and start a session.

        Raises:
            InvalidInput: missing user id or password.
            Unauthenticated: the source denied the credentials.
            SourceUnavailable: the source could not be reached.
        """
        if not user_id or not password:
            raise InvalidInput("Missing userId or password")
        try:
            identity = await self._source.validate_user(user_id, password)
        except SourceError as err:
            raise SourceUnavailable(
                f"Failed to validate user: {err.message}"
            ) from err
        if identity is None:
            logger.info("Authentication denied for user=%s", user_id)
            raise Unauthenticated("Invalid credentials")
        session = Session.from_identity(identity, generate_session_token())
        async with self._lock:
            await self._store.clear_cache()
            await self._store.save_session(session)
        logger.info(
            "User %s authenticated with role %s", session.user_id, session.role.value
        )
        return session

    async def list_credentials(self) -> list[SafeCredential]:
        """Safe projection of every credential the identity may use."""
        session = await self._require_session()
        cached = await self._store.get_cached_credentials()
        if cached is None:
            cached = await self._load(session)
        return [cred.to_safe() for cred in cached]

    async def credentials_for_url(self, url: str) -> list[SafeCredential]:
        """Safe credentials whose website matches ``url``."""
        if not url:
            raise InvalidInput("Missing url")
        return filter_for_page(await self.list_credentials(), url)

    async def use_credential(self, credential_id: int) -> DecryptedCredential:
        """Decrypt one cached credential for a single injection.

        The caller must ``wipe()`` the result once used.

        Raises:
            Unauthenticated: no valid session.
            NotFound: id not in the current cache generation.
            DecryptionError: cache unusable; it is dropped so the next
                request refreshes it.
        """
        session = await self._require_session()
        try:
            credential_id = int(credential_id)
        except (TypeError, ValueError) as err:
            raise InvalidInput("Invalid credential id") from err
        cached = await self._store.get_cached_credentials()
        if cached is None:
            raise NotFound("No cached credentials")
        entry = next((c for c in cached if c.id == credential_id), None)
        if entry is None:
            raise NotFound(f"Credential {credential_id} not found")
        key = await self._derive_key(session)
        try:
            password = decrypt(entry.encrypted_password, key, self._cipher_cls)
        except DecryptionError:
            logger.warning(
                "Cached credential %s is unusable, dropping cache", credential_id
            )
            await self._store.clear_cache()
            raise
        finally:
            del key
        logger.info(
            "Credential accessed: user=%s credential=%s", session.user_id, credential_id
        )
        return DecryptedCredential(
            id=entry.id, username=entry.username, password=password
        )

    async def refresh(self) -> int:
        """Reload the cache from the source, whatever its age."""
        session = await self._require_session()
        encrypted = await self._load(session, force=True)
        return len(encrypted)

    async def logout(self) -> None:
        """Clear session and cache; both are gone when this returns."""
        async with self._lock:
            await self._store.clear_session()
            await self._store.clear_cache()
        logger.info("User logged out")

    async def test_connection(self) -> bool:
        return await self._source.test_connection()
