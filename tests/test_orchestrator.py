"""
Tests for the CredentialOrchestrator.

Tests cover:
- Login, logout and authentication failures
- Cache miss / hit / expiry through the source
- Access control applied before caching
- Decrypt-for-use, NotFound and DecryptionError
- Source failures leaving the cache untouched
- Concurrent cache misses collapsing into a single load
"""
import asyncio

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from navigator_vault.config import VaultConfig
from navigator_vault.crypto import decrypt, derive_key
from navigator_vault.exceptions import (
    DecryptionError,
    InvalidInput,
    NotFound,
    SourceUnavailable,
    Unauthenticated,
)
from navigator_vault.models import SafeCredential
from navigator_vault.orchestrator import CredentialOrchestrator
from navigator_vault.sources import BackendSource, MemorySource
from navigator_vault.storage.memory import MemoryStorage
from navigator_vault.store import SessionStore

from conftest import TEST_KDF_ITERATIONS, SlowSource, make_ranges

MINUTE = 60


class CountingStore(SessionStore):
    """SessionStore that counts cache writes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.cache_writes = 0

    async def cache_credentials(self, credentials):
        self.cache_writes += 1
        await super().cache_credentials(credentials)


class HookSource(MemorySource):
    """MemorySource running a coroutine before returning credentials."""

    def __init__(self, ranges, hook=None):
        super().__init__(ranges)
        self.hook = hook

    async def fetch_rows(self, range_name, *, users=False):
        rows = await super().fetch_rows(range_name, users=users)
        if self.hook is not None and range_name == "Credentials!A2:D":
            await self.hook()
        return rows


def _credential_fetches(source) -> int:
    return source.calls.count("Credentials!A2:D")


class TestAuthentication:
    """Tests for login/logout."""

    @pytest.mark.asyncio
    async def test_not_authenticated(self, orchestrator):
        assert await orchestrator.check_auth() is False
        with pytest.raises(Unauthenticated):
            await orchestrator.list_credentials()
        with pytest.raises(Unauthenticated):
            await orchestrator.use_credential(2)
        with pytest.raises(Unauthenticated):
            await orchestrator.refresh()

    @pytest.mark.asyncio
    async def test_unauthenticated_has_no_side_effects(self, orchestrator, source):
        with pytest.raises(Unauthenticated):
            await orchestrator.list_credentials()
        assert source.calls == []
        assert await orchestrator.store.get_cached_credentials() is None

    @pytest.mark.asyncio
    async def test_authenticate(self, orchestrator):
        session = await orchestrator.authenticate("u1", "secret1")
        assert session.user_id == "u1"
        assert session.display_name == "Jane Doe"
        assert len(session.session_token) == 64
        assert await orchestrator.check_auth() is True

    @pytest.mark.asyncio
    async def test_each_login_gets_a_new_token(self, orchestrator):
        first = await orchestrator.authenticate("u1", "secret1")
        second = await orchestrator.authenticate("u1", "secret1")
        assert first.session_token != second.session_token

    @pytest.mark.asyncio
    async def test_wrong_password(self, orchestrator):
        with pytest.raises(Unauthenticated):
            await orchestrator.authenticate("u1", "wrong")
        assert await orchestrator.check_auth() is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id,password", [("", "x"), ("u1", ""), (None, None)])
    async def test_missing_fields(self, orchestrator, user_id, password):
        with pytest.raises(InvalidInput):
            await orchestrator.authenticate(user_id, password)

    @pytest.mark.asyncio
    async def test_source_down_on_login(self, orchestrator, source):
        source.available = False
        with pytest.raises(SourceUnavailable):
            await orchestrator.authenticate("u1", "secret1")

    @pytest.mark.asyncio
    async def test_login_drops_previous_cache(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        await orchestrator.authenticate("boss", "root-pw")
        assert await orchestrator.store.get_cached_credentials() is None
        assert len(await orchestrator.list_credentials()) == 3

    @pytest.mark.asyncio
    async def test_logout(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        await orchestrator.logout()
        assert await orchestrator.check_auth() is False
        assert await orchestrator.store.get_session() is None
        assert await orchestrator.store.get_cached_credentials() is None
        with pytest.raises(Unauthenticated):
            await orchestrator.list_credentials()

    @pytest.mark.asyncio
    async def test_session_expiry(self, orchestrator, clock):
        await orchestrator.authenticate("u1", "secret1")
        clock.advance(31 * MINUTE)
        assert await orchestrator.check_auth() is False
        with pytest.raises(Unauthenticated):
            await orchestrator.list_credentials()


class TestCredentialLifecycle:
    """Tests for fetch, cache and use."""

    @pytest.mark.asyncio
    async def test_staff_sees_only_authorized(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        credentials = await orchestrator.list_credentials()
        assert credentials == [
            SafeCredential(
                id=2,
                website_url="https://mail.example.com",
                username="jane@example.com",
            ),
            SafeCredential(
                id=3,
                website_url="https://crm.example.org/login",
                username="ops-team",
            ),
        ]

    @pytest.mark.asyncio
    async def test_admin_sees_everything(self, orchestrator):
        await orchestrator.authenticate("boss", "root-pw")
        credentials = await orchestrator.list_credentials()
        assert [c.id for c in credentials] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_unlisted_staff_sees_nothing(self, orchestrator):
        await orchestrator.authenticate("u2", "secret2")
        assert await orchestrator.list_credentials() == []
        assert await orchestrator.store.get_cached_credentials() == []

    @pytest.mark.asyncio
    async def test_cache_holds_ciphertext_only(self, orchestrator):
        session = await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        cached = await orchestrator.store.get_cached_credentials()
        assert [c.id for c in cached] == [2, 3]
        key = derive_key(session.session_token, TEST_KDF_ITERATIONS)
        for entry, expected in zip(cached, ["pw-one", "pw-two"]):
            assert expected.encode() not in entry.encrypted_password.ciphertext
            assert decrypt(entry.encrypted_password, key) == expected

    @pytest.mark.asyncio
    async def test_cache_hit_skips_source(self, orchestrator, source):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        await orchestrator.list_credentials()
        assert _credential_fetches(source) == 1

    @pytest.mark.asyncio
    async def test_cache_expiry_refetches(self, orchestrator, source, clock):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        clock.advance(9 * MINUTE)
        await orchestrator.list_credentials()
        assert _credential_fetches(source) == 1
        clock.advance(2 * MINUTE)
        await orchestrator.list_credentials()
        assert _credential_fetches(source) == 2

    @pytest.mark.asyncio
    async def test_use_credential(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        credential = await orchestrator.use_credential("2")
        assert credential.id == 2
        assert credential.username == "jane@example.com"
        assert credential.password == "pw-one"

    @pytest.mark.asyncio
    async def test_use_unauthorized_credential(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        with pytest.raises(NotFound):
            await orchestrator.use_credential(4)

    @pytest.mark.asyncio
    async def test_use_without_cache(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        with pytest.raises(NotFound):
            await orchestrator.use_credential(2)

    @pytest.mark.asyncio
    async def test_use_invalid_id(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        with pytest.raises(InvalidInput):
            await orchestrator.use_credential("abc")

    @pytest.mark.asyncio
    async def test_decryption_failure_drops_cache(self, orchestrator):
        session = await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        # same identity, different secret: the cache no longer decrypts
        await orchestrator.store.save_session(
            session.model_copy(update={"session_token": "f" * 64})
        )
        with pytest.raises(DecryptionError):
            await orchestrator.use_credential(2)
        assert await orchestrator.store.get_cached_credentials() is None

    @pytest.mark.asyncio
    async def test_credentials_for_url(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        matches = await orchestrator.credentials_for_url(
            "https://www.mail.example.com/inbox?folder=1"
        )
        assert [c.id for c in matches] == [2]
        assert await orchestrator.credentials_for_url("https://other.test") == []

    @pytest.mark.asyncio
    async def test_credentials_for_url_requires_url(self, orchestrator):
        await orchestrator.authenticate("u1", "secret1")
        with pytest.raises(InvalidInput):
            await orchestrator.credentials_for_url("")


class TestRefreshAndFailures:
    """Tests for refresh and source failures."""

    @pytest.mark.asyncio
    async def test_refresh_reloads(self, orchestrator, source):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        source._ranges["Credentials!A2:D"].append(
            ["https://new.example.com", "newbie", "pw-new", "Jane Doe"]
        )
        assert await orchestrator.refresh() == 3
        assert _credential_fetches(source) == 2
        credentials = await orchestrator.list_credentials()
        assert [c.id for c in credentials] == [2, 3, 5]

    @pytest.mark.asyncio
    async def test_source_down_leaves_no_cache(self, orchestrator, source):
        await orchestrator.authenticate("u1", "secret1")
        source.available = False
        with pytest.raises(SourceUnavailable):
            await orchestrator.list_credentials()
        assert await orchestrator.store.get_cached_credentials() is None

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_cache(self, orchestrator, source):
        await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        before = await orchestrator.store.get_cached_credentials()
        source.available = False
        with pytest.raises(SourceUnavailable):
            await orchestrator.refresh()
        assert await orchestrator.store.get_cached_credentials() == before
        credential = await orchestrator.use_credential(3)
        assert credential.password == "pw-two"

    @pytest.mark.asyncio
    async def test_missing_credential_range(self, store):
        orchestrator = CredentialOrchestrator(
            store,
            MemorySource({"Users!A2:E": make_ranges()["Users!A2:E"]}),
            kdf_iterations=TEST_KDF_ITERATIONS,
        )
        await orchestrator.authenticate("u1", "secret1")
        with pytest.raises(SourceUnavailable):
            await orchestrator.list_credentials()

    @pytest.mark.asyncio
    async def test_session_replaced_while_loading(self, store):
        async def relogin():
            session = await store.get_session()
            await store.save_session(
                session.model_copy(update={"session_token": "e" * 64})
            )

        source = HookSource(make_ranges())
        orchestrator = CredentialOrchestrator(
            store, source, kdf_iterations=TEST_KDF_ITERATIONS
        )
        await orchestrator.authenticate("u1", "secret1")
        source.hook = relogin
        with pytest.raises(Unauthenticated):
            await orchestrator.list_credentials()
        assert await store.get_cached_credentials() is None


class TestConcurrency:
    """Concurrent cache misses collapse into one load."""

    @pytest.mark.asyncio
    async def test_concurrent_misses_single_fetch(self, clock):
        store = CountingStore(MemoryStorage(), clock=clock)
        source = SlowSource(make_ranges())
        orchestrator = CredentialOrchestrator(
            store, source, kdf_iterations=TEST_KDF_ITERATIONS
        )
        await orchestrator.authenticate("u1", "secret1")
        results = await asyncio.gather(
            *(orchestrator.list_credentials() for _ in range(5))
        )
        assert _credential_fetches(source) == 1
        assert store.cache_writes == 1
        assert all([c.id for c in result] == [2, 3] for result in results)

    @pytest.mark.asyncio
    async def test_logout_waits_for_load(self, clock):
        store = CountingStore(MemoryStorage(), clock=clock)
        source = SlowSource(make_ranges())
        orchestrator = CredentialOrchestrator(
            store, source, kdf_iterations=TEST_KDF_ITERATIONS
        )
        await orchestrator.authenticate("u1", "secret1")
        load = asyncio.ensure_future(orchestrator.list_credentials())
        await asyncio.sleep(0)
        await orchestrator.logout()
        await load
        assert await store.get_session() is None
        assert await store.get_cached_credentials() is None


class TestFromConfig:
    """Tests for building an orchestrator from configuration."""

    def test_from_config(self, clock):
        config = VaultConfig(
            backend_url="https://vault.example.com",
            session_ttl=900,
            cache_ttl=120,
            kdf_iterations=5000,
        )
        orchestrator = CredentialOrchestrator.from_config(config, clock=clock)
        assert isinstance(orchestrator.source, BackendSource)
        assert orchestrator.store.session_ttl == 900
        assert orchestrator.store.cache_ttl == 120

    def test_from_config_autofill_window_and_cipher(self, clock):
        config = VaultConfig(
            backend_url="https://vault.example.com",
            autofill_window=60,
            cipher_backend="chacha20",
        )
        orchestrator = CredentialOrchestrator.from_config(config, clock=clock)
        assert orchestrator.store.autofill_window == 60
        assert orchestrator.cipher_cls is ChaCha20Poly1305

    @pytest.mark.asyncio
    async def test_configured_cipher_encrypts_the_cache(self, store, source):
        orchestrator = CredentialOrchestrator(
            store,
            source,
            kdf_iterations=TEST_KDF_ITERATIONS,
            cipher_backend="chacha20",
        )
        session = await orchestrator.authenticate("u1", "secret1")
        await orchestrator.list_credentials()
        key = derive_key(session.session_token, TEST_KDF_ITERATIONS)
        [first, _] = await store.get_cached_credentials()
        assert decrypt(first.encrypted_password, key, ChaCha20Poly1305) == "pw-one"
        with pytest.raises(DecryptionError):
            decrypt(first.encrypted_password, key, AESGCM)
        credential = await orchestrator.use_credential(2)
        assert credential.password == "pw-one"
