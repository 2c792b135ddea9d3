"""Shared fixtures for the vault test-suite."""
import asyncio
import pytest

from navigator_vault.orchestrator import CredentialOrchestrator
from navigator_vault.sources.memory import MemorySource
from navigator_vault.storage.memory import MemoryStorage
from navigator_vault.store import SessionStore

# low iteration count keeps key derivation fast in tests
TEST_KDF_ITERATIONS = 1000

CREDENTIAL_ROWS = [
    ["https://mail.example.com", "jane@example.com", "pw-one", "Jane Doe, Bob Stone"],
    ["https://crm.example.org/login", "ops-team", "pw-two", ""],
    ["https://bank.example.net", "treasury", "pw-three", "Someone Else"],
]

PERMISSION_ROWS = [
    ["3", "u1, u7"],
    ["4", "u9"],
]

USER_ROWS = [
    ["u1", "secret1", "Jane Doe", "jane@example.com", "Staff"],
    ["boss", "root-pw", "Admin User", "admin@example.com", "Admin"],
    ["u2", "secret2", "Nobody", "nobody@example.com"],
]


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SlowSource(MemorySource):
    """MemorySource that yields to the loop on every fetch."""

    def __init__(self, ranges, delay: float = 0.01):
        super().__init__(ranges)
        self.delay = delay

    async def fetch_rows(self, range_name, *, users=False):
        await asyncio.sleep(self.delay)
        return await super().fetch_rows(range_name, users=users)


def make_ranges(credentials_range: str = "Credentials!A2:D") -> dict:
    return {
        credentials_range: CREDENTIAL_ROWS,
        "Permissions!A2:B": PERMISSION_ROWS,
        "Users!A2:E": USER_ROWS,
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return MemorySource(make_ranges())


@pytest.fixture
def store(clock):
    return SessionStore(MemoryStorage(), clock=clock)


@pytest.fixture
def orchestrator(store, source):
    return CredentialOrchestrator(store, source, kdf_iterations=TEST_KDF_ITERATIONS)
