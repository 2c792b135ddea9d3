"""Navigator Vault — Encrypted credential cache bound to a browsing session.

Security Note (Threat Model):
    Cached secrets are encrypted with a key derived from the session token,
    which itself lives in the same session-scoped storage. The cache
    protects against persistence and casual inspection, not against a
    memory dump of the running process. Decrypted secrets exist in memory
    only between decrypt-for-use and injection.
"""
from .version import __version__
from .config import VaultConfig
from .exceptions import (
    VaultError,
    Unauthenticated,
    InvalidInput,
    SourceUnavailable,
    DecryptionError,
    NotFound,
    StorageError,
    FieldNotFound,
    SourceError,
    RangeNotFound,
    AccessDenied,
)
from .models import (
    Role,
    Identity,
    Session,
    Requester,
    CredentialRecord,
    PermissionGrant,
    EncryptedSecret,
    CachedCredential,
    SafeCredential,
    DecryptedCredential,
)
from .store import SessionStore
from .resolver import resolve
from .orchestrator import CredentialOrchestrator
from .handlers import MessageHandler
from .page import PageAgent, Page, normalize, matches_page

__all__ = [
    "__version__",
    "VaultConfig",
    "VaultError",
    "Unauthenticated",
    "InvalidInput",
    "SourceUnavailable",
    "DecryptionError",
    "NotFound",
    "StorageError",
    "FieldNotFound",
    "SourceError",
    "RangeNotFound",
    "AccessDenied",
    "Role",
    "Identity",
    "Session",
    "Requester",
    "CredentialRecord",
    "PermissionGrant",
    "EncryptedSecret",
    "CachedCredential",
    "SafeCredential",
    "DecryptedCredential",
    "SessionStore",
    "resolve",
    "CredentialOrchestrator",
    "MessageHandler",
    "PageAgent",
    "Page",
    "normalize",
    "matches_page",
]
