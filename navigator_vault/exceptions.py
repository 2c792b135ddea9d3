"""
Navigator Vault exceptions.

Every failure the engine reports carries a short ``code`` tag, used by the
message handler to build the tagged outcome the UI renders. Expired
sessions and caches are not errors: they are states handled by a
transparent refresh.
"""
from typing import Any, Optional


class VaultError(Exception):
    """Base class for all vault failures."""

    code: str = 'vault_error'
    default_message: str = 'Vault Error'

    def __init__(
        self,
        message: Optional[str] = None,
        *args,
        payload: Optional[Any] = None
    ) -> None:
        self.message = message or self.default_message
        self.payload = payload
        super().__init__(self.message, *args)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message
        }


class Unauthenticated(VaultError):
    """No session, or the session expired: the user must log in again."""
    code = 'unauthenticated'
    default_message = 'Not authenticated'


class InvalidInput(VaultError):
    """A request is missing required fields."""
    code = 'invalid_input'
    default_message = 'Invalid request'


class SourceUnavailable(VaultError):
    """The Credential Source could not be reached; the cache is untouched."""
    code = 'source_unavailable'
    default_message = 'Could not load credentials'


class DecryptionError(VaultError):
    """Ciphertext and key do not authenticate: force a refresh."""
    code = 'decryption_error'
    default_message = 'Credential is unusable, refresh required'


class NotFound(VaultError):
    """Requested credential is not in the current cache generation."""
    code = 'not_found'
    default_message = 'Credential not found'


class StorageError(VaultError):
    """Session-scoped storage read or write failure."""
    code = 'storage_error'
    default_message = 'Session storage failure'


class FieldNotFound(VaultError):
    """Credential found, but no usable login field on this page."""
    code = 'field_not_found'
    default_message = 'Could not find login form fields'


## Credential Source errors
class SourceError(VaultError):
    """Raised by Credential Source adapters."""
    code = 'source_error'
    default_message = 'Credential Source error'


class RangeNotFound(SourceError):
    """The named range/table does not exist on the source."""
    code = 'range_not_found'
    default_message = 'Range not found'


class AccessDenied(SourceError):
    """The source refused access to the named range."""
    code = 'access_denied'
    default_message = 'Permission denied'
