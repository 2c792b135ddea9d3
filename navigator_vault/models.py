"""
Vault data models.

Only ``CredentialRecord`` and ``DecryptedCredential`` ever hold a plaintext
secret. Records come straight from the Credential Source and are never
written to storage; ``DecryptedCredential`` lives between decrypt-for-use
and injection, then gets wiped.
"""
import time
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    ADMIN = 'admin'
    STAFF = 'staff'

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Case-insensitive parse; anything that is not admin is staff."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str) and value.strip().lower() == 'admin':
            return cls.ADMIN
        return cls.STAFF


def _parse_role(value: Any) -> Role:
    return Role.parse(value)


class Identity(BaseModel):
    """Result of a successful identity validation."""

    user_id: str
    display_name: str = ''
    email: str = ''
    role: Role = Role.STAFF

    normalize_role = field_validator('role', mode='before')(_parse_role)


class Session(BaseModel):
    """The active identity plus its session secret."""

    user_id: str
    display_name: str = ''
    email: str = ''
    role: Role = Role.STAFF
    session_token: str = Field(default='', repr=False)
    created_at: float = Field(default_factory=time.time)

    normalize_role = field_validator('role', mode='before')(_parse_role)

    @classmethod
    def from_identity(cls, identity: Identity, token: str) -> "Session":
        return cls(
            user_id=identity.user_id,
            display_name=identity.display_name,
            email=identity.email,
            role=identity.role,
            session_token=token,
        )


class Requester(BaseModel):
    """Who is asking for credentials; input of the access resolver."""

    user_id: str
    role: Role = Role.STAFF
    display_name: str = ''

    normalize_role = field_validator('role', mode='before')(_parse_role)

    @classmethod
    def from_session(cls, session: Session) -> "Requester":
        return cls(
            user_id=session.user_id,
            role=session.role,
            display_name=session.display_name,
        )

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class CredentialRecord(BaseModel):
    """A credential row as produced by the Credential Source."""

    model_config = ConfigDict(frozen=True)

    id: int
    website_url: str
    username: str
    password: str = Field(repr=False)
    grantees: str = ''
    row: Optional[int] = None


class PermissionGrant(BaseModel):
    """Explicit allow-list of identity ids for one credential."""

    credential_id: int
    allowed_user_ids: frozenset[str] = frozenset()


class EncryptedSecret(BaseModel):
    """AEAD envelope: 96-bit nonce plus ciphertext (tag appended)."""

    iv: bytes
    ciphertext: bytes = Field(repr=False)


class SafeCredential(BaseModel):
    """Password-free projection, safe to show before user selection."""

    id: int
    website_url: str
    username: str


class CachedCredential(BaseModel):
    """Cache entry; the secret only ever exists here encrypted."""

    id: int
    website_url: str
    username: str
    encrypted_password: EncryptedSecret

    def to_safe(self) -> SafeCredential:
        return SafeCredential(
            id=self.id,
            website_url=self.website_url,
            username=self.username,
        )


class DecryptedCredential(BaseModel):
    """Plaintext pair handed out for exactly one injection."""

    id: Optional[int] = None
    username: str = ''
    password: str = Field(default='', repr=False)

    def wipe(self) -> None:
        """Drop the plaintext values held by this object."""
        self.username = ''
        self.password = ''

    @property
    def wiped(self) -> bool:
        return not self.username and not self.password
