"""
Vault Configuration — validated settings and Credential Source selection.

Values default to the environment-driven constants of ``conf``:
    VAULT_SESSION_TTL, VAULT_CACHE_TTL = <seconds>
    VAULT_BACKEND_URL = <remote RBAC backend base url>
    VAULT_SHEETS_API_KEY, VAULT_CREDENTIALS_SPREADSHEET_ID, ...

Security Note:
    Never log API keys. Only log which source is in use.
"""
import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from . import conf

logger = logging.getLogger("navigator.vault")


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    session_ttl: int = Field(default=conf.VAULT_SESSION_TTL, ge=60)
    cache_ttl: int = Field(default=conf.VAULT_CACHE_TTL, ge=1)
    autofill_window: float = Field(default=conf.VAULT_AUTOFILL_WINDOW, ge=0)
    kdf_iterations: int = Field(default=conf.VAULT_KDF_ITERATIONS, ge=1000)
    cipher_backend: str = Field(default=conf.VAULT_CIPHER_BACKEND)
    backend_url: str = Field(default=conf.VAULT_BACKEND_URL)
    sheets_api_key: str = Field(default=conf.VAULT_SHEETS_API_KEY, repr=False)
    sheets_base_url: str = Field(default=conf.VAULT_SHEETS_BASE_URL)
    credentials_spreadsheet_id: str = Field(
        default=conf.VAULT_CREDENTIALS_SPREADSHEET_ID
    )
    auth_spreadsheet_id: str = Field(default=conf.VAULT_AUTH_SPREADSHEET_ID)
    http_timeout: float = Field(default=conf.VAULT_HTTP_TIMEOUT, gt=0)

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @field_validator("backend_url")
    @classmethod
    def strip_backend_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @model_validator(mode="after")
    def validate_source(self) -> "VaultConfig":
        """Without a backend, the spreadsheet source needs its ids."""
        if not self.backend_url and not self.credentials_spreadsheet_id:
            raise ValueError(
                "Either backend_url or credentials_spreadsheet_id "
                "must be configured"
            )
        return self

    @property
    def uses_backend(self) -> bool:
        return bool(self.backend_url)

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig from the environment-driven defaults."""
        return cls()

    def build_source(self, session: Optional[object] = None):
        """Return the Credential Source this configuration selects.

        A remote backend (which filters credentials by role itself) wins
        over direct spreadsheet access.

        Args:
            session: optional shared ``aiohttp.ClientSession``.
        """
        if self.uses_backend:
            from .sources.backend import BackendSource
            logger.debug("Using remote backend credential source")
            return BackendSource(
                self.backend_url,
                timeout=self.http_timeout,
                session=session,
            )
        from .sources.sheets import SheetsSource
        logger.debug("Using spreadsheet credential source")
        return SheetsSource(
            api_key=self.sheets_api_key,
            spreadsheet_id=self.credentials_spreadsheet_id,
            auth_spreadsheet_id=self.auth_spreadsheet_id or None,
            base_url=self.sheets_base_url,
            timeout=self.http_timeout,
            session=session,
        )
