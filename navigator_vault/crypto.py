"""
Vault Crypto Core — Key derivation, authenticated encryption, session tokens.

Session layer: PBKDF2-HMAC-SHA256(session_token, app salt) → AEAD → envelope.

The session token is the root of trust for the credential cache: a new
session token means a new key, and every ciphertext of the previous
session becomes undecryptable.

Security Note:
    Never log plaintext, ciphertext, keys or session tokens.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import hashlib
import secrets
import logging
from collections.abc import MutableMapping, MutableSequence
from typing import Any, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .conf import VAULT_KDF_ITERATIONS, VAULT_KDF_SALT, VAULT_CIPHER_BACKEND
from .exceptions import DecryptionError
from .models import EncryptedSecret

logger = logging.getLogger("navigator.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
TOKEN_BYTES = 32  # 256-bit session token


def get_cipher_cls(backend: str = VAULT_CIPHER_BACKEND) -> type:
    """Return the AEAD cipher class for a backend name (aesgcm, chacha20)."""
    if backend.lower() == "chacha20":
        return ChaCha20Poly1305
    return AESGCM


# Default backend, resolved once at import.
CIPHER_CLS = get_cipher_cls()


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(
    session_secret: str,
    iterations: int = VAULT_KDF_ITERATIONS,
    salt: str = VAULT_KDF_SALT,
) -> bytes:
    """Derive the 32-byte cache key from a session secret.

    Deterministic: the same secret always yields the same key. The key is
    held only for the duration of one operation.

    Args:
        session_secret: Session token established at login.
        iterations: PBKDF2 iteration count.
        salt: Fixed application-specific salt.

    Returns:
        32-byte derived key.

    Raises:
        ValueError: If the session secret is empty.
    """
    if not session_secret:
        raise ValueError("Cannot derive a key from an empty session secret")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt.encode("utf-8"),
        iterations=iterations,
    )
    return kdf.derive(session_secret.encode("utf-8"))


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(
    plaintext: str, key: bytes, cipher_cls: Optional[type] = None
) -> EncryptedSecret:
    """Encrypt one secret with a fresh random nonce.

    Args:
        plaintext: Secret to encrypt.
        key: 32-byte key from :func:`derive_key`.
        cipher_cls: AEAD class; defaults to ``CIPHER_CLS``.

    Returns:
        EncryptedSecret envelope (nonce + ciphertext with tag).
    """
    cipher = (cipher_cls or CIPHER_CLS)(key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext.encode("utf-8"), None)
    return EncryptedSecret(iv=nonce, ciphertext=ct)


def decrypt(
    envelope: EncryptedSecret, key: bytes, cipher_cls: Optional[type] = None
) -> str:
    """Decrypt and authenticate one envelope.

    Args:
        envelope: Value produced by :func:`encrypt`.
        key: 32-byte key derived from the same session secret.
        cipher_cls: AEAD class used to encrypt; defaults to ``CIPHER_CLS``.

    Returns:
        Decrypted plaintext.

    Raises:
        DecryptionError: tampered envelope, wrong key (other or expired
            session) or malformed envelope.
    """
    if len(envelope.iv) != NONCE_SIZE:
        raise DecryptionError(
            f"Invalid nonce length: {len(envelope.iv)} bytes"
        )
    if len(envelope.ciphertext) < TAG_SIZE:
        raise DecryptionError(
            f"Ciphertext too short: {len(envelope.ciphertext)} bytes "
            f"(minimum {TAG_SIZE})"
        )
    try:
        cipher = (cipher_cls or CIPHER_CLS)(key)
        plaintext = cipher.decrypt(envelope.iv, envelope.ciphertext, None)
    except InvalidTag as err:
        raise DecryptionError(
            "Credential could not be authenticated"
        ) from err
    except ValueError as err:
        # wrong key size
        raise DecryptionError(str(err)) from err
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("Decrypted credential is not valid text") from err


# ---------------------------------------------------------------------------
# Tokens and hashing
# ---------------------------------------------------------------------------

def generate_session_token() -> str:
    """Return a 256-bit random session token, hex-encoded (64 chars)."""
    return secrets.token_hex(TOKEN_BYTES)


def hash_password(password: str) -> str:
    """SHA-256 hex digest of a password.

    Available for hashing passwords at rest in the source directory; the
    default validation path compares plaintext and does not call this.
    """
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Wiping
# ---------------------------------------------------------------------------

def secure_zero_memory(data: Union[bytes, bytearray, memoryview]) -> None:
    """Best-effort overwrite of a mutable buffer.

    ``bytes`` and ``str`` are immutable in Python and cannot be wiped in
    place; callers drop their references instead.
    """
    if isinstance(data, (bytearray, memoryview)) and not getattr(data, 'readonly', False):
        for i in range(len(data)):
            data[i] = 0


def clear_sensitive_data(obj: Any) -> None:
    """Blank every string in a (nested) mutable mapping or list."""
    if isinstance(obj, (bytearray, memoryview)):
        secure_zero_memory(obj)
    elif isinstance(obj, MutableMapping):
        for key, value in obj.items():
            if isinstance(value, str):
                obj[key] = ''
            else:
                clear_sensitive_data(value)
    elif isinstance(obj, MutableSequence):
        for idx, value in enumerate(obj):
            if isinstance(value, str):
                obj[idx] = ''
            else:
                clear_sensitive_data(value)
