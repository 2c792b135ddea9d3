"""
Navigator Vault settings.

Every value can be overridden through an environment variable of the same
name. Key material never lives here: the session secret is generated at
login and the KDF salt is an application constant, not a secret.
"""
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    return float(raw)


## Expiry clocks (seconds)
VAULT_SESSION_TTL = _env_int('VAULT_SESSION_TTL', 1800)
VAULT_CACHE_TTL = _env_int('VAULT_CACHE_TTL', 600)
VAULT_AUTOFILL_WINDOW = _env_float('VAULT_AUTOFILL_WINDOW', 5.0)

## Key derivation
VAULT_KDF_ITERATIONS = _env_int('VAULT_KDF_ITERATIONS', 100000)
VAULT_KDF_SALT = os.environ.get(
    'VAULT_KDF_SALT', 'secure-password-manager-salt'
)
VAULT_CIPHER_BACKEND = os.environ.get('VAULT_CIPHER_BACKEND', 'aesgcm')

## Storage keys inside the session-scoped storage area
SESSION_KEY = 'userSession'
SESSION_TIMESTAMP = 'sessionTimestamp'
CACHE_KEY = 'cachedCredentials'
CACHE_TIMESTAMP = 'cacheTimestamp'
AUTOFILL_HISTORY = 'autofillHistory'

## Credential Source
VAULT_BACKEND_URL = os.environ.get('VAULT_BACKEND_URL', '')
VAULT_SHEETS_API_KEY = os.environ.get('VAULT_SHEETS_API_KEY', '')
VAULT_SHEETS_BASE_URL = os.environ.get(
    'VAULT_SHEETS_BASE_URL', 'https://sheets.googleapis.com/v4/spreadsheets'
)
VAULT_CREDENTIALS_SPREADSHEET_ID = os.environ.get(
    'VAULT_CREDENTIALS_SPREADSHEET_ID', ''
)
VAULT_AUTH_SPREADSHEET_ID = os.environ.get('VAULT_AUTH_SPREADSHEET_ID', '')
VAULT_HTTP_TIMEOUT = _env_float('VAULT_HTTP_TIMEOUT', 15.0)

# ordered: first range is tried first, the next one only on "not found".
CREDENTIAL_RANGES = ('Credentials!A2:D', 'Sheet1!A2:D')
USER_RANGES = ('Users!A2:E', 'Sheet2!A2:E')
PERMISSION_RANGES = ('Permissions!A2:B',)

# spreadsheet rows start at 1 and the first one holds the headers.
FIRST_DATA_ROW = 2
