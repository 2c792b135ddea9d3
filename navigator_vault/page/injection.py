"""
Credential injection.

Values are written the way a user would type them: set the value, then
dispatch ``input``, ``change`` and ``blur`` so host-page scripts that
validate on those events see the change.

Security Note:
    The plaintext credential handed in is wiped once injection finishes,
    whether it succeeded or not. Never log the password.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import FieldNotFound
from ..models import DecryptedCredential
from .detection import detect_login_fields
from .dom import InputField, Page

logger = logging.getLogger("navigator.vault.page")

NOTIFY_EVENTS = ('input', 'change', 'blur')


@dataclass
class InjectionResult:
    success: bool
    filled: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"success": self.success, "filled": list(self.filled)}
        if self.error:
            result["error"] = self.error
        return result


def fill_field(element: InputField, value: str) -> None:
    """Set a field value and notify the page as if typed."""
    element.value = value
    for event_type in NOTIFY_EVENTS:
        element.dispatch_event(event_type, bubbles=True)


def inject_credentials(page: Page, credential: DecryptedCredential) -> InjectionResult:
    """Fill the detected login fields of ``page`` with ``credential``.

    The username is filled when a username field was found; the password
    field is required.

    Raises:
        FieldNotFound: the page has no usable password field.
    """
    try:
        fields = detect_login_fields(page)
        if fields is None:
            raise FieldNotFound(
                "Credential found, but no login form on this page"
            )
        filled = []
        if fields.username is not None:
            fill_field(fields.username, credential.username)
            filled.append('username')
        else:
            logger.warning("No username field found on %s", page.url)
        fill_field(fields.password, credential.password)
        filled.append('password')
        logger.info(
            "Credentials filled on %s: %s (via %s/%s)",
            page.url, ', '.join(filled),
            fields.password_strategy, fields.username_strategy,
        )
        return InjectionResult(success=True, filled=filled)
    finally:
        credential.wipe()
