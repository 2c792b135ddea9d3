"""
PageAgent — the vault's presence on a displayed page.

Outward, the agent answers exactly two commands:

- ``find_credentials()`` — safe credentials matching the current page;
- ``inject(username, password)`` — fill literal values into the page.

``autofill(credential_id)`` composes the orchestrator's use-one flow with
``inject`` for callers that select a credential by id.
"""
import logging
from typing import TYPE_CHECKING, Optional

from ..exceptions import FieldNotFound
from ..models import DecryptedCredential, SafeCredential
from .dom import Page
from .injection import InjectionResult, inject_credentials

if TYPE_CHECKING:
    from ..orchestrator import CredentialOrchestrator

logger = logging.getLogger("navigator.vault.page")


class PageAgent:
    """Finds and injects credentials on one page. Holds no secrets."""

    def __init__(
        self,
        page: Page,
        orchestrator: Optional["CredentialOrchestrator"] = None
    ):
        self.page = page
        self._orchestrator = orchestrator

    def _require_orchestrator(self) -> "CredentialOrchestrator":
        if self._orchestrator is None:
            raise RuntimeError("PageAgent has no orchestrator attached")
        return self._orchestrator

    async def find_credentials(self) -> list[SafeCredential]:
        """Safe credentials whose website matches this page."""
        return await self._require_orchestrator().credentials_for_url(self.page.url)

    def inject(self, username: str, password: str) -> InjectionResult:
        """Fill literal values; a page without login fields is a failure."""
        credential = DecryptedCredential(username=username, password=password)
        try:
            return inject_credentials(self.page, credential)
        except FieldNotFound as err:
            logger.warning("Injection failed on %s: %s", self.page.url, err)
            return InjectionResult(success=False, error=err.code)

    async def autofill(self, credential_id: int) -> InjectionResult:
        """Decrypt one credential by id and inject it into this page.

        A second autofill of the same page inside the guard window is
        skipped. Retrieval errors (``NotFound``, ``DecryptionError``,
        ``Unauthenticated``) propagate; a page without login fields yields
        an unsuccessful result instead.
        """
        orchestrator = self._require_orchestrator()
        if await orchestrator.store.was_recently_autofilled(self.page.url):
            logger.debug("Skipping autofill, page was filled recently")
            return InjectionResult(success=False, error='recently_filled')
        credential = await orchestrator.use_credential(credential_id)
        try:
            result = inject_credentials(self.page, credential)
        except FieldNotFound as err:
            logger.warning("Injection failed on %s: %s", self.page.url, err)
            return InjectionResult(success=False, error=err.code)
        await orchestrator.store.record_autofill(self.page.url)
        return result
