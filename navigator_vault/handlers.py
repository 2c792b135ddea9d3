"""
Message handler — the request surface used by the popup and page agent.

Every request is a mapping with an ``action`` and its arguments; every
response is a mapping with ``success`` and, on failure, an ``error`` tag
(the ``code`` of the raised :class:`VaultError`) plus a ``message``. The
UI tells "could not load credentials" from "no form on this page" by tag.
"""
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Union

import orjson

from .crypto import clear_sensitive_data
from .exceptions import InvalidInput, VaultError
from .orchestrator import CredentialOrchestrator

logger = logging.getLogger("navigator.vault.handlers")

Handler = Callable[[Mapping[str, Any]], Awaitable[dict]]


class MessageHandler:
    """Dispatches action messages to the orchestrator."""

    def __init__(self, orchestrator: CredentialOrchestrator):
        self.orchestrator = orchestrator
        self._actions: dict[str, Handler] = {
            'checkAuth': self.check_auth,
            'validateUser': self.validate_user,
            'fetchCredentials': self.fetch_credentials,
            'fetchAllCredentials': self.fetch_all_credentials,
            'refreshCredentials': self.refresh_credentials,
            'getCredentialForAutofill': self.get_credential,
            'getCredentialForCopy': self.get_credential,
            'logout': self.logout,
            'testConnection': self.test_connection,
        }

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    async def handle(self, request: Mapping[str, Any]) -> dict:
        """Run one request and return its tagged outcome; never raises."""
        action = request.get('action') if isinstance(request, Mapping) else None
        try:
            handler = self._actions.get(action) if isinstance(action, str) else None
            if handler is None:
                raise InvalidInput(f"Unknown action: {action}")
            return await handler(request)
        except VaultError as err:
            logger.warning("Action %s failed: %s", action, err.code)
            return err.to_dict()
        except Exception as err:
            logger.exception("Error handling action %s: %s", action, err)
            return {
                "success": False,
                "error": "internal",
                "message": str(err),
            }

    async def handle_raw(self, payload: Union[bytes, str]) -> bytes:
        """JSON in, JSON out; for bridges that carry raw message bodies."""
        try:
            request = orjson.loads(payload)
        except orjson.JSONDecodeError as err:
            logger.warning("Discarding malformed message: %s", err)
            return orjson.dumps(InvalidInput("Malformed message").to_dict())
        response = await self.handle(request)
        try:
            return orjson.dumps(response)
        finally:
            # the serialized body is the only copy handed out
            clear_sensitive_data(response)

    @staticmethod
    def _require(request: Mapping[str, Any], *names: str) -> list[Any]:
        missing = [name for name in names if request.get(name) in (None, '')]
        if missing:
            raise InvalidInput(f"Missing {', '.join(missing)}")
        return [request[name] for name in names]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def check_auth(self, request: Mapping[str, Any]) -> dict:
        return {
            "success": True,
            "authenticated": await self.orchestrator.check_auth(),
        }

    async def validate_user(self, request: Mapping[str, Any]) -> dict:
        user_id, password = self._require(request, 'userId', 'password')
        session = await self.orchestrator.authenticate(user_id, password)
        return {
            "success": True,
            "user": session.model_dump(
                mode='json', exclude={'session_token', 'created_at'}
            ),
        }

    async def fetch_credentials(self, request: Mapping[str, Any]) -> dict:
        url, = self._require(request, 'url')
        credentials = await self.orchestrator.credentials_for_url(url)
        return {
            "success": True,
            "credentials": [cred.model_dump() for cred in credentials],
        }

    async def fetch_all_credentials(self, request: Mapping[str, Any]) -> dict:
        credentials = await self.orchestrator.list_credentials()
        return {
            "success": True,
            "credentials": [cred.model_dump() for cred in credentials],
        }

    async def refresh_credentials(self, request: Mapping[str, Any]) -> dict:
        count = await self.orchestrator.refresh()
        return {"success": True, "count": count}

    async def get_credential(self, request: Mapping[str, Any]) -> dict:
        credential_id, = self._require(request, 'credentialId')
        credential = await self.orchestrator.use_credential(credential_id)
        response = {
            "success": True,
            "credential": {
                "username": credential.username,
                "password": credential.password,
            },
        }
        credential.wipe()
        return response

    async def logout(self, request: Mapping[str, Any]) -> dict:
        await self.orchestrator.logout()
        return {"success": True}

    async def test_connection(self, request: Mapping[str, Any]) -> dict:
        connected = await self.orchestrator.test_connection()
        return {"success": connected, "connected": connected}
