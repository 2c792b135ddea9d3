"""
Remote backend Credential Source.

The backend holds the directory credentials and applies role-based
filtering itself: ``GET /credentials`` receives the requester and answers
with the credentials that requester may use.

    GET  /credentials?userId=&role=&fullName=  -> {success, credentials}
    POST /validate-user {userId, password}     -> {success, user} | 401
    GET  /health
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp

from ..conf import VAULT_HTTP_TIMEOUT, FIRST_DATA_ROW
from ..exceptions import SourceError
from ..models import CredentialRecord, Identity, Requester
from .abstract import CredentialSource

logger = logging.getLogger("navigator.vault.sources")


class BackendSource(CredentialSource):
    """Credential Source backed by the remote authorization service."""

    prefiltered = True

    def __init__(
        self,
        backend_url: str,
        timeout: float = VAULT_HTTP_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._base_url = backend_url.rstrip('/')
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    @staticmethod
    def _to_record(item: dict[str, Any], position: int) -> CredentialRecord:
        row = item.get('id', position + FIRST_DATA_ROW)
        return CredentialRecord(
            id=int(row),
            website_url=item.get('websiteUrl') or '',
            username=item.get('username') or '',
            password=item.get('password') or '',
            grantees=(item.get('vaName') or '').strip(),
            row=int(row),
        )

    async def fetch_credentials(
        self, requester: Optional[Requester] = None
    ) -> list[CredentialRecord]:
        if requester is None:
            raise SourceError("The backend source needs a requester")
        params = {
            'userId': requester.user_id or '',
            'role': requester.role.value,
            'fullName': requester.display_name or '',
        }
        try:
            async with self._get_session().get(
                f"{self._base_url}/credentials", params=params
            ) as response:
                if response.status >= 400:
                    raise SourceError(f"Backend error: {response.status}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise SourceError(f"Backend request failed: {err}") from err
        except ValueError as err:
            raise SourceError(f"Invalid backend response: {err}") from err
        if not isinstance(data, dict):
            raise SourceError("Invalid backend response: expected an object")
        if not data.get('success'):
            raise SourceError(data.get('error') or 'Backend refused the request')
        try:
            records = [
                self._to_record(item, idx)
                for idx, item in enumerate(data.get('credentials') or [])
            ]
        except (ValueError, TypeError, AttributeError) as err:
            raise SourceError(f"Invalid credential in backend response: {err}") from err
        logger.debug(
            "Backend returned %d credential(s) for user=%s",
            len(records), requester.user_id,
        )
        return records

    async def validate_user(self, user_id: str, password: str) -> Optional[Identity]:
        try:
            async with self._get_session().post(
                f"{self._base_url}/validate-user",
                json={'userId': user_id, 'password': password},
            ) as response:
                if response.status == 401:
                    return None
                if response.status >= 400:
                    raise SourceError(f"Backend error: {response.status}")
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise SourceError(f"Backend request failed: {err}") from err
        except ValueError as err:
            raise SourceError(f"Invalid backend response: {err}") from err
        if not isinstance(data, dict):
            raise SourceError("Invalid backend response: expected an object")
        if not data.get('success'):
            return None
        user = data.get('user') or {}
        try:
            return Identity(
                user_id=user.get('userId') or user_id,
                display_name=user.get('fullName') or '',
                email=user.get('email') or '',
                role=user.get('role') or 'staff',
            )
        except (ValueError, TypeError, AttributeError) as err:
            raise SourceError(f"Invalid user in backend response: {err}") from err

    async def test_connection(self) -> bool:
        try:
            async with self._get_session().get(f"{self._base_url}/health") as response:
                return response.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            logger.warning("Backend connection test failed: %s", err)
            return False
