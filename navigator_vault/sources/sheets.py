"""
Spreadsheet Credential Source.

Reads credentials, users and permissions straight from the spreadsheet
values API with an API key. Credentials are returned unfiltered: the
orchestrator applies the access resolver locally.

Security Note:
    The API key travels as a query parameter; never log request URLs.
"""
import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from ..conf import VAULT_SHEETS_BASE_URL, VAULT_HTTP_TIMEOUT
from ..exceptions import AccessDenied, RangeNotFound, SourceError
from .abstract import RangeSource

logger = logging.getLogger("navigator.vault.sources")


class SheetsSource(RangeSource):
    """Credential Source over the spreadsheet values API."""

    prefiltered = False

    def __init__(
        self,
        api_key: str,
        spreadsheet_id: str,
        auth_spreadsheet_id: Optional[str] = None,
        base_url: str = VAULT_SHEETS_BASE_URL,
        timeout: float = VAULT_HTTP_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._api_key = api_key
        self._spreadsheet_id = spreadsheet_id
        self._auth_spreadsheet_id = auth_spreadsheet_id or spreadsheet_id
        self._base_url = base_url.rstrip('/')
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

    async def fetch_rows(self, range_name: str, *, users: bool = False) -> list[list[str]]:
        spreadsheet = self._auth_spreadsheet_id if users else self._spreadsheet_id
        url = f"{self._base_url}/{spreadsheet}/values/{quote(range_name, safe='')}"
        session = self._get_session()
        try:
            async with session.get(url, params={"key": self._api_key}) as response:
                if response.status == 400:
                    raise RangeNotFound(
                        f'Sheet or range "{range_name}" not found'
                    )
                if response.status == 403:
                    raise AccessDenied(
                        "Sheet is not shared or API key doesn't have access"
                    )
                if response.status >= 400:
                    raise SourceError(
                        f"API request failed: {response.status} {response.reason}"
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise SourceError(f"Spreadsheet request failed: {err}") from err
        except ValueError as err:
            raise SourceError(f"Invalid spreadsheet response: {err}") from err
        if not isinstance(data, dict):
            raise SourceError("Invalid spreadsheet response: expected an object")
        values = data.get("values") or []
        if not isinstance(values, list):
            raise SourceError("Invalid spreadsheet response: values is not a list")
        return values

    async def test_connection(self) -> bool:
        url = f"{self._base_url}/{self._spreadsheet_id}"
        try:
            async with self._get_session().get(
                url, params={"key": self._api_key}
            ) as response:
                return response.status < 400
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            logger.warning("Spreadsheet connection test failed: %s", err)
            return False
