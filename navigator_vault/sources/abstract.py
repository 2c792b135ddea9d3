"""
Credential Source interfaces.

``CredentialSource`` is what the orchestrator talks to. ``RangeSource``
implements it for directories that are read by named range (spreadsheet
tabs, tables): it owns the ordered fallback policy — try the primary range,
move on to the next one only when the range does not exist — and the
mapping from raw rows to records.
"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Optional

from ..conf import (
    CREDENTIAL_RANGES,
    USER_RANGES,
    PERMISSION_RANGES,
    FIRST_DATA_ROW,
)
from ..exceptions import RangeNotFound
from ..models import CredentialRecord, Identity, PermissionGrant, Requester
from ..resolver import parse_permission_rows

logger = logging.getLogger("navigator.vault.sources")

Row = Sequence[str]


def _cell(row: Row, idx: int) -> str:
    try:
        value = row[idx]
    except IndexError:
        return ''
    return '' if value is None else str(value)


class CredentialSource(ABC):
    """Remote credential/user directory."""

    #: True when the source already filtered credentials by requester.
    prefiltered: bool = False

    async def __aenter__(self) -> "CredentialSource":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Release transport resources, if any."""

    @abstractmethod
    async def fetch_credentials(
        self, requester: Optional[Requester] = None
    ) -> list[CredentialRecord]:
        """Return credential records in source order."""

    async def fetch_permissions(self) -> list[PermissionGrant]:
        """Return explicit permission grants (none by default)."""
        return []

    @abstractmethod
    async def validate_user(self, user_id: str, password: str) -> Optional[Identity]:
        """Return the identity for valid credentials, None when denied."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """True when the source is reachable."""


class RangeSource(CredentialSource):
    """Source read by named ranges, with ordered fallback."""

    credential_ranges: tuple[str, ...] = CREDENTIAL_RANGES
    user_ranges: tuple[str, ...] = USER_RANGES
    permission_ranges: tuple[str, ...] = PERMISSION_RANGES

    @abstractmethod
    async def fetch_rows(self, range_name: str, *, users: bool = False) -> list[list[str]]:
        """Return raw rows of a named range.

        Raises:
            RangeNotFound: the range does not exist.
            AccessDenied: the source refused access.
            SourceError: any other failure.
        """

    async def fetch_first_available(
        self, ranges: Sequence[str], *, users: bool = False
    ) -> list[list[str]]:
        """Fetch the first range that exists.

        Only ``RangeNotFound`` moves on to the next range; every other
        error propagates.
        """
        last_error: Optional[RangeNotFound] = None
        for range_name in ranges:
            try:
                return await self.fetch_rows(range_name, users=users)
            except RangeNotFound as err:
                logger.info("Range %s not found, trying next", range_name)
                last_error = err
        raise RangeNotFound(
            f"None of the ranges exist: {', '.join(ranges)}"
        ) from last_error

    @staticmethod
    def rows_to_credentials(rows: Sequence[Row]) -> list[CredentialRecord]:
        """Columns: url | username | password | grantees.

        Ids are positional (row number in the source). Incomplete rows are
        dropped without renumbering the others.
        """
        records = []
        for index, row in enumerate(rows):
            row_number = index + FIRST_DATA_ROW
            url = _cell(row, 0)
            username = _cell(row, 1)
            password = _cell(row, 2)
            if not (url and username and password):
                continue
            records.append(
                CredentialRecord(
                    id=row_number,
                    website_url=url,
                    username=username,
                    password=password,
                    grantees=_cell(row, 3).strip(),
                    row=row_number,
                )
            )
        return records

    async def fetch_credentials(
        self, requester: Optional[Requester] = None
    ) -> list[CredentialRecord]:
        rows = await self.fetch_first_available(self.credential_ranges)
        records = self.rows_to_credentials(rows)
        logger.debug("Fetched %d credential row(s)", len(records))
        return records

    async def fetch_permissions(self) -> list[PermissionGrant]:
        """Permissions are optional: a missing range means no grants."""
        try:
            rows = await self.fetch_first_available(self.permission_ranges)
        except RangeNotFound:
            logger.debug("No permissions range, using grantee names only")
            return []
        return parse_permission_rows(rows)

    async def validate_user(self, user_id: str, password: str) -> Optional[Identity]:
        """Columns: user id | password | display name | email | role.

        The stored password is compared as plaintext.
        """
        rows = await self.fetch_first_available(self.user_ranges, users=True)
        for row in rows:
            if _cell(row, 0) == user_id and _cell(row, 1) == password:
                logger.info("User authenticated from source: %s", user_id)
                return Identity(
                    user_id=user_id,
                    display_name=_cell(row, 2),
                    email=_cell(row, 3),
                    role=_cell(row, 4).strip() or 'staff',
                )
        return None
