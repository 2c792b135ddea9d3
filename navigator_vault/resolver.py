"""
Access Resolver — which credentials a requester may use.

Admins see everything. Anyone else sees a credential only when

* its grantee list names them (comma separated display names, trimmed,
  case-insensitive), or
* an explicit permission grant for its id lists their user id
  (exact, case-sensitive).

Credentials with neither are invisible to non-admins. Matching by display
name is weaker than an id grant: two people sharing a display name share
access.
"""
from collections.abc import Iterable, Mapping, Sequence
from typing import Union

from .models import CredentialRecord, PermissionGrant, Requester


def parse_grantees(text: str) -> list[str]:
    """Split a grantee list into trimmed, lowercased names."""
    if not text:
        return []
    return [name.strip().lower() for name in text.split(',') if name.strip()]


def parse_permission_rows(rows: Iterable[Sequence[str]]) -> list[PermissionGrant]:
    """Build grants from ``[credential id, "u1, u2"]`` rows.

    Rows whose first column is not a number are skipped.
    """
    grants: list[PermissionGrant] = []
    for row in rows:
        if not row:
            continue
        try:
            credential_id = int(str(row[0]).strip())
        except ValueError:
            continue
        raw_ids = row[1] if len(row) > 1 else ''
        allowed = frozenset(
            uid.strip() for uid in str(raw_ids).split(',') if uid.strip()
        )
        grants.append(
            PermissionGrant(credential_id=credential_id, allowed_user_ids=allowed)
        )
    return grants


def index_permissions(
    permissions: Iterable[PermissionGrant]
) -> dict[int, set[str]]:
    """Merge grants by credential id."""
    index: dict[int, set[str]] = {}
    for grant in permissions:
        index.setdefault(grant.credential_id, set()).update(grant.allowed_user_ids)
    return index


def is_visible(
    credential: CredentialRecord,
    grants: Mapping[int, set[str]],
    requester: Requester
) -> bool:
    if requester.is_admin:
        return True
    name = requester.display_name.strip().lower()
    if name and name in parse_grantees(credential.grantees):
        return True
    return requester.user_id in grants.get(credential.id, ())


def resolve(
    credentials: Iterable[CredentialRecord],
    permissions: Union[Iterable[PermissionGrant], Mapping[int, set[str]], None],
    requester: Requester
) -> list[CredentialRecord]:
    """Return the credentials visible to ``requester``, in source order."""
    if requester.is_admin:
        return list(credentials)
    if isinstance(permissions, Mapping):
        grants = permissions
    else:
        grants = index_permissions(permissions or ())
    return [cred for cred in credentials if is_visible(cred, grants, requester)]
