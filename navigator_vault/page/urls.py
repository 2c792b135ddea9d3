"""
URL normalization and page matching.

Matching is a deliberately permissive, bidirectional substring test on
normalized URLs: a stored ``example.com`` matches ``app.example.com/login``
and a stored ``example.com/login`` matches a page at ``example.com``.
"""
import re
from collections.abc import Iterable
from typing import Protocol, TypeVar

_SCHEME = re.compile(r'^[a-z][a-z0-9+.\-]*://')
_WWW = re.compile(r'^www\.')
_QUERY = re.compile(r'\?.*$')


class HasWebsite(Protocol):
    website_url: str


T = TypeVar('T', bound=HasWebsite)


def normalize(url: str) -> str:
    """Lowercase, drop scheme, leading ``www.``, query and trailing slash.

    >>> normalize("https://www.Example.com/login/")
    'example.com/login'
    """
    value = (url or '').strip().lower()
    value = _SCHEME.sub('', value)
    value = _WWW.sub('', value)
    value = _QUERY.sub('', value)
    if value.endswith('/'):
        value = value[:-1]
    return value


def matches_page(candidate_url: str, page_url: str) -> bool:
    """True if either normalized URL contains the other.

    An empty normalized URL never matches anything.
    """
    candidate = normalize(candidate_url)
    page = normalize(page_url)
    if not candidate or not page:
        return False
    return candidate in page or page in candidate


def filter_for_page(credentials: Iterable[T], page_url: str) -> list[T]:
    """Keep the credentials whose website matches ``page_url``, in order."""
    return [
        cred for cred in credentials if matches_page(cred.website_url, page_url)
    ]
