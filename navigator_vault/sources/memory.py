"""In-process Credential Source over a mapping of named ranges."""
import copy
from collections.abc import Mapping, Sequence

from ..exceptions import RangeNotFound, SourceError
from .abstract import RangeSource


class MemorySource(RangeSource):
    """Rows held in memory, keyed by range name.

    Useful for local setups and tests. Setting ``available`` to False makes
    every fetch fail like an unreachable directory.
    """

    def __init__(self, ranges: Mapping[str, Sequence[Sequence[str]]]):
        self._ranges = {
            name: [list(row) for row in rows] for name, rows in ranges.items()
        }
        self.available = True
        self.calls: list[str] = []

    async def fetch_rows(self, range_name: str, *, users: bool = False) -> list[list[str]]:
        self.calls.append(range_name)
        if not self.available:
            raise SourceError("Credential source is unavailable")
        try:
            rows = self._ranges[range_name]
        except KeyError:
            raise RangeNotFound(
                f'Range "{range_name}" not found'
            ) from None
        return copy.deepcopy(rows)

    async def test_connection(self) -> bool:
        return self.available
