from typing import Dict, List, Mapping, Sequence

from app.storage.base import TableBackend


class MemoryTable(TableBackend):
    """Process-local table, for tests and throwaway runs."""

    def __init__(self, fields: Sequence[str]):
        super().__init__(fields)
        self._rows: List[Dict[str, str]] = []

    def load_all(self) -> List[Dict[str, str]]:
        return [dict(row) for row in self._rows]

    def append(self, row: Mapping[str, str]) -> None:
        self._rows.append(self._project(row))

    def save_all(self, rows: Sequence[Mapping[str, str]]) -> None:
        self._rows = [self._project(row) for row in rows]
