from abc import ABC, abstractmethod
from typing import Dict, List, Mapping, Sequence


class TableBackend(ABC):
    """
    Durable home of one table of string records.

    Rows come back in insertion order as plain dicts keyed by `fields`.
    Implementations raise StorageIOFailure when the underlying medium fails.
    """

    def __init__(self, fields: Sequence[str]):
        self.fields = list(fields)

    def initialize(self) -> None:
        """Idempotent setup (create files, tables...)."""

    @abstractmethod
    def load_all(self) -> List[Dict[str, str]]:
        ...

    @abstractmethod
    def append(self, row: Mapping[str, str]) -> None:
        ...

    @abstractmethod
    def save_all(self, rows: Sequence[Mapping[str, str]]) -> None:
        """Replace the whole table content with `rows`."""

    def ping(self) -> bool:
        return True

    def _project(self, row: Mapping[str, object]) -> Dict[str, str]:
        return {name: "" if row.get(name) is None else str(row.get(name)) for name in self.fields}
