import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Union

from app.core import codec
from app.core.errors import StorageIOFailure
from app.storage.base import TableBackend

logger = logging.getLogger(__name__)


class CsvTable(TableBackend):
    """A table kept as one quoted CSV file, rewritten whole on save_all."""

    def __init__(self, path: Union[str, Path], fields: Sequence[str]):
        super().__init__(fields)
        self.path = Path(path)

    def initialize(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if not self.path.exists():
                self.path.write_text(codec.header_line(self.fields) + "\n", encoding="utf-8")
                logger.info("Created table %s", self.path)
        except OSError as e:
            raise StorageIOFailure(f"Could not initialize {self.path}: {e}") from e

    def read_text(self) -> str:
        if not self.path.exists():
            return ""
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageIOFailure(f"Could not read {self.path}: {e}") from e

    def load_all(self) -> List[Dict[str, str]]:
        return [self._project(row) for row in codec.decode(self.read_text())]

    def append(self, row: Mapping[str, str]) -> None:
        if not self.path.exists():
            self.initialize()
        line = codec.encode_row(row, self.fields) + "\n"
        try:
            if not self._ends_with_newline():
                line = "\n" + line
            with open(self.path, "a", encoding="utf-8", newline="") as f:
                f.write(line)
        except OSError as e:
            raise StorageIOFailure(f"Could not append to {self.path}: {e}") from e

    def _ends_with_newline(self) -> bool:
        with open(self.path, "rb") as f:
            f.seek(0, os.SEEK_END)
            if f.tell() == 0:
                return True
            f.seek(-1, os.SEEK_END)
            return f.read(1) in (b"\n", b"\r")

    def save_all(self, rows: Sequence[Mapping[str, str]]) -> None:
        text = codec.encode(rows, self.fields)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                    f.write(text)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StorageIOFailure(f"Could not write {self.path}: {e}") from e

    def ping(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.R_OK | os.W_OK)
