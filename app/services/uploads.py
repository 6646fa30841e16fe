import logging
import os
import re
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Union

from app.core.errors import StorageIOFailure

logger = logging.getLogger(__name__)

# ';' joins attachment lists and line breaks end table rows
_UNSAFE_NAME_CHARS = re.compile(r"[;\r\n]")
MAX_NAME_ATTEMPTS = 100


class UploadStorage:
    """Owns attachment bytes; tickets only ever reference the generated names."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def initialize(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def generate_name(filename: str, attempt: int = 0) -> str:
        """
        Prefix the original name with epoch milliseconds.

        Only the basename is kept so a crafted filename can not escape the
        uploads directory. Retries after a clash get a `-<attempt>` suffix on
        the timestamp.
        """
        base = os.path.basename((filename or "").replace("\\", "/"))
        base = _UNSAFE_NAME_CHARS.sub("_", base) or "upload"
        stamp = str(int(time.time() * 1000))
        if attempt:
            stamp = f"{stamp}-{attempt}"
        return f"{stamp}-{base}"

    def save(self, filename: str, fileobj: BinaryIO) -> str:
        self.initialize()
        try:
            for attempt in range(MAX_NAME_ATTEMPTS):
                stored_name = self.generate_name(filename, attempt)
                try:
                    f = open(self.directory / stored_name, "xb")
                except FileExistsError:
                    continue
                with f:
                    shutil.copyfileobj(fileobj, f)
                break
            else:
                raise FileExistsError(f"no free name for {filename} after {MAX_NAME_ATTEMPTS} attempts")
        except OSError as e:
            logger.error(f"Failed to save upload {filename}: {e}")
            raise StorageIOFailure(f"Could not save upload {filename}") from e

        logger.info(f"Saved upload {stored_name}")
        return stored_name
