from typing import Iterable, List, Optional
from urllib.parse import quote

SEPARATOR = ";"


def to_urls(stored_names: Optional[str], prefix: str = "/uploads") -> List[str]:
    """Map a ';'-joined list of stored file names to public URLs."""
    if not stored_names:
        return []
    base = prefix.rstrip("/")
    return [f"{base}/{quote(name.strip())}" for name in stored_names.split(SEPARATOR) if name.strip()]


def join_names(names: Iterable[str]) -> str:
    return SEPARATOR.join(name for name in names if name)
