from datetime import date, datetime, timezone
from typing import Iterable, Mapping, Optional

CATEGORY_CODES = {
    "Network": "NET",
    "Server": "SER",
    "Storage": "STOR",
    "Power": "PWD",
    "Cooling": "COOL",
    "Security": "SEC",
    "Access Control": "AC",
    "Application": "APP",
    "Database": "DBS",
}
DEFAULT_CATEGORY_CODE = "GEN"

BUILDING_CODES = ("LOS1", "LOS2", "LOS3", "LOS4", "LOS5")
DEFAULT_BUILDING_CODE = "LOS5"


def category_code(category: Optional[str]) -> str:
    return CATEGORY_CODES.get(category or "", DEFAULT_CATEGORY_CODE)


def building_code(building: Optional[str]) -> str:
    return building if building in BUILDING_CODES else DEFAULT_BUILDING_CODE


def generate(
    category: Optional[str],
    building: Optional[str],
    existing_records: Iterable[Mapping[str, str]],
    today: Optional[date] = None,
) -> str:
    """
    Build KASI-<building>-<YYYYMMDD>-<category code>-<sequence>.

    The sequence counts existing records of the same category, so it is only
    unique while no ticket of that category has been deleted.
    """
    category = category or ""
    if today is None:
        today = datetime.now(timezone.utc).date()
    count = sum(1 for record in existing_records if record.get("category", "") == category)
    return "KASI-{}-{}-{}-{:04d}".format(
        building_code(building), today.strftime("%Y%m%d"), category_code(category), count + 1
    )
