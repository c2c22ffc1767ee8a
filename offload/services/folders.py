"""Folder organization: map a file record to a subfolder under a destination root."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from ..core.config import FolderOrganizationConfig
from ..core.models import FileRecord


DEFAULT_CUSTOM_FOLDER = "Imported Files"
DEFAULT_DATE_FORMAT = "YYYY/MM/DD"

MONTH_NAMES = {
    1: "jan", 2: "feb", 3: "mar", 4: "apr",
    5: "may", 6: "jun", 7: "jul", 8: "aug",
    9: "sep", 10: "oct", 11: "nov", 12: "dec",
}

# Selector -> str.format template over year/month/day/mon.
DATE_FORMATS = {
    "YYYY/MM/DD": "{year}/{month}/{day}",
    "YYYY-MM-DD": "{year}-{month}-{day}",
    "YYYY/YYYY-MM-DD": "{year}/{year}-{month}-{day}",
    "YYYY/mon DD": "{year}/{mon} {day}",
    "YYYY/MM": "{year}/{month}",
    "YYYY/mon": "{year}/{mon}",
    "YYYY/mon/DD": "{year}/{mon}/{day}",
    "YYYY/YYYY-MM/YYYY-MM-DD": "{year}/{year}-{month}/{year}-{month}-{day}",
    "YYYY mon DD": "{year} {mon} {day}",
    "YYYYMMDD": "{year}{month}{day}",
}

# Example-date spellings offered by settings screens, accepted as selectors.
_EXAMPLE_ALIASES = {
    "2025/05/26": "YYYY/MM/DD",
    "2025-05-26": "YYYY-MM-DD",
    "2025/2025-05-26": "YYYY/YYYY-MM-DD",
    "2025/may 26": "YYYY/mon DD",
    "2025/05": "YYYY/MM",
    "2025/may": "YYYY/mon",
    "2025/may/26": "YYYY/mon/DD",
    "2025/2025-05/2025-05-26": "YYYY/YYYY-MM/YYYY-MM-DD",
    "2025 may 26": "YYYY mon DD",
    "20250526": "YYYYMMDD",
}
DATE_FORMAT_ALIASES = {
    **_EXAMPLE_ALIASES,
    **{alias.replace("may", "mai"): fmt for alias, fmt in _EXAMPLE_ALIASES.items() if "may" in alias},
}


def normalize_date_format(selector: Optional[str]) -> str:
    """Canonical template name for a selector; unknown -> YYYY/MM/DD."""
    if selector in DATE_FORMATS:
        return selector
    return DATE_FORMAT_ALIASES.get(selector or "", DEFAULT_DATE_FORMAT)


def format_date_folder(date: datetime, selector: Optional[str]) -> str:
    """Render ``date`` with the given format selector.

    >>> format_date_folder(datetime(2025, 5, 26), "YYYY/mon/DD")
    '2025/may/26'
    """
    template = DATE_FORMATS[normalize_date_format(selector)]
    return template.format(
        year=f"{date.year:04d}",
        month=f"{date.month:02d}",
        day=f"{date.day:02d}",
        mon=MONTH_NAMES[date.month],
    )


def sanitize_folder_name(name: str) -> str:
    """Reduce a user-supplied folder name to a relative path.

    Leading separators, "." and ".." segments are dropped so the result
    always stays below the destination root.

    >>> sanitize_folder_name("/../trips//2024/")
    'trips/2024'
    """
    parts = re.split(r"[\\/]+", name.strip())
    return "/".join(p for p in (part.strip() for part in parts) if p and p not in (".", ".."))


def resolve_folder(
    record: FileRecord,
    config: FolderOrganizationConfig,
    now: Optional[datetime] = None,
) -> str:
    """Relative subfolder for ``record`` ("" means the destination root).

    Args:
        record: Scanned file.
        config: Folder organization policy.
        now: Fallback date when the record has no creation time.

    Returns:
        A "/"-separated relative path.
    """
    if not config.enabled:
        return ""
    match config.mode:
        case "custom":
            return sanitize_folder_name(config.custom_name) or DEFAULT_CUSTOM_FOLDER
        case "date":
            date = record.created or now or datetime.now()
            return format_date_folder(date, config.date_format)
    return ""
