"""
Date parsing for timeline events extracted by the LLM.
"""

import re
from datetime import datetime
from typing import Optional

MONTHS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)

_YEAR_ONLY = re.compile(r"^(\d{4})$")
_MONTH_YEAR = re.compile(rf"^({'|'.join(MONTHS)})\s+(\d{{4}})$", re.IGNORECASE)
_ANY_YEAR = re.compile(r"\d{4}")


def parse_date(text: Optional[str], now: Optional[datetime] = None) -> datetime:
    """
    Parse a loosely formatted date.

    Handles ISO dates ("2023-12-01"), a year alone ("2023"), "January 2024"
    and "mid-2023" (June 15). Anything else returns the current time.
    """
    fallback = now or datetime.now()
    if not text:
        return fallback

    value = text.strip()

    if _YEAR_ONLY.match(value):
        return datetime(int(value), 1, 1)

    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass

    match = _MONTH_YEAR.match(value)
    if match:
        return datetime(int(match.group(2)), MONTHS.index(match.group(1).lower()) + 1, 1)

    if "mid-" in value.lower():
        year = _ANY_YEAR.search(value)
        if year:
            return datetime(int(year.group(0)), 6, 15)

    return fallback
