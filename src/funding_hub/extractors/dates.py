from __future__ import annotations

import re
from datetime import date

MONTHS = {
    "january": 1,
    "jan": 1,
    "february": 2,
    "feb": 2,
    "march": 3,
    "mar": 3,
    "april": 4,
    "apr": 4,
    "may": 5,
    "june": 6,
    "jun": 6,
    "july": 7,
    "jul": 7,
    "august": 8,
    "aug": 8,
    "september": 9,
    "sept": 9,
    "sep": 9,
    "october": 10,
    "oct": 10,
    "november": 11,
    "nov": 11,
    "december": 12,
    "dec": 12,
}

_MONTH_NAMES = "|".join(sorted(MONTHS, key=len, reverse=True))
_DAY = r"(0?[1-9]|[12]\d|3[01])"
_MONTH_NUMBER = r"(0?[1-9]|1[0-2])"
_YEAR = r"(20\d{2})"

_ISO_DATE = re.compile(rf"\b{_YEAR}[-/]{_MONTH_NUMBER}[-/]{_DAY}\b")
_DMY_NUMERIC = re.compile(rf"\b{_DAY}[/\-.]{_MONTH_NUMBER}[/\-.]{_YEAR}\b")
_DAY_MONTH_YEAR = re.compile(
    rf"\b{_DAY}(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_NAMES})\.?\s+{_YEAR}\b",
    re.IGNORECASE,
)
_MONTH_DAY_YEAR = re.compile(
    rf"\b({_MONTH_NAMES})\.?\s+{_DAY}(?:st|nd|rd|th)?\s+{_YEAR}\b",
    re.IGNORECASE,
)
_LABELED_DEADLINE = re.compile(
    r"\b(deadline|closing date|applications? close(?:s|d)?|closes?|closing)"
    r"\s*[:\-]?\s*([^.\n;]{4,80})",
    re.IGNORECASE,
)
_SEPARATORS = re.compile(r"[,\s]+")


def to_iso_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_date_from_text(text: str | None) -> str | None:
    """Return the first valid calendar date in ``text`` as ``YYYY-MM-DD``.

    Patterns are tried in a fixed order (ISO, numeric day/month/year, day
    month-name year, month-name day year). Matches that are not real dates
    are skipped rather than rolled over.
    """
    if not text:
        return None
    normalized = _SEPARATORS.sub(" ", text).strip()

    for match in _ISO_DATE.finditer(normalized):
        parsed = to_iso_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        if parsed:
            return parsed

    for match in _DMY_NUMERIC.finditer(normalized):
        parsed = to_iso_date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        if parsed:
            return parsed

    for match in _DAY_MONTH_YEAR.finditer(normalized):
        month = MONTHS[match.group(2).lower()]
        parsed = to_iso_date(int(match.group(3)), month, int(match.group(1)))
        if parsed:
            return parsed

    for match in _MONTH_DAY_YEAR.finditer(normalized):
        month = MONTHS[match.group(1).lower()]
        parsed = to_iso_date(int(match.group(3)), month, int(match.group(2)))
        if parsed:
            return parsed

    return None


def extract_deadline(text: str | None) -> str | None:
    if not text:
        return None

    labeled = _LABELED_DEADLINE.search(text)
    if labeled:
        parsed = parse_date_from_text(labeled.group(2))
        if parsed:
            return parsed

    return parse_date_from_text(text)
