from __future__ import annotations

import re
from datetime import datetime

from funding_hub.utils.datetime_utils import is_deadline_past, parse_iso_date
from funding_hub.utils.text_utils import normalize_whitespace

from .rules import (
    DEFAULT_RULES,
    DEFAULT_TYPE,
    ExtractionRules,
    first_matching_tag,
    matches_any,
)

_AMOUNT = re.compile(
    r"((?:£|\bGBP)\s?\d(?:[\d,]*\d)?(?:\.\d+)?"
    r"(?:\s?(?:million|billion|thousand|m|k)\b)?"
    r"(?:\s*(?:per year|a year|total))?)",
    re.IGNORECASE,
)


def extract_amount(text: str | None) -> str | None:
    if not text:
        return None
    match = _AMOUNT.search(text)
    if match is None:
        return None
    return normalize_whitespace(match.group(1))


def classify_type(text: str | None, rules: ExtractionRules = DEFAULT_RULES) -> str:
    return first_matching_tag(text or "", rules.type_rules, DEFAULT_TYPE)


def infer_status(
    text: str | None,
    deadline: str | None,
    now: datetime,
    rules: ExtractionRules = DEFAULT_RULES,
) -> str:
    content = text or ""
    if matches_any(content, rules.closed_phrases):
        return "closed"

    if matches_any(content, rules.open_phrases):
        return "closed" if is_deadline_past(deadline, now) else "open"

    if parse_iso_date(deadline) is not None:
        return "closed" if is_deadline_past(deadline, now) else "open"

    return "unknown"
