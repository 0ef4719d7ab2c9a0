from __future__ import annotations

import html as html_lib
import re

_HTML_TAGS = re.compile(r"<[^>]+>")
_MULTISPACE = re.compile(r"\s+")
_NON_CONTENT_BLOCKS = re.compile(
    r"<(script|style|noscript)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_CDATA = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)


def normalize_whitespace(value: str) -> str:
    return _MULTISPACE.sub(" ", value or "").strip()


def decode_entities(value: str) -> str:
    return html_lib.unescape(value or "")


def strip_html(value: str) -> str:
    """Flatten markup to a single line of visible text."""
    if not value:
        return ""
    unwrapped = _CDATA.sub(r"\1", value)
    without_blocks = _NON_CONTENT_BLOCKS.sub(" ", unwrapped)
    without_tags = _HTML_TAGS.sub(" ", without_blocks)
    return normalize_whitespace(decode_entities(without_tags))


def first_non_empty(*values: str | None) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return normalize_whitespace(value)
    return ""
