from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import feedparser

from funding_hub.extractors.rules import ExtractionRules
from funding_hub.filters import Filter
from funding_hub.models import FeedCandidate, Source
from funding_hub.utils.text_utils import first_non_empty, strip_html

from .drafts import draft_opportunity

logger = logging.getLogger(__name__)

FEED_DESCRIPTION_LIMIT = 900


def parse_feed_candidates(
    content: str,
    *,
    source: Source,
    seed_url: str,
    max_items: int,
    now: datetime,
    rules: ExtractionRules,
    gate: Filter,
) -> list[FeedCandidate]:
    parsed = feedparser.parse(content)
    if getattr(parsed, "bozo", False):
        logger.warning("Feed parsing bozo exception for %s: %s", seed_url, parsed.bozo_exception)

    candidates: list[FeedCandidate] = []
    for entry in parsed.entries[:max_items]:
        title = first_non_empty(strip_html(str(entry.get("title") or "")))
        link = first_non_empty(str(entry.get("link") or ""))
        if not title or not link:
            continue

        description = strip_html(_entry_body(entry))[:FEED_DESCRIPTION_LIMIT]
        merged = f"{title} {description}"
        opportunity = draft_opportunity(
            source=source,
            url=link,
            title=title,
            description=description,
            extraction_text=merged,
            type_text=merged,
            source_type="rss",
            now=now,
            rules=rules,
        )
        if gate.matches(opportunity):
            candidates.append(
                FeedCandidate(source=source, seed_url=seed_url, opportunity=opportunity)
            )
    return candidates


def _entry_body(entry: Any) -> str:
    summary = entry.get("summary") or entry.get("description")
    if summary:
        return str(summary)

    content = entry.get("content")
    if isinstance(content, list):
        for block in content:
            value = block.get("value") if isinstance(block, dict) else None
            if value:
                return str(value)
    return ""
