from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable

from funding_hub.extractors.rules import DEFAULT_RULES, ExtractionRules
from funding_hub.filters import ContentGate, Filter
from funding_hub.models import (
    Candidate,
    Diagnostic,
    FeedCandidate,
    LinkCandidate,
    Opportunity,
    SeedPageCandidate,
)
from funding_hub.utils.datetime_utils import utc_now
from funding_hub.utils.text_utils import first_non_empty, strip_html

from .base import FetchError
from .drafts import draft_opportunity

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], str]

_H1 = re.compile(r"<h1\b[^>]*>(.*?)</h1\s*>", re.IGNORECASE | re.DOTALL)
_TITLE = re.compile(r"<title\b[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)
_META_TAG = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
_META_NAME_DESCRIPTION = re.compile(r"\bname\s*=\s*[\"']description[\"']", re.IGNORECASE)
_META_CONTENT = re.compile(r"\bcontent\s*=\s*(\"[^\"]*\"|'[^']*')", re.IGNORECASE | re.DOTALL)

LEADING_TEXT_LIMIT = 860
DESCRIPTION_LIMIT = 920
EXTRACTION_TEXT_LIMIT = 4000
TEXT_SAMPLE_LIMIT = 1600


@dataclass(slots=True)
class ResolveResult:
    items: list[Opportunity] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    fetched: int = 0
    produced: int = 0


def extract_title(html: str) -> str:
    for pattern in (_H1, _TITLE):
        match = pattern.search(html or "")
        if match:
            title = strip_html(match.group(1))
            if title:
                return title
    return ""


def extract_meta_description(html: str) -> str:
    for tag in _META_TAG.findall(html or ""):
        if not _META_NAME_DESCRIPTION.search(tag):
            continue
        content = _META_CONTENT.search(tag)
        if content:
            return strip_html(content.group(1)[1:-1])
    return ""


class DetailResolver:
    """Turns ranked candidates into draft opportunities."""

    def __init__(
        self,
        fetch: Fetcher,
        *,
        max_detail_fetch: int,
        rules: ExtractionRules = DEFAULT_RULES,
        gate: Filter | None = None,
        now: datetime | None = None,
    ) -> None:
        self.fetch = fetch
        self.max_detail_fetch = max_detail_fetch
        self.rules = rules
        self.gate = gate or ContentGate(rules)
        self.now = now or utc_now()

    def resolve(self, candidates: Iterable[Candidate]) -> ResolveResult:
        result = ResolveResult()
        seen_urls: set[str] = set()
        capped = False

        for candidate in candidates:
            if isinstance(candidate, FeedCandidate):
                result.items.append(candidate.opportunity)
                continue

            if candidate.url in seen_urls:
                continue
            if result.produced >= self.max_detail_fetch:
                if not capped:
                    logger.info(
                        "Detail cap (%d) reached; skipping remaining page candidates",
                        self.max_detail_fetch,
                    )
                    capped = True
                continue
            seen_urls.add(candidate.url)

            result.fetched += 1
            try:
                html = self.fetch(candidate.url)
            except FetchError as exc:
                logger.warning("Detail fetch failed for %s: %s", candidate.url, exc)
                result.diagnostics.append(
                    Diagnostic(
                        error=f"detail fetch failed: {exc}",
                        seed_url=candidate.seed_url,
                        detail_url=candidate.url,
                    )
                )
                continue

            opportunity = self._build(candidate, html)
            verdict = self.gate.evaluate(opportunity)
            if verdict.matched:
                result.items.append(opportunity)
                result.produced += 1
            else:
                logger.debug("Discarded %s: %s", candidate.url, verdict.reason_text())

        return result

    def _build(self, candidate: LinkCandidate | SeedPageCandidate, html: str) -> Opportunity:
        text = strip_html(html)
        title = first_non_empty(extract_title(html), candidate.anchor_text)
        description = first_non_empty(
            extract_meta_description(html), text[:LEADING_TEXT_LIMIT]
        )
        source_type = "seed_page" if isinstance(candidate, SeedPageCandidate) else "detail"

        return draft_opportunity(
            source=candidate.source,
            url=candidate.url,
            title=title,
            description=description[:DESCRIPTION_LIMIT],
            extraction_text=f"{title} {description} {text[:EXTRACTION_TEXT_LIMIT]}",
            type_text=f"{title} {candidate.url} {description}",
            source_type=source_type,
            now=self.now,
            rules=self.rules,
            text_sample=text[:TEXT_SAMPLE_LIMIT],
        )
