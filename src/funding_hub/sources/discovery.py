from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable

from funding_hub.extractors.rules import (
    DEFAULT_RULES,
    HOST_MATCH_WEIGHT,
    HOST_MISMATCH_WEIGHT,
    ExtractionRules,
    matches_any,
)
from funding_hub.filters import ContentGate, Filter
from funding_hub.models import (
    Candidate,
    CandidateLink,
    Diagnostic,
    LinkCandidate,
    SeedPageCandidate,
    Source,
)
from funding_hub.utils.datetime_utils import utc_now
from funding_hub.utils.text_utils import strip_html
from funding_hub.utils.url_utils import (
    canonicalize_url,
    get_host,
    host_matches_allowed,
    is_http_url,
    resolve_url,
)

from .base import FetchError, looks_like_feed
from .feeds import parse_feed_candidates

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], str]

_ANCHOR = re.compile(
    r"<a\b[^>]*?\bhref\s*=\s*[\"']([^\"']+)[\"'][^>]*>(.*?)</a\s*>",
    re.IGNORECASE | re.DOTALL,
)
_SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:")
MIN_ANCHOR_TEXT_LENGTH = 2


@dataclass(slots=True)
class DiscoveryResult:
    source_id: str
    candidates: list[Candidate] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    seeds_attempted: int = 0
    seeds_fetched: int = 0

    @property
    def failed(self) -> bool:
        return self.seeds_attempted > 0 and self.seeds_fetched == 0


def extract_links(html: str, base_url: str) -> list[CandidateLink]:
    links: list[CandidateLink] = []
    for match in _ANCHOR.finditer(html or ""):
        href = match.group(1).strip()
        if not href or href.startswith("#") or href.lower().startswith(_SKIPPED_SCHEMES):
            continue

        absolute = resolve_url(href, base_url)
        if not absolute or not is_http_url(absolute):
            continue

        text = strip_html(match.group(2))
        if len(text) < MIN_ANCHOR_TEXT_LENGTH:
            continue

        links.append(CandidateLink(url=canonicalize_url(absolute), anchor_text=text))
    return links


def score_candidate(
    link: CandidateLink, source: Source, rules: ExtractionRules = DEFAULT_RULES
) -> int:
    text = f"{link.anchor_text} {link.url}"
    score = sum(
        rule.weight for rule in rules.candidate_score_rules if matches_any(text, rule.keywords)
    )

    allowed_hosts = source.allowed_hosts()
    if allowed_hosts:
        if host_matches_allowed(get_host(link.url), allowed_hosts):
            score += HOST_MATCH_WEIGHT
        else:
            score += HOST_MISMATCH_WEIGHT
    return score


def pick_candidate_links(
    links: list[CandidateLink],
    source: Source,
    max_per_source: int,
    rules: ExtractionRules = DEFAULT_RULES,
) -> list[CandidateLink]:
    deduped: dict[str, CandidateLink] = {}
    for link in links:
        previous = deduped.get(link.url)
        if previous is None or len(link.anchor_text) > len(previous.anchor_text):
            deduped[link.url] = link

    scored = [
        replace(link, score=score_candidate(link, source, rules))
        for link in deduped.values()
    ]
    ranked = sorted(
        (link for link in scored if link.score >= 1),
        key=lambda link: link.score,
        reverse=True,
    )
    return ranked[:max_per_source]


class CandidateDiscoverer:
    def __init__(
        self,
        fetch: Fetcher,
        *,
        max_per_source: int,
        rules: ExtractionRules = DEFAULT_RULES,
        gate: Filter | None = None,
        now: datetime | None = None,
    ) -> None:
        self.fetch = fetch
        self.max_per_source = max_per_source
        self.rules = rules
        self.gate = gate or ContentGate(rules)
        self.now = now or utc_now()

    def discover(self, source: Source) -> DiscoveryResult:
        result = DiscoveryResult(source_id=source.id)

        for seed_url in source.seed_urls:
            result.seeds_attempted += 1
            try:
                content = self.fetch(seed_url)
            except FetchError as exc:
                message = f"seed fetch failed: {exc}"
                logger.warning("Source %s %s", source.id, message)
                result.diagnostics.append(Diagnostic(error=message, seed_url=seed_url))
                continue
            result.seeds_fetched += 1

            if looks_like_feed(content):
                feed_candidates = parse_feed_candidates(
                    content,
                    source=source,
                    seed_url=seed_url,
                    max_items=self.max_per_source,
                    now=self.now,
                    rules=self.rules,
                    gate=self.gate,
                )
                logger.info(
                    "Source %s feed %s yielded %d items",
                    source.id,
                    seed_url,
                    len(feed_candidates),
                )
                result.candidates.extend(feed_candidates)
                continue

            picks = pick_candidate_links(
                extract_links(content, seed_url), source, self.max_per_source, self.rules
            )
            logger.info(
                "Source %s seed %s yielded %d candidate links",
                source.id,
                seed_url,
                len(picks),
            )
            result.candidates.extend(
                LinkCandidate(
                    source=source,
                    seed_url=seed_url,
                    url=link.url,
                    anchor_text=link.anchor_text,
                )
                for link in picks
            )
            result.candidates.append(
                SeedPageCandidate(
                    source=source,
                    seed_url=seed_url,
                    url=canonicalize_url(seed_url),
                    anchor_text=source.name,
                )
            )

        return result
