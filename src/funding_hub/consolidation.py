"""Merging, fallback, fingerprinting and diffing of opportunity records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable

from funding_hub.models import (
    Eligibility,
    Opportunity,
    PreviousSnapshot,
    Source,
    Summary,
)
from funding_hub.utils.datetime_utils import isoformat_utc
from funding_hub.utils.url_utils import (
    canonicalize_url,
    derive_opportunity_id,
    stable_hash,
)

logger = logging.getLogger(__name__)

FINGERPRINT_DESCRIPTION_CHARS = 320
STATUS_RANK = {"open": 0, "unknown": 1, "closed": 2}


class ConsolidationError(RuntimeError):
    """Raised when the consolidated item set violates its uniqueness invariants."""


@dataclass(frozen=True, slots=True)
class FallbackExample:
    title: str
    source_id: str
    description: str
    levels: tuple[str, ...]
    type: str
    url: str


FALLBACK_EXAMPLES: tuple[FallbackExample, ...] = (
    FallbackExample(
        title="UKRI Responsive Mode Research Grants",
        source_id="ukri",
        description=(
            "Suitable for UK university research teams, typically supporting "
            "multi-disciplinary projects."
        ),
        levels=("academic", "postdoc"),
        type="grant",
        url="https://www.ukri.org/opportunity/",
    ),
    FallbackExample(
        title="Royal Society University Research Fellowship",
        source_id="royal-society",
        description=(
            "Suitable for early independent researchers with strong long-term "
            "potential and host support."
        ),
        levels=("postdoc", "academic"),
        type="fellowship",
        url="https://royalsociety.org/grants/",
    ),
    FallbackExample(
        title="Commonwealth Master's Scholarships",
        source_id="commonwealth",
        description=(
            "Suitable for applicants from Commonwealth countries pursuing a UK "
            "master's degree."
        ),
        levels=("masters",),
        type="scholarship",
        url="https://cscuk.fcdo.gov.uk/scholarships/commonwealth-masters-scholarships/",
    ),
    FallbackExample(
        title="Chevening Scholarships",
        source_id="chevening",
        description="Suitable for international master's applicants with leadership potential.",
        levels=("masters",),
        type="scholarship",
        url="https://www.chevening.org/scholarships/",
    ),
    FallbackExample(
        title="Wellcome Early-Career Researcher Schemes",
        source_id="wellcome",
        description="Suitable for early-career researchers in health and life sciences.",
        levels=("postdoc", "academic"),
        type="grant",
        url="https://wellcome.org/grant-funding",
    ),
)


def richness(item: Opportunity) -> tuple[int, int]:
    """Merge rank: a parsed deadline beats any description length."""
    return (1 if item.deadline else 0, len(item.description or ""))


def merge_by_url(items: Iterable[Opportunity]) -> list[Opportunity]:
    """Collapse records sharing a canonical URL, keeping the richer one.

    Exact ties keep the record seen first, which follows configured source
    order.
    """
    by_url: dict[str, Opportunity] = {}
    for item in items:
        key = canonicalize_url(item.url)
        previous = by_url.get(key)
        if previous is None or richness(item) > richness(previous):
            by_url[key] = item
    return list(by_url.values())


def compute_fingerprint(item: Opportunity) -> str:
    return stable_hash(
        "|".join(
            [
                item.title,
                item.url,
                item.deadline or "",
                item.amount or "",
                item.status,
                (item.description or "")[:FINGERPRINT_DESCRIPTION_CHARS],
            ]
        )
    )


def with_fingerprints(items: Iterable[Opportunity]) -> list[Opportunity]:
    return [replace(item, fingerprint=compute_fingerprint(item)) for item in items]


def carry_forward(
    previous: PreviousSnapshot, sources: Iterable[Source], now: datetime
) -> list[Opportunity]:
    source_by_id = {source.id: source for source in sources}
    carried: list[Opportunity] = []

    for item in previous.items:
        source = source_by_id.get(item.source_id)
        previous_homepage = item.source_homepage or (source.homepage if source else "") or item.url
        next_homepage = source.homepage if source else previous_homepage
        resync_url = item.source_type in {"fallback", "carried_forward"} and bool(
            next_homepage.strip()
        )

        carried.append(
            replace(
                item,
                url=canonicalize_url(next_homepage) if resync_url else item.url,
                source_homepage=next_homepage,
                raw_signals={
                    **item.raw_signals,
                    "extractedAt": isoformat_utc(now),
                    "sourceType": "carried_forward",
                },
            )
        )
    return carried


def build_fallback_items(sources: Iterable[Source], now: datetime) -> list[Opportunity]:
    source_by_id = {source.id: source for source in sources}
    items: list[Opportunity] = []

    for example in FALLBACK_EXAMPLES:
        source = source_by_id.get(example.source_id)
        url = canonicalize_url(example.url)
        items.append(
            Opportunity(
                id=derive_opportunity_id(example.source_id, url, example.title),
                title=example.title,
                url=url,
                source_id=example.source_id,
                source_name=source.name if source else example.source_id,
                source_homepage=source.homepage if source else example.url,
                type=example.type,
                status="unknown",
                description=example.description,
                eligibility=Eligibility(
                    levels=example.levels,
                    career_stages=("early",),
                    nationalities=("any",),
                    disciplines=("all disciplines",),
                ),
                summary=Summary(
                    text=(
                        f"{example.description} (Fallback sample item: check the "
                        "official link for current opening status.)"
                    ),
                    fit=(
                        "Your profile aligns with the scheme focus",
                        "You can prepare required documents per official guidance",
                    ),
                    watch_out=("Always verify current dates and eligibility on the official page",),
                    model="fallback",
                    reasoning="No live source fetched",
                ),
                raw_signals={"extractedAt": isoformat_utc(now), "sourceType": "fallback"},
            )
        )
    return items


def fill_empty(
    items: list[Opportunity],
    previous: PreviousSnapshot,
    sources: list[Source],
    *,
    carry_forward_enabled: bool,
    now: datetime,
) -> tuple[list[Opportunity], str]:
    """Never hand back an empty set; returns the items and how they were obtained."""
    if items:
        return items, "live"
    if len(previous) > 0 and carry_forward_enabled:
        logger.warning(
            "Live discovery produced no items; carrying forward %d previous items",
            len(previous),
        )
        return carry_forward(previous, sources, now), "carried_forward"
    logger.warning("Live discovery produced no items; publishing built-in fallback examples")
    return build_fallback_items(sources, now), "fallback"


def reuse_summaries(
    items: Iterable[Opportunity], previous: PreviousSnapshot
) -> list[Opportunity]:
    """Copy enrichment from the previous run when an item's fingerprint is unchanged."""
    reused: list[Opportunity] = []
    for item in items:
        prior = previous.get(item.id)
        if (
            prior is not None
            and prior.summary is not None
            and prior.fingerprint
            and prior.fingerprint == item.fingerprint
        ):
            item = replace(
                item,
                summary=prior.summary,
                eligibility=item.eligibility.merged_with(prior.eligibility),
            )
        reused.append(item)
    return reused


def apply_diff(
    items: Iterable[Opportunity], previous: PreviousSnapshot, now: datetime
) -> list[Opportunity]:
    last_seen_at = isoformat_utc(now)
    diffed: list[Opportunity] = []
    for item in items:
        prior = previous.get(item.id)
        diffed.append(
            replace(
                item,
                is_new=prior is None,
                is_updated=prior is not None and prior.fingerprint != item.fingerprint,
                last_seen_at=last_seen_at,
            )
        )
    return diffed


def sort_items(items: Iterable[Opportunity]) -> list[Opportunity]:
    return sorted(
        items,
        key=lambda item: (
            STATUS_RANK.get(item.status, len(STATUS_RANK)),
            item.deadline is None,
            item.deadline or "",
            item.title.lower(),
            item.id,
        ),
    )


def ensure_unique(items: Iterable[Opportunity]) -> None:
    seen_ids: set[str] = set()
    seen_urls: set[str] = set()
    for item in items:
        if item.id in seen_ids:
            raise ConsolidationError(f"duplicate opportunity id in output: {item.id}")
        url = canonicalize_url(item.url)
        if url in seen_urls:
            raise ConsolidationError(f"duplicate canonical url in output: {url}")
        seen_ids.add(item.id)
        seen_urls.add(url)
