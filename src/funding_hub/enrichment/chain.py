from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Sequence

from funding_hub.models import Opportunity, Summary

from .base import Enricher, EnrichmentError
from .heuristic import HeuristicEnricher

logger = logging.getLogger(__name__)


def enrichment_context(item: Opportunity) -> str:
    return f"{item.title}\n{item.description}\n{item.text_sample}"


class EnrichmentChain:
    """Tries enrichers in order; the heuristic enricher always has the last word.

    Only the first ``max_primary_items`` items needing a summary are offered to
    the configured enrichers; the rest go straight to the heuristic fallback.
    """

    def __init__(
        self,
        enrichers: Sequence[Enricher] = (),
        *,
        max_primary_items: int = 120,
        fallback: Enricher | None = None,
    ) -> None:
        self.enrichers = list(enrichers)
        self.max_primary_items = max_primary_items
        self.fallback = fallback or HeuristicEnricher()

    def enrich_item(self, item: Opportunity, *, use_primary: bool = True) -> Opportunity:
        context = enrichment_context(item)
        fallback_result = self.fallback.enrich(item, context)
        result = fallback_result

        if use_primary:
            for enricher in self.enrichers:
                try:
                    result = enricher.enrich(item, context)
                    break
                except EnrichmentError as exc:
                    logger.warning("%s enrichment failed for %s: %s", enricher.name, item.url, exc)

        summary = _complete(result.summary, fallback_result.summary)
        eligibility = item.eligibility
        if result.eligibility:
            eligibility = eligibility.merged_with(result.eligibility)
        return replace(item, summary=summary, eligibility=eligibility)

    def enrich_items(self, items: Iterable[Opportunity]) -> list[Opportunity]:
        enriched: list[Opportunity] = []
        primary_budget = self.max_primary_items
        for item in items:
            if item.summary is not None:
                enriched.append(item)
                continue
            use_primary = bool(self.enrichers) and primary_budget > 0
            if use_primary:
                primary_budget -= 1
            enriched.append(self.enrich_item(item, use_primary=use_primary))
        return enriched


def _complete(summary: Summary, fallback: Summary) -> Summary:
    if summary is fallback:
        return summary
    return replace(
        summary,
        text=summary.text or fallback.text,
        fit=summary.fit or fallback.fit,
        watch_out=summary.watch_out or fallback.watch_out,
    )
