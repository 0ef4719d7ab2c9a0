from __future__ import annotations

from funding_hub.extractors.rules import DEFAULT_RULES, ExtractionRules, find_hits
from funding_hub.models import Opportunity

from .base import Filter, FilterResult

MIN_TITLE_LENGTH = 8


class ContentGate(Filter):
    """Separates real opportunities from navigation and footer noise."""

    def __init__(
        self,
        rules: ExtractionRules = DEFAULT_RULES,
        min_title_length: int = MIN_TITLE_LENGTH,
    ) -> None:
        self.rules = rules
        self.min_title_length = min_title_length

    def evaluate(self, opportunity: Opportunity) -> FilterResult:
        searchable = f"{opportunity.title} {opportunity.description} {opportunity.url}"

        funding_hits = find_hits(searchable, self.rules.funding_keywords)
        if not funding_hits:
            return FilterResult.discard("no funding keywords matched")

        negative_hits = find_hits(searchable, self.rules.negative_keywords)
        if negative_hits:
            return FilterResult.discard("excluded by keyword", negative_hits)

        if len(opportunity.title) < self.min_title_length:
            return FilterResult.discard(f"title shorter than {self.min_title_length} characters")

        return FilterResult.keep(funding_hits)
