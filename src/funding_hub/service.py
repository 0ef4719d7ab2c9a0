from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping

from funding_hub.config import AppConfig
from funding_hub.consolidation import (
    apply_diff,
    ensure_unique,
    fill_empty,
    merge_by_url,
    reuse_summaries,
    sort_items,
    with_fingerprints,
)
from funding_hub.digest import build_digest
from funding_hub.enrichment import EnrichmentChain, OpenRouterEnricher
from funding_hub.extractors import DEFAULT_RULES, ExtractionRules
from funding_hub.filters import ContentGate
from funding_hub.models import Diagnostic, Digest, Opportunity, PreviousSnapshot
from funding_hub.sources import CandidateDiscoverer, DetailResolver, HttpFetcher
from funding_hub.utils.datetime_utils import isoformat_utc, to_utc, utc_now
from funding_hub.verification import UrlVerifier, VerificationResult

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 120
SHRINK_WARNING_RATIO = 0.25


class PipelineError(RuntimeError):
    """Raised when a run cannot produce a trustworthy dataset."""


@dataclass(slots=True)
class RunResult:
    dataset: dict[str, Any]
    digest: Digest
    items: list[Opportunity] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    mode: str = "live"


class FundingPipelineService:
    def __init__(
        self,
        config: AppConfig,
        *,
        fetch: Callable[[str], str] | None = None,
        enrichment: EnrichmentChain | None = None,
        rules: ExtractionRules = DEFAULT_RULES,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config = config
        self.sources = list(config.sources)
        self.fetch = fetch or HttpFetcher(config.fetch)
        self.rules = rules
        self.gate = ContentGate(rules)
        self.enrichment = enrichment or build_enrichment_chain(
            config, os.environ if environ is None else environ
        )

    def run_once(self, previous: PreviousSnapshot, *, now: datetime | None = None) -> RunResult:
        now = to_utc(now) if now else utc_now()
        diagnostics: list[Diagnostic] = []

        discoverer = CandidateDiscoverer(
            self.fetch,
            max_per_source=self.config.fetch.max_per_source,
            rules=self.rules,
            gate=self.gate,
            now=now,
        )
        candidates = []
        failed_sources = 0
        for source in self.sources:
            discovered = discoverer.discover(source)
            candidates.extend(discovered.candidates)
            diagnostics.extend(discovered.diagnostics)
            if discovered.failed:
                failed_sources += 1
            logger.info(
                "Source %s | seeds=%d fetched=%d candidates=%d",
                source.id,
                discovered.seeds_attempted,
                discovered.seeds_fetched,
                len(discovered.candidates),
            )

        if self.sources and failed_sources == len(self.sources):
            if self.config.verification.strict:
                raise PipelineError("Every configured source failed to fetch")
            logger.warning("Every configured source failed to fetch")

        resolver = DetailResolver(
            self.fetch,
            max_detail_fetch=self.config.fetch.max_detail_fetch,
            rules=self.rules,
            gate=self.gate,
            now=now,
        )
        resolved = resolver.resolve(candidates)
        diagnostics.extend(resolved.diagnostics)

        items, mode = fill_empty(
            merge_by_url(resolved.items),
            previous,
            self.sources,
            carry_forward_enabled=self.config.consolidation.carry_forward,
            now=now,
        )

        verifier = UrlVerifier(
            self.config.verification,
            user_agent=self.config.fetch.user_agent,
            now=now,
        )
        verification = verifier.verify(items, self.sources)
        diagnostics.extend(
            Diagnostic(error=f"URL dropped ({entry.reason}): {entry.detail}", seed_url=entry.url)
            for entry in verification.dropped
        )
        items = merge_by_url(verification.items)

        if not items and self.config.verification.strict:
            raise PipelineError("URL validation removed all opportunities. No verified links remain.")

        items = with_fingerprints(items[: self.config.consolidation.max_total_items])
        items = self.enrichment.enrich_items(reuse_summaries(items, previous))
        items = sort_items(apply_diff(items, previous, now))
        ensure_unique(items)

        digest = build_digest(items, previous, now)
        dataset = self._build_dataset(items, digest, diagnostics, previous, verification, now)

        if len(previous) > 0 and len(items) < math.ceil(len(previous) * SHRINK_WARNING_RATIO):
            logger.warning(
                "Current item count (%d) is far below previous (%d). Check source availability.",
                len(items),
                len(previous),
            )
        logger.info(
            "Run complete | mode=%s items=%d open=%d new=%d updated=%d errors=%d",
            mode,
            len(items),
            dataset["stats"]["open"],
            dataset["stats"]["newToday"],
            dataset["stats"]["updatedToday"],
            len(diagnostics),
        )

        return RunResult(
            dataset=dataset,
            digest=digest,
            items=items,
            diagnostics=diagnostics,
            mode=mode,
        )

    def _build_dataset(
        self,
        items: list[Opportunity],
        digest: Digest,
        diagnostics: list[Diagnostic],
        previous: PreviousSnapshot,
        verification: VerificationResult,
        now: datetime,
    ) -> dict[str, Any]:
        generated_at = isoformat_utc(now)
        return {
            "generatedAt": generated_at,
            "generatedDate": generated_at[:10],
            "stats": build_stats(items, sources_configured=len(self.sources)),
            "digest": digest.to_dict(),
            "sources": [source.to_dict() for source in self.sources],
            "items": [item.to_dict() for item in items],
            "diagnostics": {
                "errors": [entry.to_dict() for entry in diagnostics[:MAX_REPORTED_ERRORS]],
                "previousItemCount": len(previous),
                "currentItemCount": len(items),
                "aiEnabled": bool(self.enrichment.enrichers),
                "aiModelCandidates": list(self.config.enrichment.models),
                "urlVerification": verification.summary.to_dict(),
            },
        }


def build_stats(items: list[Opportunity], *, sources_configured: int) -> dict[str, int]:
    return {
        "total": len(items),
        "open": sum(1 for item in items if item.status == "open"),
        "unknown": sum(1 for item in items if item.status == "unknown"),
        "closed": sum(1 for item in items if item.status == "closed"),
        "withDeadline": sum(1 for item in items if item.deadline),
        "newToday": sum(1 for item in items if item.is_new),
        "updatedToday": sum(1 for item in items if item.is_updated),
        "sourcesConfigured": sources_configured,
    }


def build_enrichment_chain(config: AppConfig, environ: Mapping[str, str]) -> EnrichmentChain:
    settings = config.enrichment
    api_key = environ.get(settings.api_key_env_var, "").strip()
    if not api_key or not settings.models:
        logger.info("AI enrichment disabled; %s is not set", settings.api_key_env_var)
        return EnrichmentChain(max_primary_items=settings.max_ai_items)

    enricher = OpenRouterEnricher(
        api_key,
        settings.models,
        timeout_seconds=settings.timeout_seconds,
        site_url=settings.site_url,
        site_name=settings.site_name,
    )
    return EnrichmentChain([enricher], max_primary_items=settings.max_ai_items)
