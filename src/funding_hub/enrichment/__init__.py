"""Summary enrichment strategies."""

from .base import Enricher, EnrichmentError, EnrichmentResult
from .chain import EnrichmentChain, enrichment_context
from .heuristic import HeuristicEnricher, heuristic_summary
from .openrouter import OpenRouterEnricher

__all__ = [
    "Enricher",
    "EnrichmentChain",
    "EnrichmentError",
    "EnrichmentResult",
    "HeuristicEnricher",
    "OpenRouterEnricher",
    "enrichment_context",
    "heuristic_summary",
]
