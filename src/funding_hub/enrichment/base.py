from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from funding_hub.models import Opportunity, Summary


class EnrichmentError(RuntimeError):
    """Raised when an enricher cannot produce a usable result."""


@dataclass(frozen=True, slots=True)
class EnrichmentResult:
    summary: Summary
    eligibility: dict[str, Any] | None = None


class Enricher(ABC):
    name = "enricher"

    @abstractmethod
    def enrich(self, item: Opportunity, context: str) -> EnrichmentResult:
        """Summarize an opportunity; raise EnrichmentError when unable to."""
