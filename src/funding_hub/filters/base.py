from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable

from funding_hub.models import Opportunity


@dataclass(slots=True)
class FilterResult:
    """Keep/discard verdict plus the keyword hits that decided it."""

    matched: bool
    reasons: list[str] = field(default_factory=list)
    hits: tuple[str, ...] = ()

    @classmethod
    def keep(cls, hits: Iterable[str]) -> FilterResult:
        hits = tuple(hits)
        return cls(matched=True, reasons=[f"keywords: {', '.join(hits)}"], hits=hits)

    @classmethod
    def discard(cls, reason: str, hits: Iterable[str] = ()) -> FilterResult:
        hits = tuple(hits)
        if hits:
            reason = f"{reason}: {', '.join(hits)}"
        return cls(matched=False, reasons=[reason], hits=hits)

    def reason_text(self) -> str:
        return "; ".join(self.reasons) if self.reasons else "no reason recorded"


class Filter(ABC):
    @abstractmethod
    def evaluate(self, opportunity: Opportunity) -> FilterResult:
        """Decide whether an opportunity is kept, recording the hits behind it."""

    def matches(self, opportunity: Opportunity) -> bool:
        return self.evaluate(opportunity).matched
