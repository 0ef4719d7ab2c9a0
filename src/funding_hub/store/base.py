from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from funding_hub.models import PreviousSnapshot


class SnapshotStore(ABC):
    @abstractmethod
    def load_previous(self) -> PreviousSnapshot:
        """Return the last published snapshot, or an empty one on cold start."""

    @abstractmethod
    def load_latest_payload(self) -> dict[str, Any] | None:
        """Return the raw last published dataset, if any."""

    @abstractmethod
    def save(self, dataset: dict[str, Any]) -> None:
        """Persist a completed run's dataset."""
