from __future__ import annotations

from abc import ABC, abstractmethod


class DeliveryError(RuntimeError):
    """Raised when a digest could not be handed to the delivery service."""


class DigestNotifier(ABC):
    @abstractmethod
    def send(self, subject: str, body: str) -> str:
        """Deliver a digest and return the provider's draft identifier."""
