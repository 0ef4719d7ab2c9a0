"""Outbound link verification."""

from .checker import (
    FALLBACK_STATUSES,
    PROBE_STRATEGIES,
    ProbeResult,
    check_opportunity_url,
    get_probe,
    head_probe,
    probe_url,
)
from .verifier import (
    DroppedItem,
    UrlVerifier,
    VerificationError,
    VerificationResult,
    VerificationSummary,
)

__all__ = [
    "FALLBACK_STATUSES",
    "PROBE_STRATEGIES",
    "DroppedItem",
    "ProbeResult",
    "UrlVerifier",
    "VerificationError",
    "VerificationResult",
    "VerificationSummary",
    "check_opportunity_url",
    "get_probe",
    "head_probe",
    "probe_url",
]
