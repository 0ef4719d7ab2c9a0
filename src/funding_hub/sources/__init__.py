"""Candidate discovery and detail resolution."""

from .base import FetchError, HttpFetcher, looks_like_feed
from .discovery import (
    CandidateDiscoverer,
    DiscoveryResult,
    extract_links,
    pick_candidate_links,
    score_candidate,
)
from .resolver import DetailResolver, ResolveResult

__all__ = [
    "CandidateDiscoverer",
    "DetailResolver",
    "DiscoveryResult",
    "FetchError",
    "HttpFetcher",
    "ResolveResult",
    "extract_links",
    "looks_like_feed",
    "pick_candidate_links",
    "score_candidate",
]
