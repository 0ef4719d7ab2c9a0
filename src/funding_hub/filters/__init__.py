"""Content gates applied to draft opportunities."""

from .base import Filter, FilterResult
from .content_gate import ContentGate

__all__ = ["ContentGate", "Filter", "FilterResult"]
