"""Pure field extractors over normalized text."""

from .dates import extract_deadline, parse_date_from_text
from .eligibility import (
    infer_career_stages,
    infer_disciplines,
    infer_eligibility,
    infer_levels,
    infer_nationalities,
)
from .fields import classify_type, extract_amount, infer_status
from .rules import DEFAULT_RULES, ExtractionRules, KeywordRule, WeightedRule

__all__ = [
    "DEFAULT_RULES",
    "ExtractionRules",
    "KeywordRule",
    "WeightedRule",
    "classify_type",
    "extract_amount",
    "extract_deadline",
    "infer_career_stages",
    "infer_disciplines",
    "infer_eligibility",
    "infer_levels",
    "infer_nationalities",
    "infer_status",
    "parse_date_from_text",
]
