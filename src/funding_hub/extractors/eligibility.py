from __future__ import annotations

from funding_hub.models import Eligibility

from .rules import (
    ALL_DISCIPLINES,
    ANY_NATIONALITY,
    DEFAULT_RULES,
    EARLY_CAREER_HINTS,
    ExtractionRules,
    matches_any,
    matching_tags,
)


def infer_levels(text: str, rules: ExtractionRules = DEFAULT_RULES) -> tuple[str, ...]:
    return matching_tags(text, rules.level_rules)


def infer_career_stages(text: str, rules: ExtractionRules = DEFAULT_RULES) -> tuple[str, ...]:
    stages = matching_tags(text, rules.career_stage_rules)
    if not stages and matches_any(text, EARLY_CAREER_HINTS):
        return ("early",)
    return stages


def infer_nationalities(text: str, rules: ExtractionRules = DEFAULT_RULES) -> tuple[str, ...]:
    return matching_tags(text, rules.nationality_rules) or (ANY_NATIONALITY,)


def infer_disciplines(text: str, rules: ExtractionRules = DEFAULT_RULES) -> tuple[str, ...]:
    return matching_tags(text, rules.discipline_rules) or (ALL_DISCIPLINES,)


def infer_eligibility(text: str | None, rules: ExtractionRules = DEFAULT_RULES) -> Eligibility:
    content = text or ""
    return Eligibility(
        levels=infer_levels(content, rules),
        career_stages=infer_career_stages(content, rules),
        nationalities=infer_nationalities(content, rules),
        disciplines=infer_disciplines(content, rules),
    )
