"""Keyword rule tables used by the field extractors.

Keywords are matched case-insensitively against word boundaries. A trailing
``*`` turns a keyword into a prefix (``biolog*`` matches ``biology`` and
``biological``); anything else must match as a whole word or phrase.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache


@dataclass(frozen=True, slots=True)
class KeywordRule:
    tag: str
    keywords: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class WeightedRule:
    weight: int
    keywords: tuple[str, ...]


@lru_cache(maxsize=1024)
def keyword_pattern(keyword: str) -> re.Pattern[str] | None:
    normalized = " ".join(keyword.strip().split())
    if not normalized:
        return None

    prefix = normalized.endswith("*")
    normalized = normalized.rstrip("*").strip()
    if not normalized:
        return None

    parts = [re.escape(part) for part in normalized.split(" ")]
    phrase = r"\s+".join(parts)
    trailing = "" if prefix else r"(?![A-Za-z0-9])"
    return re.compile(rf"(?<![A-Za-z0-9]){phrase}{trailing}", re.IGNORECASE)


def matches_keyword(text: str, keyword: str) -> bool:
    pattern = keyword_pattern(keyword)
    return bool(pattern and text and pattern.search(text))


def find_hits(text: str, keywords: tuple[str, ...]) -> list[str]:
    return [keyword for keyword in keywords if matches_keyword(text, keyword)]


def matches_any(text: str, keywords: tuple[str, ...]) -> bool:
    return any(matches_keyword(text, keyword) for keyword in keywords)


def matching_tags(text: str, rules: tuple[KeywordRule, ...]) -> tuple[str, ...]:
    """Every tag whose rule matches, in rule-table order."""
    return tuple(rule.tag for rule in rules if matches_any(text, rule.keywords))


def first_matching_tag(
    text: str, rules: tuple[KeywordRule, ...], default: str
) -> str:
    for rule in rules:
        if matches_any(text, rule.keywords):
            return rule.tag
    return default


FUNDING_KEYWORDS: tuple[str, ...] = (
    "grant*",
    "fund*",
    "fellowship*",
    "studentship*",
    "scholarship*",
    "bursar*",
    "award*",
    "stipend*",
    "call*",
    "apply",
    "application*",
    "research support",
    "phd*",
    "postdoc*",
)

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "privacy",
    "cookie*",
    "terms",
    "accessibility",
    "press release*",
    "newsroom",
    "contact us",
    "vacanc*",
    "job*",
    "event*",
    "webinar*",
    "podcast*",
    "annual report*",
)

# Applied in order; every matching row contributes its weight.
CANDIDATE_SCORE_RULES: tuple[WeightedRule, ...] = (
    WeightedRule(4, FUNDING_KEYWORDS),
    WeightedRule(3, ("deadline*", "closing*")),
    WeightedRule(2, ("open*",)),
    WeightedRule(2, ("apply*",)),
    WeightedRule(-5, NEGATIVE_KEYWORDS),
)
HOST_MATCH_WEIGHT = 1
HOST_MISMATCH_WEIGHT = -2

# First match wins, so order is the classification priority.
TYPE_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("fellowship", ("fellowship*",)),
    KeywordRule("scholarship", ("scholarship*", "studentship*", "bursar*")),
    KeywordRule("award", ("award*",)),
    KeywordRule("call", ("call*", "competition*")),
)
DEFAULT_TYPE = "grant"

CLOSED_PHRASES: tuple[str, ...] = (
    "closed",
    "applications closed",
    "this call is closed",
    "no longer accepting applications",
)
OPEN_PHRASES: tuple[str, ...] = (
    "open",
    "now open",
    "applications open",
    "open for applications",
)

LEVEL_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("undergraduate", ("undergraduate*", "bachelor*")),
    KeywordRule("masters", ("masters", "master's", "postgraduate taught")),
    KeywordRule("phd", ("phd*", "doctoral", "doctorate*")),
    KeywordRule("postdoc", ("postdoc*",)),
    KeywordRule("academic", ("fellow*", "principal investigator*", "investigator*")),
)

CAREER_STAGE_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("early", ("early career", "early-career", "new investigator*", "starting")),
    KeywordRule("mid", ("mid-career", "mid career")),
    KeywordRule("senior", ("senior", "established investigator*")),
)
# Only consulted when no career-stage rule matched.
EARLY_CAREER_HINTS: tuple[str, ...] = ("postdoc*", "phd*")

NATIONALITY_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("uk", ("uk only", "uk-based", "uk institution*", "united kingdom")),
    KeywordRule("international", ("international", "all nationalities", "worldwide")),
    KeywordRule("eu", ("eu", "european*")),
)
ANY_NATIONALITY = "any"

DISCIPLINE_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        "life sciences",
        ("biolog*", "biomedical", "life science*", "genetic*", "molecular", "neuroscience*"),
    ),
    KeywordRule(
        "medicine and health",
        ("health*", "clinical*", "medical*", "medicine", "public health", "cancer*", "heart"),
    ),
    KeywordRule(
        "engineering",
        ("engineering", "material*", "mechanical", "electrical", "civil"),
    ),
    KeywordRule(
        "computer science and ai",
        ("computer*", "ai", "artificial intelligence", "machine learning", "data science*"),
    ),
    KeywordRule(
        "physical sciences",
        ("physics", "chemistry", "mathematic*", "astronom*"),
    ),
    KeywordRule(
        "environment and earth",
        ("climate", "environment*", "ecolog*", "geolog*", "sustainab*"),
    ),
    KeywordRule(
        "social sciences",
        ("social*", "economic*", "politic*", "policy", "education*", "psycholog*"),
    ),
    KeywordRule(
        "humanities",
        ("histor*", "philosoph*", "linguistic*", "literature*", "arts", "cultur*"),
    ),
    KeywordRule(
        "business",
        ("entrepreneur*", "business*", "innovation*", "commerciali*", "startup*", "start-up*"),
    ),
)
ALL_DISCIPLINES = "all disciplines"


@dataclass(frozen=True, slots=True)
class ExtractionRules:
    """Bundle of rule tables; swap individual tables to tune a deployment."""

    funding_keywords: tuple[str, ...] = FUNDING_KEYWORDS
    negative_keywords: tuple[str, ...] = NEGATIVE_KEYWORDS
    candidate_score_rules: tuple[WeightedRule, ...] = CANDIDATE_SCORE_RULES
    type_rules: tuple[KeywordRule, ...] = TYPE_RULES
    closed_phrases: tuple[str, ...] = CLOSED_PHRASES
    open_phrases: tuple[str, ...] = OPEN_PHRASES
    level_rules: tuple[KeywordRule, ...] = LEVEL_RULES
    career_stage_rules: tuple[KeywordRule, ...] = CAREER_STAGE_RULES
    nationality_rules: tuple[KeywordRule, ...] = NATIONALITY_RULES
    discipline_rules: tuple[KeywordRule, ...] = DISCIPLINE_RULES


DEFAULT_RULES = ExtractionRules()
