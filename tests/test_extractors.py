from __future__ import annotations

from datetime import datetime, timezone

import pytest

from funding_hub.extractors import (
    classify_type,
    extract_amount,
    extract_deadline,
    infer_eligibility,
    infer_status,
    parse_date_from_text,
)
from funding_hub.extractors.rules import matches_keyword

NOW = datetime(2026, 4, 10, 9, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Closing date: 30 March 2026", "2026-03-30"),
        ("Apply by March 30th, 2026 at noon", "2026-03-30"),
        ("Deadline 2026-04-15 17:00", "2026-04-15"),
        ("Submit before 15/03/2026", "2026-03-15"),
        ("Opens on the 1st of September 2026", "2026-09-01"),
        ("No date mentioned here", None),
    ],
)
def test_parse_date_from_text_supports_common_formats(text: str, expected: str | None) -> None:
    assert parse_date_from_text(text) == expected


def test_parse_date_skips_impossible_dates_instead_of_rolling_over() -> None:
    assert parse_date_from_text("31/02/2026 was a typo, real date 15/03/2026") == "2026-03-15"
    assert parse_date_from_text("Closes 30 February 2026") is None


def test_extract_deadline_prefers_labelled_date() -> None:
    text = "Published 1 January 2026. Deadline: 12 May 2026. Results in July."

    assert extract_deadline(text) == "2026-05-12"


def test_extract_deadline_falls_back_to_first_date_in_text() -> None:
    assert extract_deadline("Interviews will be held on 3 June 2026.") == "2026-06-03"
    assert extract_deadline("") is None


def test_deadline_label_requires_word_boundary() -> None:
    text = "The pack encloses a form dated 2 June 2026. Applications close 9 July 2026."

    assert extract_deadline(text) == "2026-07-09"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Awards of up to £250,000 per year for three years.", "£250,000 per year"),
        ("Total budget £1.5 million available.", "£1.5 million"),
        ("Grants of GBP 40k each.", "GBP 40k"),
        ("Up to £5,000, paid in arrears.", "£5,000"),
        ("No budget information.", None),
    ],
)
def test_extract_amount(text: str, expected: str | None) -> None:
    assert extract_amount(text) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Royal Society University Research Fellowship", "fellowship"),
        ("Fellowship award for early career researchers", "fellowship"),
        ("Fully funded PhD studentship in chemistry", "scholarship"),
        ("Outstanding Early Career Award", "award"),
        ("Call for proposals: net zero", "call"),
        ("Responsive mode research grants", "grant"),
    ],
)
def test_classify_type_uses_priority_order(text: str, expected: str) -> None:
    assert classify_type(text) == expected


def test_infer_status_closed_language_wins() -> None:
    assert infer_status("This call is closed.", "2026-12-01", NOW) == "closed"


def test_infer_status_open_language_respects_past_deadline() -> None:
    assert infer_status("Applications now open", "2026-05-01", NOW) == "open"
    assert infer_status("Applications now open", "2026-01-01", NOW) == "closed"


def test_infer_status_from_deadline_alone() -> None:
    assert infer_status("Submission details", "2026-04-10", NOW) == "open"
    assert infer_status("Submission details", "2026-04-09", NOW) == "closed"
    assert infer_status("Submission details", None, NOW) == "unknown"


def test_eligibility_collects_every_matching_tag() -> None:
    eligibility = infer_eligibility(
        "Open to PhD students and postdoctoral researchers in biology and machine learning."
    )

    assert eligibility.levels == ("phd", "postdoc")
    assert eligibility.career_stages == ("early",)
    assert eligibility.nationalities == ("any",)
    assert eligibility.disciplines == ("life sciences", "computer science and ai")


def test_eligibility_defaults_when_nothing_matches() -> None:
    eligibility = infer_eligibility("General research support scheme.")

    assert eligibility.levels == ()
    assert eligibility.career_stages == ()
    assert eligibility.nationalities == ("any",)
    assert eligibility.disciplines == ("all disciplines",)


def test_eligibility_nationality_and_stage_tags() -> None:
    eligibility = infer_eligibility(
        "Mid-career researchers at UK institutions; international applicants welcome."
    )

    assert eligibility.career_stages == ("mid",)
    assert eligibility.nationalities == ("uk", "international")


def test_keywords_match_whole_words_unless_prefixed() -> None:
    assert matches_keyword("A new award scheme", "award*")
    assert matches_keyword("Awards announced", "award*")
    assert not matches_keyword("Sustainable futures", "ai")
    assert matches_keyword("Funding for AI research", "ai")
    assert not matches_keyword("", "grant*")
