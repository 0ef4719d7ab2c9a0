from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from funding_hub.config import AppConfig, ConsolidationSettings, VerificationSettings
from funding_hub.consolidation import FALLBACK_EXAMPLES
from funding_hub.digest import NO_NEW_ITEMS_TEXT
from funding_hub.models import Opportunity, PreviousSnapshot, Source
from funding_hub.service import FundingPipelineService, PipelineError
from funding_hub.sources import FetchError

NOW = datetime(2026, 4, 10, 9, 0, tzinfo=timezone.utc)

SOURCE = Source(
    id="ukri",
    name="UKRI",
    homepage="https://www.ukri.org/opportunity/",
    seed_urls=("https://www.ukri.org/opportunity/",),
    include_hosts=("ukri.org",),
)

SEED_HTML = """
<html><head><title>Funding finder</title></head><body>
<h1>Funding opportunities</h1>
<a href="/opportunity/future-leaders-fellowship/">Future Leaders Fellowship: apply now</a>
<a href="https://www.ukri.org/opportunity/ai-research-grant">AI research grant - closing soon</a>
<a href="/privacy">Privacy notice</a>
</body></html>
"""

PAGES = {
    "https://www.ukri.org/opportunity/": SEED_HTML,
    "https://www.ukri.org/opportunity": SEED_HTML,
    "https://www.ukri.org/opportunity/future-leaders-fellowship": (
        "<h1>Future Leaders Fellowship</h1>"
        "<p>Fellowships for early career researchers. Deadline: 14 May 2026.</p>"
    ),
    "https://www.ukri.org/opportunity/ai-research-grant": (
        "<h1>AI Research Grant</h1>"
        "<p>Research grants for machine learning projects. Closing date: 20 April 2026.</p>"
    ),
}


class _FakeFetcher:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages

    def __call__(self, url: str) -> str:
        if url not in self.pages:
            raise FetchError(f"could not fetch {url}")
        return self.pages[url]


class _DummyResponse:
    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        self.headers = {"content-type": "text/html"}

    def close(self) -> None:
        return None


@pytest.fixture(autouse=True)
def _reachable_links(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("requests.head", lambda url, **kwargs: _DummyResponse(200, url))


def _service(pages: dict[str, str], **config_overrides: object) -> FundingPipelineService:
    config = AppConfig(sources=[SOURCE], **config_overrides)
    return FundingPipelineService(config, fetch=_FakeFetcher(pages), environ={})


def test_first_run_builds_dataset_from_live_sources() -> None:
    result = _service(PAGES).run_once(PreviousSnapshot(), now=NOW)

    assert result.mode == "live"
    assert [item.title for item in result.items] == [
        "AI Research Grant",
        "Future Leaders Fellowship",
    ]
    grant = result.items[0]
    assert grant.deadline == "2026-04-20"
    assert grant.status == "open"
    assert grant.is_new is True
    assert grant.summary is not None
    assert grant.fingerprint
    assert grant.url_check is not None and grant.url_check.status == "reachable"

    dataset = result.dataset
    assert dataset["generatedAt"] == "2026-04-10T09:00:00Z"
    assert dataset["generatedDate"] == "2026-04-10"
    assert dataset["stats"] == {
        "total": 2,
        "open": 2,
        "unknown": 0,
        "closed": 0,
        "withDeadline": 2,
        "newToday": 2,
        "updatedToday": 0,
        "sourcesConfigured": 1,
    }
    assert dataset["sources"] == [SOURCE.to_dict()]
    assert len({item["id"] for item in dataset["items"]}) == 2
    assert dataset["digest"]["stats"] == {"newItems": 2, "updatedItems": 0, "closingSoon": 1}
    assert dataset["digest"]["subject"] == "UK Funding Daily Brief | 2026-04-10 | 2 new"
    diagnostics = dataset["diagnostics"]
    assert diagnostics["previousItemCount"] == 0
    assert diagnostics["currentItemCount"] == 2
    assert diagnostics["aiEnabled"] is False
    assert diagnostics["urlVerification"]["checked"] == 2


def test_second_run_reports_no_changes_and_reuses_summaries() -> None:
    service = _service(PAGES)
    first = service.run_once(PreviousSnapshot(), now=NOW)
    previous = PreviousSnapshot.from_payload(first.dataset)

    second = service.run_once(previous, now=NOW)

    assert [item.id for item in second.items] == [item.id for item in first.items]
    assert not any(item.is_new or item.is_updated for item in second.items)
    assert [item.summary for item in second.items] == [item.summary for item in first.items]
    assert second.digest.stats == {"newItems": 0, "updatedItems": 0, "closingSoon": 1}
    assert NO_NEW_ITEMS_TEXT in second.digest.markdown


def test_unreachable_sources_carry_forward_previous_items() -> None:
    first = _service(PAGES).run_once(PreviousSnapshot(), now=NOW)
    previous = PreviousSnapshot.from_payload(first.dataset)

    result = _service({}).run_once(previous, now=NOW)

    assert result.mode == "carried_forward"
    assert {item.id for item in result.items} == {item.id for item in first.items}
    assert all(item.source_type == "carried_forward" for item in result.items)
    assert all(not item.is_new for item in result.items)
    assert result.dataset["diagnostics"]["errors"][0]["seedUrl"] == SOURCE.seed_urls[0]


def test_unreachable_sources_without_history_publish_fallback_examples() -> None:
    result = _service({}).run_once(PreviousSnapshot(), now=NOW)

    assert result.mode == "fallback"
    assert len(result.items) == len(FALLBACK_EXAMPLES)
    assert result.dataset["stats"]["total"] == len(FALLBACK_EXAMPLES)


def test_strict_mode_aborts_when_every_source_fails() -> None:
    service = _service({}, verification=VerificationSettings(strict=True))

    with pytest.raises(PipelineError, match="Every configured source failed"):
        service.run_once(PreviousSnapshot(), now=NOW)


def test_strict_mode_aborts_when_no_verified_links_remain(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr("requests.head", lambda url, **kwargs: _DummyResponse(404, url))
    service = _service(PAGES, verification=VerificationSettings(strict=True))

    with pytest.raises(PipelineError, match="No verified links remain"):
        service.run_once(PreviousSnapshot(), now=NOW)


def test_dropped_links_are_reported_as_diagnostics(monkeypatch: pytest.MonkeyPatch) -> None:
    def head(url: str, **kwargs: object) -> _DummyResponse:
        return _DummyResponse(404 if "fellowship" in url else 200, url)

    monkeypatch.setattr("requests.head", head)

    result = _service(PAGES).run_once(PreviousSnapshot(), now=NOW)

    assert [item.title for item in result.items] == ["AI Research Grant"]
    errors = result.dataset["diagnostics"]["errors"]
    assert {
        "error": "URL dropped (http_error): HTTP 404",
        "seedUrl": "https://www.ukri.org/opportunity/future-leaders-fellowship",
    } in errors


def test_total_items_are_capped() -> None:
    result = _service(
        PAGES, consolidation=ConsolidationSettings(max_total_items=1)
    ).run_once(PreviousSnapshot(), now=NOW)

    assert len(result.items) == 1


def test_warns_when_item_count_collapses(caplog: pytest.LogCaptureFixture) -> None:
    previous = PreviousSnapshot(
        Opportunity(
            id=f"old-{index}",
            title=f"Old grant {index}",
            url=f"https://www.ukri.org/opportunity/old-{index}",
            source_id="ukri",
            source_name="UKRI",
            source_homepage=SOURCE.homepage,
        )
        for index in range(12)
    )

    with caplog.at_level(logging.WARNING, logger="funding_hub.service"):
        _service(PAGES).run_once(previous, now=NOW)

    assert "far below previous (12)" in caplog.text


def test_carry_forward_tolerates_malformed_previous_items() -> None:
    previous = PreviousSnapshot.from_payload(
        {
            "items": [
                {
                    "id": "old-grant",
                    "title": "Old research grant",
                    "url": "https://www.ukri.org/opportunity/old-grant",
                    "sourceId": "ukri",
                    "sourceName": "UKRI",
                    "deadline": 20260501,
                    "amount": 5000,
                }
            ]
        }
    )

    result = _service({}).run_once(previous, now=NOW)

    assert result.mode == "carried_forward"
    assert [item.id for item in result.items] == ["old-grant"]
    assert result.items[0].deadline is None
    assert result.items[0].fingerprint
