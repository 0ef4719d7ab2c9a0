from __future__ import annotations

from datetime import datetime, timezone

import pytest
import requests

from funding_hub.config import FetchSettings
from funding_hub.models import (
    CandidateLink,
    FeedCandidate,
    LinkCandidate,
    SeedPageCandidate,
    Source,
)
from funding_hub.sources import (
    CandidateDiscoverer,
    FetchError,
    HttpFetcher,
    extract_links,
    pick_candidate_links,
    score_candidate,
)

NOW = datetime(2026, 4, 10, 9, 0, tzinfo=timezone.utc)

SOURCE = Source(
    id="ukri",
    name="UK Research and Innovation",
    homepage="https://www.ukri.org/opportunity/",
    seed_urls=("https://www.ukri.org/opportunity/",),
    include_hosts=("ukri.org",),
)

SEED_HTML = """
<html><body>
  <nav><a href="#main">Skip</a> <a href="mailto:help@ukri.org">Email us</a></nav>
  <a href="/opportunity/future-leaders-fellowship/">Future Leaders Fellowship: apply now</a>
  <a href="https://www.ukri.org/opportunity/ai-research-grant#details">AI research grant - closing soon</a>
  <a href="https://www.ukri.org/opportunity/ai-research-grant">AI grant</a>
  <a href="/privacy">Privacy notice</a>
  <a href="https://example.org/grants">Grants elsewhere</a>
  <a href="javascript:void(0)">Open menu</a>
  <a href="/x">X</a>
</body></html>
"""

RSS_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>UKRI opportunities</title>
    <item>
      <title>AI for health systems funding</title>
      <link>https://www.ukri.org/opportunity/ai-for-health-systems/</link>
      <description><![CDATA[<p>Funding for clinical AI. Closing date: 30 April 2026</p>]]></description>
    </item>
    <item>
      <title>Our privacy policy has changed</title>
      <link>https://www.ukri.org/privacy/</link>
      <description>Updated cookie terms.</description>
    </item>
  </channel>
</rss>
"""


class _FakeFetcher:
    def __init__(self, pages: dict[str, str]) -> None:
        self.pages = pages
        self.calls: list[str] = []

    def __call__(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise FetchError(f"404 Client Error for url: {url}")
        return self.pages[url]


class _DummyResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


def test_extract_links_resolves_and_skips_non_navigational_anchors() -> None:
    links = extract_links(SEED_HTML, "https://www.ukri.org/opportunity/")
    urls = [link.url for link in links]

    assert "https://www.ukri.org/opportunity/future-leaders-fellowship" in urls
    assert "https://www.ukri.org/privacy" in urls
    assert urls.count("https://www.ukri.org/opportunity/ai-research-grant") == 2
    assert not any(url.startswith(("mailto:", "javascript:")) for url in urls)
    assert "https://www.ukri.org/x" not in urls


def test_score_candidate_weights() -> None:
    fellowship = CandidateLink(
        url="https://www.ukri.org/opportunity/future-leaders-fellowship",
        anchor_text="Future Leaders Fellowship: apply now",
    )
    privacy = CandidateLink(url="https://www.ukri.org/privacy", anchor_text="Privacy notice")
    elsewhere = CandidateLink(url="https://example.org/grants", anchor_text="Grants elsewhere")
    closing = CandidateLink(
        url="https://www.ukri.org/opportunity/ai-research-grant",
        anchor_text="AI research grant - closing soon",
    )

    assert score_candidate(fellowship, SOURCE) == 4 + 2 + 1
    assert score_candidate(closing, SOURCE) == 4 + 3 + 1
    assert score_candidate(privacy, SOURCE) == -5 + 1
    assert score_candidate(elsewhere, SOURCE) == 4 - 2


def test_host_scoring_uses_homepage_when_no_hosts_configured() -> None:
    source = Source(id="rs", name="Royal Society", homepage="https://royalsociety.org/grants/")
    on_host = CandidateLink(url="https://royalsociety.org/grants/x", anchor_text="Grants list")
    off_host = CandidateLink(url="https://example.org/grants/x", anchor_text="Grants list")

    assert score_candidate(on_host, source) - score_candidate(off_host, source) == 3


def test_pick_candidate_links_dedupes_ranks_and_truncates() -> None:
    links = extract_links(SEED_HTML, "https://www.ukri.org/opportunity/")

    picked = pick_candidate_links(links, SOURCE, max_per_source=2)

    assert [link.url for link in picked] == [
        "https://www.ukri.org/opportunity/ai-research-grant",
        "https://www.ukri.org/opportunity/future-leaders-fellowship",
    ]
    assert picked[0].anchor_text == "AI research grant - closing soon"
    assert picked[0].score == 8
    assert all(link.score >= 1 for link in picked)


def test_pick_candidate_links_drops_low_scores() -> None:
    links = extract_links(SEED_HTML, "https://www.ukri.org/opportunity/")

    picked = pick_candidate_links(links, SOURCE, max_per_source=20)

    assert "https://www.ukri.org/privacy" not in [link.url for link in picked]
    assert [link.score for link in picked] == sorted(
        (link.score for link in picked), reverse=True
    )


def test_discover_html_seed_yields_links_and_seed_page_last() -> None:
    fetcher = _FakeFetcher({"https://www.ukri.org/opportunity/": SEED_HTML})
    discoverer = CandidateDiscoverer(fetcher, max_per_source=18, now=NOW)

    result = discoverer.discover(SOURCE)

    assert not result.failed
    assert result.diagnostics == []
    assert all(isinstance(c, LinkCandidate) for c in result.candidates[:-1])
    seed = result.candidates[-1]
    assert isinstance(seed, SeedPageCandidate)
    assert seed.url == "https://www.ukri.org/opportunity"


def test_discover_records_seed_failures_and_continues() -> None:
    source = Source(
        id="ukri",
        name="UKRI",
        homepage="https://www.ukri.org/",
        seed_urls=("https://www.ukri.org/broken", "https://www.ukri.org/opportunity/"),
    )
    fetcher = _FakeFetcher({"https://www.ukri.org/opportunity/": SEED_HTML})

    result = CandidateDiscoverer(fetcher, max_per_source=5, now=NOW).discover(source)

    assert fetcher.calls == ["https://www.ukri.org/broken", "https://www.ukri.org/opportunity/"]
    assert len(result.diagnostics) == 1
    assert result.diagnostics[0].seed_url == "https://www.ukri.org/broken"
    assert result.diagnostics[0].error.startswith("seed fetch failed")
    assert result.seeds_fetched == 1
    assert not result.failed
    assert result.candidates


def test_discover_marks_source_failed_when_every_seed_fails() -> None:
    result = CandidateDiscoverer(_FakeFetcher({}), max_per_source=5, now=NOW).discover(SOURCE)

    assert result.failed
    assert result.candidates == []
    assert len(result.diagnostics) == 1


def test_discover_feed_bypasses_link_scoring_and_applies_gate() -> None:
    fetcher = _FakeFetcher({"https://www.ukri.org/opportunity/": RSS_FEED})

    result = CandidateDiscoverer(fetcher, max_per_source=18, now=NOW).discover(SOURCE)

    assert len(result.candidates) == 1
    candidate = result.candidates[0]
    assert isinstance(candidate, FeedCandidate)
    opportunity = candidate.opportunity
    assert opportunity.title == "AI for health systems funding"
    assert opportunity.url == "https://www.ukri.org/opportunity/ai-for-health-systems"
    assert opportunity.deadline == "2026-04-30"
    assert opportunity.status == "open"
    assert opportunity.source_type == "rss"
    assert "<p>" not in opportunity.description


def test_http_fetcher_wraps_request_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    fetch = HttpFetcher(FetchSettings(timeout_seconds=5))
    captured: dict[str, object] = {}

    def fake_get(url: str, **kwargs: object) -> _DummyResponse:
        captured.update(kwargs)
        return _DummyResponse("<html>ok</html>")

    monkeypatch.setattr("requests.get", fake_get)
    assert fetch("https://www.ukri.org/") == "<html>ok</html>"
    assert captured["timeout"] == 5
    assert "User-Agent" in captured["headers"]

    monkeypatch.setattr("requests.get", lambda *args, **kwargs: _DummyResponse("", 503))
    with pytest.raises(FetchError):
        fetch("https://www.ukri.org/")

    def raise_timeout(*args: object, **kwargs: object) -> _DummyResponse:
        raise requests.Timeout("timed out")

    monkeypatch.setattr("requests.get", raise_timeout)
    with pytest.raises(FetchError, match="timed out"):
        fetch("https://www.ukri.org/")
