from __future__ import annotations

import pytest

from funding_hub.utils.text_utils import strip_html
from funding_hub.utils.url_utils import (
    canonicalize_url,
    derive_opportunity_id,
    get_host,
    host_matches_allowed,
)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("HTTPS://WWW.UKRI.org/Opportunity/", "https://www.ukri.org/Opportunity"),
        ("https://www.ukri.org/a/#apply", "https://www.ukri.org/a"),
        ("https://www.ukri.org/search?q=grant", "https://www.ukri.org/search?q=grant"),
        ("  not a url  ", "not a url"),
        ("", ""),
    ],
)
def test_canonicalize_url(url: str, expected: str) -> None:
    assert canonicalize_url(url) == expected


def test_host_matching_accepts_subdomains_only() -> None:
    assert get_host("https://www.UKRI.org/x") == "ukri.org"
    assert host_matches_allowed("ukri.org", ("ukri.org",))
    assert host_matches_allowed("epsrc.ukri.org", ("ukri.org",))
    assert host_matches_allowed("ukri.org", ("www.ukri.org",))
    assert not host_matches_allowed("notukri.org", ("ukri.org",))
    assert host_matches_allowed("anything.org", ())
    assert not host_matches_allowed("", ())


def test_opportunity_id_is_deterministic() -> None:
    first = derive_opportunity_id("ukri", "https://www.ukri.org/a", "Grant A")

    assert first == derive_opportunity_id("ukri", "https://www.ukri.org/a", "Grant A")
    assert first != derive_opportunity_id("wellcome", "https://www.ukri.org/a", "Grant A")


def test_strip_html_drops_scripts_and_decodes_entities() -> None:
    html = "<![CDATA[<p>Fish &amp; chips</p>]]><script>alert(1)</script><b>  now </b>"

    assert strip_html(html) == "Fish & chips now"
