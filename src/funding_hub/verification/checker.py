from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

import requests

from funding_hub.models import Opportunity, UrlCheck
from funding_hub.utils.datetime_utils import isoformat_utc, utc_now
from funding_hub.utils.url_utils import (
    canonicalize_url,
    get_host,
    host_matches_allowed,
    is_http_url,
)

logger = logging.getLogger(__name__)

# Statuses that make us retry the probe with the next strategy; many sites
# reject HEAD outright.
FALLBACK_STATUSES = frozenset({403, 405, 429, 500, 501})
RESTRICTED_STATUSES = frozenset({401, 403, 429})


@dataclass(frozen=True, slots=True)
class ProbeResult:
    method: str
    status: int
    final_url: str
    content_type: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


Probe = Callable[[str, float, dict[str, str]], ProbeResult]


def head_probe(url: str, timeout_seconds: float, headers: dict[str, str]) -> ProbeResult:
    response = requests.head(
        url, allow_redirects=True, timeout=timeout_seconds, headers=headers
    )
    try:
        return _probe_result("HEAD", url, response)
    finally:
        response.close()


def get_probe(url: str, timeout_seconds: float, headers: dict[str, str]) -> ProbeResult:
    response = requests.get(
        url, allow_redirects=True, timeout=timeout_seconds, headers=headers, stream=True
    )
    try:
        return _probe_result("GET", url, response)
    finally:
        response.close()


PROBE_STRATEGIES: tuple[Probe, ...] = (head_probe, get_probe)


def _probe_result(method: str, url: str, response: requests.Response) -> ProbeResult:
    return ProbeResult(
        method=method,
        status=response.status_code,
        final_url=canonicalize_url(response.url or url),
        content_type=(response.headers.get("content-type") or "").lower(),
    )


def probe_url(
    url: str,
    *,
    timeout_seconds: float,
    headers: dict[str, str],
    strategies: tuple[Probe, ...] = PROBE_STRATEGIES,
) -> ProbeResult:
    """Try each strategy in order until one gives a non-fallback answer."""
    result: ProbeResult | None = None
    for strategy in strategies:
        result = strategy(url, timeout_seconds, headers)
        if result.status not in FALLBACK_STATUSES:
            break
        logger.debug("%s %s returned %d; trying next probe", result.method, url, result.status)
    if result is None:
        raise ValueError("at least one probe strategy is required")
    return result


def is_network_error(exc: BaseException) -> bool:
    return isinstance(exc, (requests.ConnectionError, requests.Timeout))


def check_opportunity_url(
    item: Opportunity,
    allowed_hosts: tuple[str, ...],
    *,
    timeout_seconds: float,
    user_agent: str,
    now: datetime | None = None,
    strategies: tuple[Probe, ...] = PROBE_STRATEGIES,
) -> UrlCheck:
    original_url = canonicalize_url(item.url)
    checked_at = isoformat_utc(now or utc_now())

    if not is_http_url(original_url):
        return UrlCheck(
            status="invalid_url",
            original_url=original_url,
            final_url=None,
            checked_at=checked_at,
            error="URL is not a valid http/https address",
        )

    if not host_matches_allowed(get_host(original_url), allowed_hosts):
        return UrlCheck(
            status="bad_host",
            original_url=original_url,
            final_url=original_url,
            checked_at=checked_at,
            error="URL host is not allowed for this source",
        )

    try:
        probe = probe_url(
            original_url,
            timeout_seconds=timeout_seconds,
            headers={"User-Agent": user_agent},
            strategies=strategies,
        )
    except requests.RequestException as exc:
        return UrlCheck(
            status="network_error" if is_network_error(exc) else "check_error",
            original_url=original_url,
            final_url=None,
            checked_at=checked_at,
            allowed_host=True,
            error=str(exc) or exc.__class__.__name__,
        )

    redirected = probe.final_url != original_url
    allowed_host = host_matches_allowed(get_host(probe.final_url), allowed_hosts)

    if not probe.ok:
        if probe.status in RESTRICTED_STATUSES and allowed_host:
            status = "reachable_restricted"
            error = f"Restricted response (HTTP {probe.status}) from source host"
        else:
            status = "http_error"
            error = f"HTTP {probe.status}"
        return UrlCheck(
            status=status,
            original_url=original_url,
            final_url=probe.final_url,
            checked_at=checked_at,
            http_status=probe.status,
            allowed_host=allowed_host,
            redirected=redirected,
            content_type=probe.content_type,
            error=error,
        )

    if not allowed_host:
        return UrlCheck(
            status="bad_host",
            original_url=original_url,
            final_url=probe.final_url,
            checked_at=checked_at,
            http_status=probe.status,
            redirected=redirected,
            content_type=probe.content_type,
            error="Redirected to a host outside allowed domains",
        )

    return UrlCheck(
        status="reachable_with_redirect" if redirected else "reachable",
        original_url=original_url,
        final_url=probe.final_url,
        checked_at=checked_at,
        http_status=probe.status,
        allowed_host=True,
        redirected=redirected,
        content_type=probe.content_type,
    )
