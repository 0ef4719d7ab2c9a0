from __future__ import annotations

import logging
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable

from funding_hub.config import DEFAULT_USER_AGENT, VerificationSettings
from funding_hub.models import Opportunity, Source, UrlCheck
from funding_hub.utils.datetime_utils import isoformat_utc, utc_now
from funding_hub.utils.url_utils import canonicalize_url, get_host

from .checker import PROBE_STRATEGIES, Probe, check_opportunity_url

logger = logging.getLogger(__name__)


class VerificationError(RuntimeError):
    """Raised when URL verification cannot produce a trustworthy result."""


@dataclass(frozen=True, slots=True)
class DroppedItem:
    id: str
    title: str
    url: str
    source_id: str
    reason: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "sourceId": self.source_id,
            "reason": self.reason,
            "detail": self.detail,
        }


@dataclass(slots=True)
class VerificationSummary:
    checked: int = 0
    reachable: int = 0
    reachable_with_redirect: int = 0
    reachable_restricted: int = 0
    dropped: int = 0
    network_errors: int = 0
    network_unavailable: bool = False
    strict_mode: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "checked": self.checked,
            "reachable": self.reachable,
            "reachableWithRedirect": self.reachable_with_redirect,
            "reachableRestricted": self.reachable_restricted,
            "dropped": self.dropped,
            "networkErrors": self.network_errors,
            "networkUnavailable": self.network_unavailable,
            "strictMode": self.strict_mode,
        }


@dataclass(slots=True)
class VerificationResult:
    items: list[Opportunity] = field(default_factory=list)
    dropped: list[DroppedItem] = field(default_factory=list)
    summary: VerificationSummary = field(default_factory=VerificationSummary)


class UrlVerifier:
    """Checks opportunity links with a fixed-size worker pool.

    Workers drain a shared queue of item indices and write each result into
    its own slot of a pre-sized list, so no two workers touch the same slot.
    """

    def __init__(
        self,
        settings: VerificationSettings,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        now: datetime | None = None,
        strategies: tuple[Probe, ...] = PROBE_STRATEGIES,
    ) -> None:
        self.settings = settings
        self.user_agent = user_agent
        self.now = now
        self.strategies = strategies

    def verify(
        self, items: Iterable[Opportunity], sources: Iterable[Source]
    ) -> VerificationResult:
        all_items = list(items)
        source_map = {source.id: source for source in sources}
        limit = self.settings.max_check_items
        to_check = all_items[:limit]
        unchecked_tail = [self._mark_unchecked_limit(item) for item in all_items[limit:]]
        if unchecked_tail:
            logger.info(
                "Skipping URL checks for %d items beyond max_check_items=%d",
                len(unchecked_tail),
                limit,
            )

        checks = self._run_checks(to_check, source_map)
        summary = VerificationSummary(checked=len(to_check), strict_mode=self.settings.strict)
        kept: list[Opportunity] = []
        dropped: list[DroppedItem] = []

        for item, check in zip(to_check, checks):
            if check is None:
                check = UrlCheck(
                    status="check_error",
                    original_url=item.url,
                    final_url=None,
                    checked_at=self._checked_at(),
                    error="No check result generated",
                )

            annotated = replace(item, url_check=check)
            if check.passed and check.final_url:
                annotated = replace(annotated, url=canonicalize_url(check.final_url))

            if check.status == "network_error":
                summary.network_errors += 1
            elif check.status == "reachable":
                summary.reachable += 1
            elif check.status == "reachable_with_redirect":
                summary.reachable_with_redirect += 1
            elif check.status == "reachable_restricted":
                summary.reachable_restricted += 1

            if check.passed:
                kept.append(annotated)
            else:
                dropped.append(
                    DroppedItem(
                        id=annotated.id,
                        title=annotated.title,
                        url=annotated.url,
                        source_id=annotated.source_id,
                        reason=check.status,
                        detail=check.error or f"HTTP {check.http_status or 'unknown'}",
                    )
                )

        network_unavailable = summary.checked > 0 and summary.network_errors == summary.checked
        if network_unavailable:
            if self.settings.strict:
                raise VerificationError(
                    "URL validation failed: network unavailable and strict mode is enabled"
                )
            logger.warning(
                "All %d URL checks failed with network errors; passing items through unchecked",
                summary.checked,
            )
            preserved = [self._mark_network_unavailable(item) for item in to_check]
            return VerificationResult(
                items=preserved + unchecked_tail,
                dropped=[],
                summary=VerificationSummary(
                    checked=summary.checked,
                    network_errors=summary.network_errors,
                    network_unavailable=True,
                    strict_mode=self.settings.strict,
                ),
            )

        summary.dropped = len(dropped)
        logger.info(
            "URL verification | checked=%d kept=%d dropped=%d network_errors=%d",
            summary.checked,
            len(kept),
            summary.dropped,
            summary.network_errors,
        )
        return VerificationResult(items=kept + unchecked_tail, dropped=dropped, summary=summary)

    def _run_checks(
        self, items: list[Opportunity], source_map: dict[str, Source]
    ) -> list[UrlCheck | None]:
        results: list[UrlCheck | None] = [None] * len(items)
        if not items:
            return results

        work: queue.SimpleQueue[int] = queue.SimpleQueue()
        for index in range(len(items)):
            work.put(index)

        def worker() -> None:
            while True:
                try:
                    index = work.get_nowait()
                except queue.Empty:
                    return
                results[index] = self._check_one(items[index], source_map)

        worker_count = min(self.settings.concurrency, len(items))
        with ThreadPoolExecutor(
            max_workers=worker_count, thread_name_prefix="url-check"
        ) as pool:
            futures = [pool.submit(worker) for _ in range(worker_count)]
            for future in futures:
                future.result()
        return results

    def _check_one(self, item: Opportunity, source_map: dict[str, Source]) -> UrlCheck:
        source = source_map.get(item.source_id) or _ad_hoc_source(item)
        try:
            return check_opportunity_url(
                item,
                source.allowed_hosts(),
                timeout_seconds=self.settings.timeout_seconds,
                user_agent=self.user_agent,
                now=self.now,
                strategies=self.strategies,
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("URL check crashed for %s", item.url)
            return UrlCheck(
                status="check_error",
                original_url=item.url,
                final_url=None,
                checked_at=self._checked_at(),
                error=str(exc) or exc.__class__.__name__,
            )

    def _checked_at(self) -> str:
        return isoformat_utc(self.now or utc_now())

    def _mark_unchecked_limit(self, item: Opportunity) -> Opportunity:
        return replace(
            item,
            url_check=UrlCheck(
                status="unchecked_limit",
                original_url=item.url,
                final_url=item.url,
                checked_at=self._checked_at(),
                allowed_host=True,
                error=(
                    "Skipped URL check due to "
                    f"max_check_items={self.settings.max_check_items}"
                ),
            ),
        )

    def _mark_network_unavailable(self, item: Opportunity) -> Opportunity:
        return replace(
            item,
            url_check=UrlCheck(
                status="unchecked_network_unavailable",
                original_url=item.url,
                final_url=item.url,
                checked_at=self._checked_at(),
                allowed_host=True,
                error=(
                    "Skipped strict filtering because network was unavailable "
                    "during URL checks"
                ),
            ),
        )


def _ad_hoc_source(item: Opportunity) -> Source:
    host = get_host(item.url)
    return Source(
        id=item.source_id,
        name=item.source_name or item.source_id,
        homepage=item.source_homepage or item.url,
        include_hosts=(host,) if host else (),
    )
