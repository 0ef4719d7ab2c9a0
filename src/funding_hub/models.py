from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Union

from funding_hub.utils.datetime_utils import parse_iso_date
from funding_hub.utils.url_utils import get_host

OPPORTUNITY_TYPES = ("grant", "fellowship", "scholarship", "call", "award")
OPPORTUNITY_STATUSES = ("open", "closed", "unknown")

KEPT_URL_STATUSES = frozenset(
    {"reachable", "reachable_with_redirect", "reachable_restricted"}
)


@dataclass(frozen=True, slots=True)
class Source:
    id: str
    name: str
    homepage: str
    category: str = ""
    seed_urls: tuple[str, ...] = ()
    include_hosts: tuple[str, ...] = ()

    def allowed_hosts(self) -> tuple[str, ...]:
        if self.include_hosts:
            return tuple(host.lower() for host in self.include_hosts)
        homepage_host = get_host(self.homepage)
        return (homepage_host,) if homepage_host else ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "homepage": self.homepage,
        }


@dataclass(frozen=True, slots=True)
class CandidateLink:
    url: str
    anchor_text: str
    score: int = 0


@dataclass(frozen=True, slots=True)
class Eligibility:
    levels: tuple[str, ...] = ()
    career_stages: tuple[str, ...] = ()
    nationalities: tuple[str, ...] = ()
    disciplines: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, list[str]]:
        return {
            "levels": list(self.levels),
            "careerStages": list(self.career_stages),
            "nationalities": list(self.nationalities),
            "disciplines": list(self.disciplines),
        }

    @classmethod
    def from_dict(cls, value: Any) -> Eligibility:
        if not isinstance(value, dict):
            return cls()
        career_stages = value.get("careerStages", value.get("career_stages"))
        return cls(
            levels=_tag_tuple(value.get("levels")),
            career_stages=_tag_tuple(career_stages),
            nationalities=_tag_tuple(value.get("nationalities")),
            disciplines=_tag_tuple(value.get("disciplines")),
        )

    def merged_with(self, other: Any) -> Eligibility:
        """Overlay the non-empty dimensions of ``other`` (dict or Eligibility)."""
        if isinstance(other, Eligibility):
            overlay = other
        else:
            overlay = Eligibility.from_dict(other)
        return Eligibility(
            levels=overlay.levels or self.levels,
            career_stages=overlay.career_stages or self.career_stages,
            nationalities=overlay.nationalities or self.nationalities,
            disciplines=overlay.disciplines or self.disciplines,
        )


@dataclass(frozen=True, slots=True)
class Summary:
    text: str
    fit: tuple[str, ...] = ()
    watch_out: tuple[str, ...] = ()
    model: str = "heuristic"
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "en": self.text,
            "fit": list(self.fit),
            "watchOut": list(self.watch_out),
            "model": self.model,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, value: Any) -> Summary | None:
        if not isinstance(value, dict):
            return None
        text = str(value.get("en") or value.get("text") or "").strip()
        if not text:
            return None
        return cls(
            text=text,
            fit=_text_tuple(value.get("fit")),
            watch_out=_text_tuple(value.get("watchOut", value.get("watch_out"))),
            model=str(value.get("model") or "unknown"),
            reasoning=str(value.get("reasoning") or ""),
        )


@dataclass(frozen=True, slots=True)
class UrlCheck:
    status: str
    original_url: str
    final_url: str | None
    checked_at: str
    http_status: int | None = None
    allowed_host: bool = False
    redirected: bool = False
    content_type: str | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.status in KEPT_URL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": self.status,
            "originalUrl": self.original_url,
            "finalUrl": self.final_url,
            "httpStatus": self.http_status,
            "allowedHost": self.allowed_host,
            "redirected": self.redirected,
            "checkedAt": self.checked_at,
        }
        if self.content_type is not None:
            payload["contentType"] = self.content_type
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_dict(cls, value: Any) -> UrlCheck | None:
        if not isinstance(value, dict) or not value.get("status"):
            return None
        http_status = value.get("httpStatus")
        return cls(
            status=str(value["status"]),
            original_url=str(value.get("originalUrl") or ""),
            final_url=value.get("finalUrl"),
            checked_at=str(value.get("checkedAt") or ""),
            http_status=http_status if isinstance(http_status, int) else None,
            allowed_host=bool(value.get("allowedHost", False)),
            redirected=bool(value.get("redirected", False)),
            content_type=value.get("contentType"),
            error=value.get("error"),
        )


@dataclass(slots=True)
class Opportunity:
    id: str
    title: str
    url: str
    source_id: str
    source_name: str
    source_homepage: str
    type: str = "grant"
    status: str = "unknown"
    deadline: str | None = None
    amount: str | None = None
    description: str = ""
    eligibility: Eligibility = field(default_factory=Eligibility)
    summary: Summary | None = None
    url_check: UrlCheck | None = None
    fingerprint: str | None = None
    is_new: bool = False
    is_updated: bool = False
    last_seen_at: str | None = None
    raw_signals: dict[str, Any] = field(default_factory=dict)

    @property
    def source_type(self) -> str:
        return str(self.raw_signals.get("sourceType") or "")

    @property
    def text_sample(self) -> str:
        return str(self.raw_signals.get("textSample") or "")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "sourceId": self.source_id,
            "sourceName": self.source_name,
            "sourceHomepage": self.source_homepage,
            "type": self.type,
            "status": self.status,
            "deadline": self.deadline,
            "amount": self.amount,
            "description": self.description,
            "eligibility": self.eligibility.to_dict(),
            "summary": self.summary.to_dict() if self.summary else None,
            "rawSignals": dict(self.raw_signals),
            "fingerprint": self.fingerprint,
            "isNew": self.is_new,
            "isUpdated": self.is_updated,
            "lastSeenAt": self.last_seen_at,
        }
        if self.url_check is not None:
            payload["urlCheck"] = self.url_check.to_dict()
        return payload

    @classmethod
    def from_dict(cls, value: dict[str, Any]) -> Opportunity | None:
        item_id = str(value.get("id") or "").strip()
        title = str(value.get("title") or "").strip()
        url = str(value.get("url") or "").strip()
        if not item_id or not title or not url:
            return None

        raw_signals = value.get("rawSignals")
        item_type = str(value.get("type") or "grant")
        status = str(value.get("status") or "unknown")
        return cls(
            id=item_id,
            title=title,
            url=url,
            source_id=str(value.get("sourceId") or ""),
            source_name=str(value.get("sourceName") or value.get("sourceId") or ""),
            source_homepage=str(value.get("sourceHomepage") or ""),
            type=item_type if item_type in OPPORTUNITY_TYPES else "grant",
            status=status if status in OPPORTUNITY_STATUSES else "unknown",
            deadline=_iso_deadline(value.get("deadline")),
            amount=_optional_text(value.get("amount")),
            description=str(value.get("description") or ""),
            eligibility=Eligibility.from_dict(value.get("eligibility")),
            summary=Summary.from_dict(value.get("summary")),
            url_check=UrlCheck.from_dict(value.get("urlCheck")),
            fingerprint=_optional_text(value.get("fingerprint")),
            is_new=bool(value.get("isNew", False)),
            is_updated=bool(value.get("isUpdated", False)),
            last_seen_at=_optional_text(value.get("lastSeenAt")),
            raw_signals=dict(raw_signals) if isinstance(raw_signals, dict) else {},
        )


@dataclass(frozen=True, slots=True)
class FeedCandidate:
    source: Source
    seed_url: str
    opportunity: Opportunity


@dataclass(frozen=True, slots=True)
class LinkCandidate:
    source: Source
    seed_url: str
    url: str
    anchor_text: str


@dataclass(frozen=True, slots=True)
class SeedPageCandidate:
    source: Source
    seed_url: str
    url: str
    anchor_text: str


Candidate = Union[FeedCandidate, LinkCandidate, SeedPageCandidate]


@dataclass(frozen=True, slots=True)
class Diagnostic:
    error: str
    seed_url: str | None = None
    detail_url: str | None = None

    def to_dict(self) -> dict[str, str]:
        payload = {"error": self.error}
        if self.seed_url:
            payload["seedUrl"] = self.seed_url
        if self.detail_url:
            payload["detailUrl"] = self.detail_url
        return payload


class PreviousSnapshot:
    """Read-only view of the prior run's items, indexed by id."""

    __slots__ = ("_items", "_by_id")

    def __init__(self, items: Iterable[Opportunity] = ()) -> None:
        by_id: dict[str, Opportunity] = {}
        for item in items:
            by_id.setdefault(item.id, item)
        self._by_id = by_id
        self._items: tuple[Opportunity, ...] = tuple(by_id.values())

    @classmethod
    def from_payload(cls, payload: Any) -> PreviousSnapshot:
        if not isinstance(payload, dict):
            return cls()
        raw_items = payload.get("items")
        if not isinstance(raw_items, list):
            return cls()
        items = []
        for raw_item in raw_items:
            if not isinstance(raw_item, dict):
                continue
            item = Opportunity.from_dict(raw_item)
            if item is not None:
                items.append(item)
        return cls(items)

    @property
    def items(self) -> tuple[Opportunity, ...]:
        return self._items

    def get(self, item_id: str) -> Opportunity | None:
        return self._by_id.get(item_id)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._by_id

    def __len__(self) -> int:
        return len(self._items)


@dataclass(frozen=True, slots=True)
class Digest:
    subject: str
    markdown: str
    new_items: int = 0
    updated_items: int = 0
    closing_soon: int = 0

    @property
    def stats(self) -> dict[str, int]:
        return {
            "newItems": self.new_items,
            "updatedItems": self.updated_items,
            "closingSoon": self.closing_soon,
        }

    def to_dict(self) -> dict[str, Any]:
        return {"subject": self.subject, "markdown": self.markdown, "stats": self.stats}


def _tag_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    tags: list[str] = []
    for entry in value:
        tag = " ".join(str(entry).lower().split())
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _text_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(" ".join(str(entry).split()) for entry in value if str(entry).strip())


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _iso_deadline(value: Any) -> str | None:
    parsed = parse_iso_date(_optional_text(value))
    return parsed.isoformat() if parsed else None
