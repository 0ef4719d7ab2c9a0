from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from funding_hub.models import Digest, Opportunity, PreviousSnapshot
from funding_hub.utils.datetime_utils import days_until, is_deadline_past, to_utc

CLOSING_SOON_DAYS = 14
MAX_LISTED_ITEMS = 12
NO_NEW_ITEMS_TEXT = (
    "- No new items were detected today (source updates may be limited or blocked)."
)
NO_CLOSING_SOON_TEXT = f"- No opportunities close within the next {CLOSING_SOON_DAYS} days."

_MD_SPECIAL = re.compile(r"[\[\]()]")


@dataclass(frozen=True, slots=True)
class ClosingSoonEntry:
    item: Opportunity
    days_left: int


def partition_changes(
    items: Iterable[Opportunity], previous: PreviousSnapshot
) -> tuple[list[Opportunity], list[Opportunity]]:
    new_items: list[Opportunity] = []
    updated_items: list[Opportunity] = []
    for item in items:
        prior = previous.get(item.id)
        if prior is None:
            new_items.append(item)
        elif prior.fingerprint != item.fingerprint:
            updated_items.append(item)
    return new_items, updated_items


def closing_soon(
    items: Iterable[Opportunity], now: datetime, window_days: int = CLOSING_SOON_DAYS
) -> list[ClosingSoonEntry]:
    entries: list[ClosingSoonEntry] = []
    for item in items:
        if item.status != "open" or is_deadline_past(item.deadline, now):
            continue
        days_left = days_until(item.deadline, now)
        if days_left is None or not 0 <= days_left <= window_days:
            continue
        entries.append(ClosingSoonEntry(item=item, days_left=days_left))
    entries.sort(key=lambda entry: entry.days_left)
    return entries


def escape_md(text: str | None) -> str:
    return " ".join(_MD_SPECIAL.sub(" ", text or "").split())


def build_digest(
    items: Iterable[Opportunity], previous: PreviousSnapshot, now: datetime
) -> Digest:
    current = list(items)
    new_items, updated_items = partition_changes(current, previous)
    soon = closing_soon(current, now)
    run_date = to_utc(now).date().isoformat()

    lines = [
        f"# UK Academic Funding Daily Brief ({run_date})",
        "",
        f"- New opportunities: **{len(new_items)}**",
        f"- Updated opportunities: **{len(updated_items)}**",
        f"- Closing within {CLOSING_SOON_DAYS} days: **{len(soon)}**",
        "",
        f"## New Opportunities (Top {MAX_LISTED_ITEMS})",
    ]
    if not new_items:
        lines.append(NO_NEW_ITEMS_TEXT)
    for item in new_items[:MAX_LISTED_ITEMS]:
        summary_text = item.summary.text if item.summary else ""
        lines.append(
            f"- [{escape_md(item.title)}]({item.url}) | {item.source_name} "
            f"| Deadline: {item.deadline or 'TBC'} | {escape_md(summary_text)}"
        )

    lines.extend(["", f"## Closing Soon (Within {CLOSING_SOON_DAYS} Days)"])
    if not soon:
        lines.append(NO_CLOSING_SOON_TEXT)
    for entry in soon[:MAX_LISTED_ITEMS]:
        lines.append(
            f"- [{escape_md(entry.item.title)}]({entry.item.url}) "
            f"| {entry.item.source_name} | D-{entry.days_left}"
        )

    lines.extend(
        [
            "",
            "---",
            "This brief is auto-generated. Always verify details on the official source page.",
        ]
    )

    return Digest(
        subject=f"UK Funding Daily Brief | {run_date} | {len(new_items)} new",
        markdown="\n".join(lines) + "\n",
        new_items=len(new_items),
        updated_items=len(updated_items),
        closing_soon=len(soon),
    )
