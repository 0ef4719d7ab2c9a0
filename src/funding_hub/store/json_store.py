from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from funding_hub.models import PreviousSnapshot

from .base import SnapshotStore

logger = logging.getLogger(__name__)

LATEST_FILE = "funding.latest.json"
INDEX_FILE = "funding.index.json"
DIGEST_FILE = "digest.latest.md"
DIGEST_META_FILE = "digest.meta.json"
HISTORY_DIR = "history"


class JsonSnapshotStore(SnapshotStore):
    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    @property
    def latest_path(self) -> Path:
        return self.output_dir / LATEST_FILE

    def load_latest_payload(self) -> dict[str, Any] | None:
        if not self.latest_path.exists():
            return None
        try:
            with self.latest_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", self.latest_path, exc)
            return None
        return payload if isinstance(payload, dict) else None

    def load_previous(self) -> PreviousSnapshot:
        snapshot = PreviousSnapshot.from_payload(self.load_latest_payload())
        logger.info("Loaded %d items from previous snapshot", len(snapshot))
        return snapshot

    def save(self, dataset: dict[str, Any]) -> None:
        history_dir = self.output_dir / HISTORY_DIR
        history_dir.mkdir(parents=True, exist_ok=True)

        _write_json(self.latest_path, dataset)
        generated_date = str(dataset.get("generatedDate") or "")
        if generated_date:
            _write_json(history_dir / f"{generated_date}.json", dataset)

        digest = dataset.get("digest") or {}
        (self.output_dir / DIGEST_FILE).write_text(
            str(digest.get("markdown") or ""), encoding="utf-8"
        )
        _write_json(
            self.output_dir / DIGEST_META_FILE,
            {
                "generatedAt": dataset.get("generatedAt"),
                "subject": digest.get("subject"),
                "stats": digest.get("stats"),
                "markdownPath": f"./{DIGEST_FILE}",
            },
        )
        _write_json(self.output_dir / INDEX_FILE, build_index(dataset))
        logger.info("Wrote dataset to %s", self.output_dir)


def build_index(dataset: dict[str, Any]) -> dict[str, Any]:
    """Slim listing used by the front-end's first paint."""
    items = []
    for item in dataset.get("items") or []:
        eligibility = item.get("eligibility") or {}
        summary = item.get("summary") or {}
        items.append(
            {
                "id": item.get("id"),
                "title": item.get("title"),
                "url": item.get("url"),
                "sourceName": item.get("sourceName"),
                "type": item.get("type"),
                "status": item.get("status"),
                "deadline": item.get("deadline"),
                "amount": item.get("amount"),
                "summary": summary.get("en") or "",
                "levels": eligibility.get("levels") or [],
                "disciplines": eligibility.get("disciplines") or [],
                "nationalities": eligibility.get("nationalities") or [],
            }
        )
    return {
        "generatedAt": dataset.get("generatedAt"),
        "stats": dataset.get("stats"),
        "items": items,
    }


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(f"{json.dumps(payload, indent=2, ensure_ascii=False)}\n", encoding="utf-8")
