from __future__ import annotations

import logging
from typing import Any

import requests

from .base import DeliveryError, DigestNotifier

logger = logging.getLogger(__name__)

BUTTONDOWN_EMAILS_URL = "https://api.buttondown.email/v1/emails"


class ButtondownNotifier(DigestNotifier):
    def __init__(
        self,
        api_key: str,
        *,
        newsletter_id: str | None = None,
        draft_only: bool = False,
        timeout_seconds: int = 30,
    ) -> None:
        self.api_key = api_key
        self.newsletter_id = newsletter_id
        self.draft_only = draft_only
        self.timeout_seconds = timeout_seconds

    def send(self, subject: str, body: str) -> str:
        payload: dict[str, Any] = {"subject": subject, "body": body, "status": "draft"}
        if self.newsletter_id:
            payload["newsletter"] = self.newsletter_id

        response = requests.post(
            BUTTONDOWN_EMAILS_URL,
            headers=self._headers(),
            json=payload,
            timeout=self.timeout_seconds,
        )
        if response.status_code >= 400:
            raise DeliveryError(
                f"Buttondown create draft failed ({response.status_code}): {response.text[:400]}"
            )

        draft_id = str(response.json().get("id") or "")
        if not draft_id:
            raise DeliveryError("Buttondown response did not include a draft id")
        logger.info("Created Buttondown draft %s", draft_id)

        if not self.draft_only:
            self._mark_about_to_send(draft_id)
        return draft_id

    def _mark_about_to_send(self, draft_id: str) -> None:
        response = requests.patch(
            f"{BUTTONDOWN_EMAILS_URL}/{draft_id}",
            headers=self._headers(),
            json={"status": "about_to_send"},
            timeout=self.timeout_seconds,
        )
        if response.status_code >= 400:
            raise DeliveryError(
                f"Buttondown send trigger failed ({response.status_code}): {response.text[:400]}"
            )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
        }


def should_send_digest(dataset: dict[str, Any], *, send_empty: bool = False) -> bool:
    if send_empty:
        return True
    digest = dataset.get("digest")
    stats = digest.get("stats") if isinstance(digest, dict) else None
    if not isinstance(stats, dict):
        return True
    return int(stats.get("newItems") or 0) + int(stats.get("updatedItems") or 0) > 0
