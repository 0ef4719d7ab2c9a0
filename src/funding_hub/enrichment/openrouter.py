from __future__ import annotations

import json
import logging
import re
from typing import Any

import requests

from funding_hub.models import Opportunity, Summary
from funding_hub.utils.text_utils import normalize_whitespace

from .base import Enricher, EnrichmentError, EnrichmentResult

logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
CONTEXT_CHAR_LIMIT = 6000
MAX_LIST_ENTRIES = 4

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_PROMPT_HEADER = """You are a UK academic funding advisor.
Based on the opportunity information below, output JSON only (no extra text).
JSON schema:
{
  "summary_en": "One-sentence English summary (<=35 words)",
  "fit": ["Who this is good for #1", "Who this is good for #2"],
  "watch_out": ["Risk or mismatch #1", "Risk or mismatch #2"],
  "eligibility": {
    "levels": ["undergraduate|masters|phd|postdoc|academic"],
    "career_stages": ["early|mid|senior"],
    "nationalities": ["uk|eu|international|any"],
    "disciplines": ["discipline name"]
  }
}
Rules:
1) Be conservative when unsure; use nationality 'any'.
2) fit and watch_out must each contain at least 2 entries.
3) If info is incomplete, explicitly say to verify on the official page.
4) Output must be valid JSON.
Input:"""


def extract_json_object(text: str) -> dict[str, Any] | None:
    if not text:
        return None
    fenced = _FENCED_JSON.search(text)
    raw = fenced.group(1) if fenced else text
    match = _JSON_OBJECT.search(raw)
    if match is None:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def extract_chat_content(payload: Any) -> str:
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = [entry.get("text", "") for entry in content if isinstance(entry, dict)]
        return "\n".join(part for part in parts if isinstance(part, str)).strip()
    return ""


def _clean_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    cleaned = [normalize_whitespace(str(entry)) for entry in value]
    return tuple(entry for entry in cleaned if entry)[:MAX_LIST_ENTRIES]


class OpenRouterEnricher(Enricher):
    name = "openrouter"

    def __init__(
        self,
        api_key: str,
        models: list[str],
        *,
        timeout_seconds: float = 60.0,
        site_url: str = "https://github.com/",
        site_name: str = "Funding Hub",
    ) -> None:
        if not models:
            raise ValueError("at least one model is required")
        self.api_key = api_key
        self.models = models
        self.timeout_seconds = timeout_seconds
        self.site_url = site_url
        self.site_name = site_name

    def enrich(self, item: Opportunity, context: str) -> EnrichmentResult:
        prompt = "\n".join([_PROMPT_HEADER, json.dumps(self._prompt_input(item, context), indent=2)])
        failures: list[str] = []
        for model in self.models:
            try:
                return self._ask(model, prompt)
            except (requests.RequestException, EnrichmentError, ValueError) as exc:
                logger.warning("Model %s failed for %s: %s", model, item.url, exc)
                failures.append(f"{model}: {exc}")
        raise EnrichmentError("; ".join(failures) or "no models attempted")

    def _ask(self, model: str, prompt: str) -> EnrichmentResult:
        response = requests.post(
            OPENROUTER_URL,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
                "HTTP-Referer": self.site_url,
                "X-Title": self.site_name,
            },
            json={
                "model": model,
                "messages": [
                    {
                        "role": "system",
                        "content": (
                            "You are a precise funding opportunity summarizer. "
                            "Always return valid JSON only."
                        ),
                    },
                    {"role": "user", "content": prompt},
                ],
                "temperature": 0.1,
                "response_format": {"type": "json_object"},
            },
            timeout=self.timeout_seconds,
        )
        if response.status_code >= 400:
            raise EnrichmentError(f"OpenRouter HTTP {response.status_code}")

        parsed = extract_json_object(extract_chat_content(response.json()))
        if parsed is None:
            raise EnrichmentError("AI summary JSON parse failed")

        summary_text = normalize_whitespace(
            str(parsed.get("summary_en") or parsed.get("summary") or "")
        )
        eligibility = parsed.get("eligibility")
        return EnrichmentResult(
            summary=Summary(
                text=summary_text,
                fit=_clean_list(parsed.get("fit")),
                watch_out=_clean_list(parsed.get("watch_out")),
                model=model,
                reasoning="AI generated via OpenRouter",
            ),
            eligibility=eligibility if isinstance(eligibility, dict) else None,
        )

    @staticmethod
    def _prompt_input(item: Opportunity, context: str) -> dict[str, Any]:
        return {
            "title": item.title,
            "source": item.source_name,
            "url": item.url,
            "deadline": item.deadline,
            "amount": item.amount,
            "type": item.type,
            "status": item.status,
            "content": context[:CONTEXT_CHAR_LIMIT],
        }
