from __future__ import annotations

import logging
import re

import requests

from funding_hub.config import FetchSettings

logger = logging.getLogger(__name__)

_FEED_MARKER = re.compile(r"<(?:rss|feed)[\s>]", re.IGNORECASE)


class FetchError(RuntimeError):
    """Raised when a page cannot be fetched."""


class HttpFetcher:
    """Fetches page bodies as text with the content-fetch timeout."""

    def __init__(self, settings: FetchSettings) -> None:
        self.timeout_seconds = settings.timeout_seconds
        self.headers = {"User-Agent": settings.user_agent}

    def __call__(self, url: str) -> str:
        logger.debug("Fetching %s", url)
        try:
            response = requests.get(
                url,
                timeout=self.timeout_seconds,
                headers=self.headers,
                allow_redirects=True,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise FetchError(str(exc)) from exc
        return response.text


def looks_like_feed(content: str) -> bool:
    return bool(_FEED_MARKER.search(content or ""))
