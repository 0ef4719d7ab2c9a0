from __future__ import annotations

import hashlib
from urllib.parse import urljoin, urlsplit, urlunsplit


def canonicalize_url(url: str) -> str:
    """Drop the fragment and trailing slash; lowercase scheme and host.

    Values that do not parse as absolute URLs are returned stripped but
    otherwise untouched.
    """
    value = (url or "").strip()
    if not value:
        return value

    parsed = urlsplit(value)
    if not parsed.scheme or not parsed.netloc:
        return value

    path = parsed.path
    if path.endswith("/"):
        path = path.rstrip("/")

    return urlunsplit(
        (parsed.scheme.lower(), parsed.netloc.lower(), path, parsed.query, "")
    )


def resolve_url(href: str, base_url: str) -> str | None:
    try:
        return urljoin(base_url, href.strip())
    except ValueError:
        return None


def get_host(url: str) -> str:
    try:
        hostname = urlsplit((url or "").strip()).hostname or ""
    except ValueError:
        return ""
    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname


def is_http_url(url: str) -> bool:
    try:
        parsed = urlsplit((url or "").strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def host_matches_allowed(host: str, allowed_hosts: tuple[str, ...] | list[str]) -> bool:
    """Exact host or any subdomain of an allowed entry; no entries allows all."""
    if not host:
        return False
    if not allowed_hosts:
        return True
    for entry in allowed_hosts:
        allowed = get_host(f"//{entry}") or str(entry).lower()
        if host == allowed or host.endswith(f".{allowed}"):
            return True
    return False


def stable_hash(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def derive_opportunity_id(source_id: str, canonical_url: str, title: str) -> str:
    return stable_hash(f"{source_id}|{canonical_url}|{title}")
