from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from funding_hub.models import Source

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; FundingHubBot/1.0; +https://github.com/)"
DEFAULT_AI_MODELS = [
    "openrouter/free",
    "meta-llama/llama-3.3-70b-instruct:free",
    "qwen/qwen-2.5-72b-instruct:free",
    "google/gemma-2-9b-it:free",
]


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(slots=True)
class FetchSettings:
    timeout_seconds: float = 22.0
    user_agent: str = DEFAULT_USER_AGENT
    max_per_source: int = 18
    max_detail_fetch: int = 260


@dataclass(slots=True)
class VerificationSettings:
    timeout_seconds: float = 15.0
    concurrency: int = 8
    max_check_items: int = 320
    strict: bool = False


@dataclass(slots=True)
class ConsolidationSettings:
    carry_forward: bool = True
    max_total_items: int = 320


@dataclass(slots=True)
class EnrichmentSettings:
    api_key_env_var: str = "OPENROUTER_API_KEY"
    models: list[str] = field(default_factory=lambda: list(DEFAULT_AI_MODELS))
    max_ai_items: int = 120
    timeout_seconds: float = 60.0
    site_url: str = "https://github.com/"
    site_name: str = "Funding Hub"


@dataclass(slots=True)
class DeliverySettings:
    api_key_env_var: str = "BUTTONDOWN_API_KEY"
    newsletter_id: str | None = None
    draft_only: bool = False
    send_empty: bool = False


@dataclass(slots=True)
class OutputSettings:
    dir: str = "docs/data"


@dataclass(slots=True)
class AppConfig:
    sources: list[Source]
    fetch: FetchSettings = field(default_factory=FetchSettings)
    verification: VerificationSettings = field(default_factory=VerificationSettings)
    consolidation: ConsolidationSettings = field(default_factory=ConsolidationSettings)
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)
    delivery: DeliverySettings = field(default_factory=DeliverySettings)
    output: OutputSettings = field(default_factory=OutputSettings)
    log_level: str = "INFO"


def _as_string_list(value: Any, *, field_name: str = "value") -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{field_name}: expected a list of strings, got: {type(value)!r}")
    return [str(item).strip() for item in value if str(item).strip()]


def _as_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value

    if isinstance(value, int) and value in {0, 1}:
        return bool(value)

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off"}:
            return False

    raise ConfigError(f"{field_name} must be a boolean")


def _as_int(value: Any, *, field_name: str, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_float(value: Any, *, field_name: str, minimum: float | None = None) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a number")

    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be a number") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_mapping(parsed: dict[str, Any], key: str) -> dict[str, Any]:
    raw = parsed.get(key, {}) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{key} must be a mapping")
    return raw


def _resolve_relative_path(config_path: Path, raw_path: str) -> str:
    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str((config_path.parent / candidate).resolve())


def parse_sources(raw_sources: Any) -> list[Source]:
    if not isinstance(raw_sources, list) or not raw_sources:
        raise ConfigError("Config must define at least one source")

    sources: list[Source] = []
    seen_ids: set[str] = set()
    for index, source in enumerate(raw_sources, start=1):
        if not isinstance(source, dict):
            raise ConfigError(f"Source entry #{index} must be a mapping")

        source_id = str(source.get("id", "")).strip()
        name = str(source.get("name", "")).strip()
        homepage = str(source.get("homepage", "")).strip()
        if not source_id or not name or not homepage:
            raise ConfigError(f"Source entry #{index} missing one of: id, name, homepage")
        if source_id in seen_ids:
            raise ConfigError(f"Duplicate source id: {source_id}")
        seen_ids.add(source_id)

        raw_seed_urls = source.get("seed_urls", source.get("seedUrls"))
        raw_include_hosts = source.get("include_hosts", source.get("includeHosts"))
        sources.append(
            Source(
                id=source_id,
                name=name,
                homepage=homepage,
                category=str(source.get("category", "")).strip(),
                seed_urls=tuple(
                    _as_string_list(raw_seed_urls, field_name=f"sources[{index}].seed_urls")
                ),
                include_hosts=tuple(
                    host.lower()
                    for host in _as_string_list(
                        raw_include_hosts, field_name=f"sources[{index}].include_hosts"
                    )
                ),
            )
        )
    return sources


def load_config(path: str | Path, environ: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if environ is None else environ
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        try:
            parsed = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Config file is not valid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError("Config root must be a mapping")

    sources = parse_sources(parsed.get("sources", []))

    raw_fetch = _as_mapping(parsed, "fetch")
    fetch_settings = FetchSettings(
        timeout_seconds=_as_float(
            raw_fetch.get("timeout_seconds", 22),
            field_name="fetch.timeout_seconds",
            minimum=1,
        ),
        user_agent=str(raw_fetch.get("user_agent", DEFAULT_USER_AGENT)).strip()
        or DEFAULT_USER_AGENT,
        max_per_source=_as_int(
            raw_fetch.get("max_per_source", 18),
            field_name="fetch.max_per_source",
            minimum=1,
        ),
        max_detail_fetch=_as_int(
            raw_fetch.get("max_detail_fetch", 260),
            field_name="fetch.max_detail_fetch",
            minimum=1,
        ),
    )

    raw_verification = _as_mapping(parsed, "verification")
    strict_raw = env.get("STRICT_URL_VALIDATION", "").strip() or raw_verification.get(
        "strict", False
    )
    verification_settings = VerificationSettings(
        timeout_seconds=_as_float(
            raw_verification.get("timeout_seconds", 15),
            field_name="verification.timeout_seconds",
            minimum=1,
        ),
        concurrency=_as_int(
            raw_verification.get("concurrency", 8),
            field_name="verification.concurrency",
            minimum=1,
        ),
        max_check_items=_as_int(
            raw_verification.get("max_check_items", 320),
            field_name="verification.max_check_items",
            minimum=0,
        ),
        strict=_as_bool(strict_raw, field_name="verification.strict"),
    )

    raw_consolidation = _as_mapping(parsed, "consolidation")
    carry_forward = _as_bool(
        raw_consolidation.get("carry_forward", True),
        field_name="consolidation.carry_forward",
    )
    disable_raw = env.get("DISABLE_CARRY_FORWARD", "").strip()
    if disable_raw and _as_bool(disable_raw, field_name="DISABLE_CARRY_FORWARD"):
        carry_forward = False
    consolidation_settings = ConsolidationSettings(
        carry_forward=carry_forward,
        max_total_items=_as_int(
            raw_consolidation.get("max_total_items", 320),
            field_name="consolidation.max_total_items",
            minimum=1,
        ),
    )

    raw_enrichment = _as_mapping(parsed, "enrichment")
    models = _as_string_list(
        [part for part in env.get("OPENROUTER_MODELS", "").split(",") if part.strip()]
        or raw_enrichment.get("models"),
        field_name="enrichment.models",
    )
    enrichment_settings = EnrichmentSettings(
        api_key_env_var=str(
            raw_enrichment.get("api_key_env_var", "OPENROUTER_API_KEY")
        ).strip()
        or "OPENROUTER_API_KEY",
        models=list(dict.fromkeys(models)) or list(DEFAULT_AI_MODELS),
        max_ai_items=_as_int(
            raw_enrichment.get("max_ai_items", 120),
            field_name="enrichment.max_ai_items",
            minimum=0,
        ),
        timeout_seconds=_as_float(
            raw_enrichment.get("timeout_seconds", 60),
            field_name="enrichment.timeout_seconds",
            minimum=1,
        ),
        site_url=str(raw_enrichment.get("site_url", "https://github.com/")).strip(),
        site_name=str(raw_enrichment.get("site_name", "Funding Hub")).strip(),
    )

    raw_delivery = _as_mapping(parsed, "delivery")
    newsletter_id = str(raw_delivery.get("newsletter_id", "") or "").strip()
    delivery_settings = DeliverySettings(
        api_key_env_var=str(
            raw_delivery.get("api_key_env_var", "BUTTONDOWN_API_KEY")
        ).strip()
        or "BUTTONDOWN_API_KEY",
        newsletter_id=newsletter_id or None,
        draft_only=_as_bool(
            raw_delivery.get("draft_only", False),
            field_name="delivery.draft_only",
        ),
        send_empty=_as_bool(
            raw_delivery.get("send_empty", False),
            field_name="delivery.send_empty",
        ),
    )

    raw_output = _as_mapping(parsed, "output")
    output_dir = str(raw_output.get("dir", "docs/data")).strip() or "docs/data"
    output_settings = OutputSettings(dir=_resolve_relative_path(config_path, output_dir))

    return AppConfig(
        sources=sources,
        fetch=fetch_settings,
        verification=verification_settings,
        consolidation=consolidation_settings,
        enrichment=enrichment_settings,
        delivery=delivery_settings,
        output=output_settings,
        log_level=str(parsed.get("log_level", "INFO")).upper(),
    )
