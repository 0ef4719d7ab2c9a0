from __future__ import annotations

from pathlib import Path

import pytest

from funding_hub.config import DEFAULT_AI_MODELS, ConfigError, load_config

MINIMAL_CONFIG = """
sources:
  - id: ukri
    name: UKRI
    homepage: https://www.ukri.org/opportunity/
    seed_urls:
      - https://www.ukri.org/opportunity/
    include_hosts:
      - UKRI.org
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")
    return path


def test_load_config_applies_defaults(tmp_path: Path) -> None:
    config = load_config(_write(tmp_path, MINIMAL_CONFIG), environ={})

    assert len(config.sources) == 1
    source = config.sources[0]
    assert source.seed_urls == ("https://www.ukri.org/opportunity/",)
    assert source.include_hosts == ("ukri.org",)
    assert config.fetch.timeout_seconds == 22
    assert config.fetch.max_per_source == 18
    assert config.fetch.max_detail_fetch == 260
    assert config.verification.timeout_seconds == 15
    assert config.verification.concurrency == 8
    assert config.verification.max_check_items == 320
    assert config.verification.strict is False
    assert config.consolidation.carry_forward is True
    assert config.consolidation.max_total_items == 320
    assert config.enrichment.models == DEFAULT_AI_MODELS
    assert config.output.dir == str((tmp_path / "docs/data").resolve())
    assert config.log_level == "INFO"


def test_load_config_accepts_camel_case_source_keys(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
sources:
  - id: rs
    name: Royal Society
    homepage: https://royalsociety.org/grants/
    seedUrls: [https://royalsociety.org/grants/]
    includeHosts: [royalsociety.org]
""",
    )

    source = load_config(path, environ={}).sources[0]

    assert source.seed_urls == ("https://royalsociety.org/grants/",)
    assert source.include_hosts == ("royalsociety.org",)


def test_environment_overrides(tmp_path: Path) -> None:
    config = load_config(
        _write(tmp_path, MINIMAL_CONFIG),
        environ={
            "STRICT_URL_VALIDATION": "true",
            "DISABLE_CARRY_FORWARD": "true",
            "OPENROUTER_MODELS": "model-a, model-b,model-a",
        },
    )

    assert config.verification.strict is True
    assert config.consolidation.carry_forward is False
    assert config.enrichment.models == ["model-a", "model-b"]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("sources: []\n", "at least one source"),
        ("log_level: INFO\n", "at least one source"),
        ("- just\n- a list\n", "root must be a mapping"),
        ("sources: [{id: a, name: A}]\n", "missing one of"),
        (
            "sources:\n"
            "  - {id: a, name: A, homepage: https://a.org}\n"
            "  - {id: a, name: B, homepage: https://b.org}\n",
            "Duplicate source id",
        ),
        (MINIMAL_CONFIG + "verification:\n  strict: maybe\n", "must be a boolean"),
        (MINIMAL_CONFIG + "fetch:\n  max_per_source: 0\n", "must be >= 1"),
        (MINIMAL_CONFIG + "fetch: [1, 2]\n", "fetch must be a mapping"),
        ("sources: [\n", "not valid YAML"),
    ],
)
def test_invalid_configs_raise_config_error(tmp_path: Path, content: str, message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        load_config(_write(tmp_path, content), environ={})


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent.yaml", environ={})
