from __future__ import annotations

from datetime import datetime

from funding_hub.extractors import (
    classify_type,
    extract_amount,
    extract_deadline,
    infer_eligibility,
    infer_status,
)
from funding_hub.extractors.rules import ExtractionRules
from funding_hub.models import Opportunity, Source
from funding_hub.utils.datetime_utils import isoformat_utc
from funding_hub.utils.url_utils import canonicalize_url, derive_opportunity_id


def draft_opportunity(
    *,
    source: Source,
    url: str,
    title: str,
    description: str,
    extraction_text: str,
    type_text: str,
    source_type: str,
    now: datetime,
    rules: ExtractionRules,
    text_sample: str | None = None,
) -> Opportunity:
    """Run every extractor and assemble a draft record for one listing."""
    canonical_url = canonicalize_url(url)
    deadline = extract_deadline(extraction_text)

    raw_signals: dict[str, str] = {
        "extractedAt": isoformat_utc(now),
        "sourceType": source_type,
    }
    if text_sample:
        raw_signals["textSample"] = text_sample

    return Opportunity(
        id=derive_opportunity_id(source.id, canonical_url, title),
        title=title,
        url=canonical_url,
        source_id=source.id,
        source_name=source.name,
        source_homepage=source.homepage,
        type=classify_type(type_text, rules),
        status=infer_status(extraction_text, deadline, now, rules),
        deadline=deadline,
        amount=extract_amount(extraction_text),
        description=description,
        eligibility=infer_eligibility(extraction_text, rules),
        raw_signals=raw_signals,
    )
