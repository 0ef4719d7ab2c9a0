from __future__ import annotations

from funding_hub.models import Opportunity, Summary

from .base import Enricher, EnrichmentResult

_TYPE_LABELS = {
    "grant": "Grant opportunity",
    "fellowship": "Fellowship",
    "scholarship": "Scholarship",
    "call": "Funding call",
    "award": "Award scheme",
}


def heuristic_summary(item: Opportunity) -> Summary:
    eligibility = item.eligibility
    level_text = (
        "/".join(eligibility.levels) if eligibility.levels else "no explicit level restriction"
    )
    if not eligibility.nationalities or "any" in eligibility.nationalities:
        nationality_text = "nationality rules appear flexible"
    else:
        nationality_text = f"targeted at {'/'.join(eligibility.nationalities)}"
    deadline_text = (
        f"deadline: {item.deadline}"
        if item.deadline
        else "deadline must be confirmed on the official page"
    )
    type_label = _TYPE_LABELS.get(item.type, "Funding opportunity")

    fit: list[str] = []
    if "phd" in eligibility.levels:
        fit.append("Applicants preparing for or currently in a PhD")
    if "postdoc" in eligibility.levels:
        fit.append("Postdoctoral or early-career researchers")
    if "masters" in eligibility.levels:
        fit.append("Master's applicants")
    if "early" in eligibility.career_stages:
        fit.append("Early-career stage")
    disciplines = [d for d in eligibility.disciplines if d != "all disciplines"]
    if disciplines:
        fit.append(f"Research focus includes {'/'.join(disciplines[:2])}")
    if not fit:
        fit.append("Anyone aligned with this theme and meeting official eligibility")

    watch_out: list[str] = []
    if item.status == "closed":
        watch_out.append("Status may be closed; verify the latest official notice")
    if not item.deadline:
        watch_out.append("No explicit deadline was detected; verify before applying")
    if "uk" in eligibility.nationalities and "international" not in eligibility.nationalities:
        watch_out.append("May require UK institution affiliation or UK-specific eligibility")
    if not watch_out:
        watch_out.append("Check max budget, partnership rules, and required documents")

    return Summary(
        text=f"{type_label}. {deadline_text}. Best suited for {level_text}; {nationality_text}.",
        fit=tuple(fit),
        watch_out=tuple(watch_out),
        model="heuristic",
        reasoning=f"Generated from title/content keyword heuristics: {item.title[:80]}",
    )


class HeuristicEnricher(Enricher):
    name = "heuristic"

    def enrich(self, item: Opportunity, context: str) -> EnrichmentResult:
        return EnrichmentResult(summary=heuristic_summary(item))
