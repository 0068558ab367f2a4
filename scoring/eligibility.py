"""
Eligibility engine — scores a tender against the company profile.

Each applicable criterion produces a 0-100 sub-score; the overall score is
the mean of those, rounded half-up. A criterion the profile can't evaluate
(no sectors configured, say) is left out rather than scored as zero.

  Turnover        always (once a profile is configured)
                    no requirement          100  exempted
                    capability ≥ required   100  met
                    capability = 0            0  not eligible
                    ratio < 0.5              30
                    ratio < 0.8              70
                    ratio < 1.0              90
  Business sector any configured sector in title/description → 100, else 60
  Project type    any keyword of any configured type in title/description/
                  requirements → 100, else 40
  Certification   any certification named in title/description/
                  requirements → 100, else 70

Nothing here raises for bad input: a missing or garbled value falls into
one of the documented defaults. No profile at all → 50 with no criteria.
"""

import logging
from dataclasses import replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from ingestion.models import CompanyProfile, CriterionResult, ScoreBreakdown, TenderRecord
from ingestion.normalizer import parse_inr_amount, round_half_up

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50

PROJECT_TYPE_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "mobile": ("mobile app", "android", "ios", "smartphone", "mobile application"),
    "web": ("website", "web application", "web portal", "online platform", "web development"),
    "software": ("software", "application development", "erp", "it solution", "system development"),
    "tax collection": ("tax collection", "property tax", "revenue collection", "tax management",
                       "municipal tax"),
    "infrastructure": ("infrastructure", "construction", "civil work", "road", "building"),
    "hardware": ("hardware", "computer", "server", "laptop", "networking equipment"),
    "consulting": ("consulting", "consultancy", "advisory", "project management consultant"),
}


def _format_inr(amount: float) -> str:
    if amount >= 1_00_00_000:
        return f"₹{amount / 1_00_00_000:,.2f} Cr"
    if amount >= 1_00_000:
        return f"₹{amount / 1_00_000:,.2f} Lakh"
    return f"₹{amount:,.0f}"


def turnover_score(capability: float, requirement: float) -> Tuple[int, bool, str]:
    """(score, met, reason) for a capability vs. requirement, both in ₹."""
    requirement = max(requirement or 0.0, 0.0)
    capability = max(capability or 0.0, 0.0)

    if requirement == 0:
        return 100, True, "no turnover requirement - exempted"
    if capability >= requirement:
        return 100, True, "requirement met"
    if capability == 0:
        return 0, False, "not eligible"

    ratio = capability / requirement
    if ratio < 0.5:
        return 30, False, f"turnover is {ratio:.0%} of the requirement"
    if ratio < 0.8:
        return 70, False, f"turnover is {ratio:.0%} of the requirement"
    return 90, False, f"turnover is {ratio:.0%} of the requirement — nearly eligible"


def keywords_for(project_type: str) -> Tuple[str, ...]:
    name = project_type.strip().lower()
    return PROJECT_TYPE_KEYWORDS.get(name, (name,))


def _contains_any(text: str, needles: List[str]) -> List[str]:
    """Return the needles found in text (case-insensitive substring)."""
    text_lower = text.lower()
    return [n for n in needles if n and n.lower() in text_lower]


def _turnover(tender: TenderRecord, profile: CompanyProfile) -> CriterionResult:
    raw = tender.requirements.turnover
    required = parse_inr_amount(raw)
    capability = parse_inr_amount(profile.turnover_amount)
    points, met, reason = turnover_score(capability, required)
    return CriterionResult(
        criterion="turnover",
        requirement_text=raw or "Not specified",
        capability_text=_format_inr(capability),
        met=met,
        score=points,
        reason=reason,
    )


def _sectors(tender: TenderRecord, profile: CompanyProfile) -> CriterionResult:
    corpus = f"{tender.title} {tender.description}"
    hits = _contains_any(corpus, profile.business_sectors)
    return CriterionResult(
        criterion="business_sector",
        requirement_text=tender.title,
        capability_text=", ".join(profile.business_sectors),
        met=bool(hits),
        score=100 if hits else 60,
        reason=f"matches sector {hits[0]}" if hits else "no sector match — advisory only",
    )


def _project_types(tender: TenderRecord, profile: CompanyProfile, corpus: str) -> CriterionResult:
    matched = []
    for ptype in profile.project_types:
        hits = _contains_any(corpus, list(keywords_for(ptype)))
        if hits:
            matched.append(f"{ptype} ({hits[0]})")
    return CriterionResult(
        criterion="project_type",
        requirement_text=tender.title,
        capability_text=", ".join(profile.project_types),
        met=bool(matched),
        score=100 if matched else 40,
        reason=f"matches {', '.join(matched)}" if matched else "no project type keywords found",
    )


def _certifications(tender: TenderRecord, profile: CompanyProfile, corpus: str) -> CriterionResult:
    hits = _contains_any(corpus, profile.certifications)
    return CriterionResult(
        criterion="certification",
        requirement_text=", ".join(hits) if hits else "Not mentioned",
        capability_text=", ".join(profile.certifications),
        met=bool(hits),
        score=100 if hits else 70,
        reason=(f"mentions {', '.join(hits)}" if hits
                else "not mentioned — may still be relevant"),
    )


def score(tender: TenderRecord, profile: Optional[CompanyProfile]) -> ScoreBreakdown:
    """Full, deterministic eligibility breakdown for one tender."""
    if profile is None or profile.is_empty():
        return ScoreBreakdown(overall_score=NEUTRAL_SCORE, criteria=[])

    corpus = " ".join([
        tender.title or "",
        tender.description or "",
        tender.requirements.as_text(),
    ])

    criteria = [_turnover(tender, profile)]
    if profile.business_sectors:
        criteria.append(_sectors(tender, profile))
    if profile.project_types:
        criteria.append(_project_types(tender, profile, corpus))
    if profile.certifications:
        criteria.append(_certifications(tender, profile, corpus))

    mean = sum(c.score for c in criteria) / len(criteria)
    overall = min(max(round_half_up(mean), 0), 100)
    return ScoreBreakdown(overall_score=overall, criteria=criteria)


def score_tender(tender: TenderRecord, profile: Optional[CompanyProfile]) -> TenderRecord:
    """Return a copy of the tender with a freshly computed score attached."""
    return replace(tender, score=score(tender, profile))


def rescore_all(store, profile: Optional[CompanyProfile]) -> int:
    """
    Recompute every stored tender's breakdown — run whenever the profile
    changes. Returns the number of tenders updated.
    """
    tenders = store.list()
    logger.info("Rescoring %d tender(s) …", len(tenders))
    updated = failed = 0
    for tender in tenders:
        try:
            store.update(tender.id, score=score(tender, profile))
            updated += 1
        except Exception as exc:
            failed += 1
            logger.error("✗  Could not rescore %r: %s", tender.title[:50], exc)
    logger.info("Rescore complete: %d updated, %d failed.", updated, failed)
    return updated


def rank_tenders(tenders: List[TenderRecord], min_score: int = 0) -> List[TenderRecord]:
    """
    Tenders at or above min_score, best first; ties broken by the nearest
    deadline. Unscored tenders count as the neutral score.
    """
    def overall(t: TenderRecord) -> int:
        return t.overall_score if t.overall_score is not None else NEUTRAL_SCORE

    kept = [t for t in tenders if overall(t) >= min_score]
    kept.sort(key=lambda t: (-overall(t), t.deadline or date.max))
    logger.info("Ranking: %d/%d tenders kept (min_score=%d).", len(kept), len(tenders), min_score)
    return kept
