"""
Multi-signal confidence scoring for resolved identities.

A score is built from four facets:
- identity: how sure we are this is the right person
- completeness: how much we know about them
- freshness: how recent the data is
- reliability: how trustworthy the signals are

Facets combine into one weighted final score. Every contributing rule leaves a
human-readable factor; weak spots leave a risk flag.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from core.config import DEFAULT_CONFIG, ConfidenceBonuses, ScoringWeights, SufficiencyThresholds
from core.models import Person

RISK_LOW_NAME_SIMILARITY = "Low name similarity"
RISK_OLD_DATA = "Old data"
RISK_WEAK_SIGNALS = "Weak identification signals"
RISK_VERY_LOW_CONFIDENCE = "Very low confidence"
RISK_LOW_CONFIDENCE = "Low confidence"


class UseCase(str, Enum):
    """Downstream consumers with their own sufficiency thresholds."""
    BRIEF_GENERATION = "brief_generation"
    AI_ANALYSIS = "ai_analysis"
    CONTACT_MERGE = "contact_merge"
    DISPLAY_ONLY = "display_only"


@dataclass(frozen=True)
class ContextualClues:
    title_match: bool = False
    company_match: bool = False
    slack_handle_match: bool = False


@dataclass(frozen=True)
class ConfidenceSignals:
    """Raw evidence gathered while resolving one attendee."""

    email_match: bool = False
    name_match_score: float = 0.0
    domain_match: bool = False
    alias_match: bool = False
    interaction_history: int = 0
    manual_verification: bool = False
    time_decay: float = 0.0
    contextual_clues: ContextualClues = field(default_factory=ContextualClues)


@dataclass(frozen=True)
class ConfidenceBreakdown:
    identity: float
    completeness: float
    freshness: float
    reliability: float

    def to_dict(self) -> dict[str, float]:
        return {
            "identity": self.identity,
            "completeness": self.completeness,
            "freshness": self.freshness,
            "reliability": self.reliability,
        }


@dataclass(frozen=True)
class ConfidenceResult:
    final_score: float
    breakdown: ConfidenceBreakdown
    factors: list[str]
    risk_flags: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_score": self.final_score,
            "breakdown": self.breakdown.to_dict(),
            "factors": list(self.factors),
            "risk_flags": list(self.risk_flags),
        }


def _round2(value: float) -> float:
    """Round half up to two decimals."""
    return math.floor(value * 100 + 0.5) / 100


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _identity_facet(
    signals: ConfidenceSignals,
    bonuses: ConfidenceBonuses,
    factors: list[str],
    risk_flags: list[str],
) -> float:
    score = 0.0

    if signals.email_match:
        score += bonuses.email_match
        factors.append("Exact email match")
    elif signals.domain_match:
        score += bonuses.domain_match
        factors.append("Same email domain")

    name_score = signals.name_match_score
    if name_score > bonuses.strong_name_floor:
        score += bonuses.strong_name
        factors.append("Exact name match")
    elif name_score > bonuses.good_name_floor:
        score += bonuses.good_name
        factors.append("Strong name similarity")
    elif name_score > bonuses.partial_name_floor:
        score += bonuses.partial_name
        factors.append("Partial name match")
        if name_score < bonuses.low_name_similarity_below:
            risk_flags.append(RISK_LOW_NAME_SIMILARITY)

    if signals.alias_match:
        score += bonuses.alias_match
        factors.append("Known alias match")

    clues = signals.contextual_clues
    if clues.title_match:
        score += bonuses.title_match
        factors.append("Job title matches")
    if clues.company_match:
        score += bonuses.company_match
        factors.append("Company context matches")
    if clues.slack_handle_match:
        score += bonuses.slack_handle
        factors.append("Slack handle matches")

    if signals.manual_verification:
        score = min(1.0, score + bonuses.manual_verification)
        # A human-confirmed exact email leaves no identity doubt.
        if signals.email_match:
            score = 1.0
        factors.append("Manually verified")

    return min(1.0, score)


def _completeness_facet(person: Person | None, bonuses: ConfidenceBonuses, factors: list[str]) -> float:
    score = bonuses.completeness_base
    if person is not None:
        if len(person.emails) > 1:
            score += bonuses.multiple_emails
            factors.append("Multiple email addresses")
        if person.title:
            score += bonuses.known_title
            factors.append("Job title known")
        if person.company_id:
            score += bonuses.company_affiliation
            factors.append("Company affiliation")
        if person.linkedin_url:
            score += bonuses.profile_link
            factors.append("External profile link")
        if person.slack_handles:
            score += bonuses.messaging_handles
            factors.append("Messaging handle(s)")
        if person.notable_facts:
            score += bonuses.notable_facts
            factors.append("Notable facts recorded")
        if person.aliases:
            score += bonuses.known_aliases
            factors.append("Known aliases")
    return min(1.0, score)


def _freshness_facet(
    signals: ConfidenceSignals,
    bonuses: ConfidenceBonuses,
    factors: list[str],
    risk_flags: list[str],
) -> float:
    score = bonuses.freshness_base
    if signals.time_decay > bonuses.recent_decay_floor:
        score += bonuses.recent_interaction
        factors.append("Recent interaction")
    elif signals.time_decay > bonuses.moderate_decay_floor:
        score += bonuses.moderate_interaction
        factors.append("Moderately recent activity")
    elif signals.time_decay < bonuses.stale_decay_below:
        score -= bonuses.stale_penalty
        risk_flags.append(RISK_OLD_DATA)

    if signals.interaction_history > bonuses.strong_history_above:
        score += bonuses.strong_history
        factors.append("Strong interaction history")
    elif signals.interaction_history > bonuses.some_history_above:
        score += bonuses.some_history
        factors.append("Some interaction history")
    return _clamp(score)


def _reliability_facet(
    signals: ConfidenceSignals,
    bonuses: ConfidenceBonuses,
    factors: list[str],
    risk_flags: list[str],
) -> float:
    score = bonuses.reliability_base
    if signals.manual_verification:
        score += bonuses.human_verified
        factors.append("Human verified")
    if signals.email_match:
        score += bonuses.email_verification
        factors.append("Email verification")
    if signals.interaction_history > 0:
        score += bonuses.historical_interactions
        factors.append("Historical interactions")
    if signals.contextual_clues.company_match and signals.domain_match:
        score += bonuses.company_context_verified
        factors.append("Company context verified")
    if not signals.email_match and signals.name_match_score < bonuses.weak_name_below:
        score -= bonuses.weak_signal_penalty
        risk_flags.append(RISK_WEAK_SIGNALS)
    return _clamp(score)


def calculate_confidence(
    signals: ConfidenceSignals,
    person: Person | None = None,
    weights: ScoringWeights | None = None,
    bonuses: ConfidenceBonuses | None = None,
) -> ConfidenceResult:
    """Score resolution signals into a weighted final score with a breakdown."""
    weights = weights or DEFAULT_CONFIG.weights
    bonuses = bonuses or DEFAULT_CONFIG.bonuses
    factors: list[str] = []
    risk_flags: list[str] = []

    identity = _identity_facet(signals, bonuses, factors, risk_flags)
    completeness = _completeness_facet(person, bonuses, factors)
    freshness = _freshness_facet(signals, bonuses, factors, risk_flags)
    reliability = _reliability_facet(signals, bonuses, factors, risk_flags)

    final_score = (
        identity * weights.identity
        + reliability * weights.reliability
        + completeness * weights.completeness
        + freshness * weights.freshness
    )

    if final_score < bonuses.very_low_confidence_below:
        risk_flags.append(RISK_VERY_LOW_CONFIDENCE)
    elif final_score < bonuses.low_confidence_below:
        risk_flags.append(RISK_LOW_CONFIDENCE)

    return ConfidenceResult(
        final_score=_round2(final_score),
        breakdown=ConfidenceBreakdown(
            identity=_round2(identity),
            completeness=_round2(completeness),
            freshness=_round2(freshness),
            reliability=_round2(reliability),
        ),
        factors=_dedupe(factors),
        risk_flags=_dedupe(risk_flags),
    )


def calculate_time_decay(
    last_interaction: date | datetime | None,
    now: datetime | None = None,
) -> float:
    """Recency factor of the last interaction; 0.3 when there is none."""
    if last_interaction is None:
        return 0.3

    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    if isinstance(last_interaction, datetime):
        moment = last_interaction
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
    else:
        moment = datetime(last_interaction.year, last_interaction.month, last_interaction.day, tzinfo=UTC)

    days_since = (now - moment).total_seconds() / 86400
    if days_since <= 7:
        return 1.0
    if days_since <= 30:
        return 0.8
    if days_since <= 90:
        return 0.6
    if days_since <= 180:
        return 0.4
    if days_since <= 365:
        return 0.2
    return 0.1


def is_confidence_sufficient(
    score: float,
    use_case: UseCase | str,
    thresholds: SufficiencyThresholds | None = None,
) -> bool:
    """Whether a final score clears the configured bar for a use case."""
    thresholds = thresholds or DEFAULT_CONFIG.sufficiency
    use_case = UseCase(use_case)
    return score >= getattr(thresholds, use_case.value)


def summarize_confidence(result: ConfidenceResult) -> str:
    """Short label for display, e.g. "High (78%) - Exact email match, Human verified"."""
    score = result.final_score
    percent = f"{score * 100:.0f}%"
    if score >= 0.9:
        return f"Very High ({percent}) - {', '.join(result.factors[:2])}"
    if score >= 0.7:
        return f"High ({percent}) - {', '.join(result.factors[:2])}"
    if score >= 0.5:
        return f"Medium ({percent}) - {''.join(result.factors[:1])}"
    if score >= 0.3:
        return f"Low ({percent}) - Limited verification"
    return f"Very Low ({percent}) - Requires review"
