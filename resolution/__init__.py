"""Attendee-resolution utilities."""

from resolution.tokens import (
    company_name_from_domain,
    domain_similarity,
    email_domain,
    extract_name_from_email,
    levenshtein_distance,
    name_tokens,
    normalize_name,
    similarity,
)
from resolution.matching import (
    FuzzyMatch,
    MatchCandidate,
    MatchQuery,
    MatchType,
    find_best_matches,
    name_match_score,
    score_candidate,
)
from resolution.confidence import (
    ConfidenceBreakdown,
    ConfidenceResult,
    ConfidenceSignals,
    ContextualClues,
    UseCase,
    calculate_confidence,
    calculate_time_decay,
    is_confidence_sufficient,
    summarize_confidence,
)
from resolution.resolver import (
    AttendeeResolver,
    InvalidAttendeeError,
    ResolutionError,
    StoreAvailability,
)

__all__ = [
    "normalize_name",
    "name_tokens",
    "levenshtein_distance",
    "similarity",
    "email_domain",
    "domain_similarity",
    "company_name_from_domain",
    "extract_name_from_email",
    "MatchType",
    "MatchQuery",
    "MatchCandidate",
    "FuzzyMatch",
    "name_match_score",
    "score_candidate",
    "find_best_matches",
    "UseCase",
    "ContextualClues",
    "ConfidenceSignals",
    "ConfidenceBreakdown",
    "ConfidenceResult",
    "calculate_confidence",
    "calculate_time_decay",
    "is_confidence_sufficient",
    "summarize_confidence",
    "AttendeeResolver",
    "StoreAvailability",
    "InvalidAttendeeError",
    "ResolutionError",
]
