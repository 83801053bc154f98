"""Fuzzy matching of a query identity against a catalog of known people."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from core.config import DEFAULT_CONFIG, MatchingConfig
from core.models import Person, PersonAlias
from resolution.tokens import (
    best_token_similarity,
    domain_similarity,
    name_tokens,
    normalize_name,
    similarity,
)


class MatchType(str, Enum):
    """Strategy that produced a candidate's score, in priority order."""
    EXACT_EMAIL = "exact_email"
    EMAIL_DOMAIN = "email_domain"
    EXACT_NAME = "exact_name"
    FUZZY_NAME = "fuzzy_name"
    ALIAS = "alias"


@dataclass(frozen=True)
class MatchQuery:
    """Identity being looked up. Both fields are optional."""

    name: str | None = None
    email: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "MatchQuery":
        name = payload.get("display_name") or payload.get("name")
        email = payload.get("email")
        return cls(
            name=str(name) if name else None,
            email=str(email).strip().lower() if email else None,
        )


@dataclass(frozen=True)
class MatchCandidate:
    """Known identity offered to the matcher."""

    id: str
    name: str
    email: str | None = None
    aliases: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "MatchCandidate":
        """Create a MatchCandidate from a plain mapping."""
        email = payload.get("email")
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or ""),
            email=str(email).strip().lower() if email else None,
            aliases=tuple(str(item) for item in payload.get("aliases", []) if item),
        )

    @classmethod
    def from_person(cls, person: Person, aliases: Iterable[PersonAlias] = ()) -> "MatchCandidate":
        """
        Candidate for a stored person.

        The primary email is the candidate email. Alias names, secondary
        emails and learned alias emails are all offered as aliases.
        """
        aliases = list(aliases)
        values = [
            *person.aliases,
            *(alias.alias_name for alias in aliases),
            *person.emails[1:],
            *(alias.alias_email for alias in aliases),
        ]
        names: list[str] = []
        for value in values:
            if value and value not in names:
                names.append(value)
        return cls(id=person.id, name=person.name, email=person.primary_email, aliases=tuple(names))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "aliases": list(self.aliases),
        }


@dataclass(frozen=True)
class FuzzyMatch:
    """One ranked match."""

    candidate: MatchCandidate
    score: float
    match_type: MatchType
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "candidate": self.candidate.to_dict(),
            "score": round(self.score, 4),
            "match_type": self.match_type.value,
            "details": self.details,
        }


def name_match_score(
    query_name: str | None,
    candidate_name: str | None,
    candidate_aliases: Iterable[str] = (),
    config: MatchingConfig | None = None,
) -> float:
    """
    Best token similarity between a query name and a candidate's name/aliases.

    Two-part names whose first parts are close and last parts are similar are
    boosted to at least the average of those two part scores.
    """
    config = config or DEFAULT_CONFIG.matching
    query_tokens = name_tokens(query_name)
    if not query_tokens:
        return 0.0

    best = best_token_similarity(query_tokens, name_tokens(candidate_name))
    for alias in candidate_aliases:
        if best == 1.0:
            break
        best = max(best, best_token_similarity(query_tokens, name_tokens(alias)))

    query_parts = normalize_name(query_name).split()
    candidate_parts = normalize_name(candidate_name).split()
    if len(query_parts) >= 2 and len(candidate_parts) >= 2:
        first = similarity(query_parts[0], candidate_parts[0])
        last = similarity(query_parts[-1], candidate_parts[-1])
        if first > config.boost_first_floor and last > config.boost_last_floor:
            best = max(best, (first + last) / 2)

    return best


def score_candidate(
    query: MatchQuery,
    candidate: MatchCandidate,
    config: MatchingConfig | None = None,
) -> FuzzyMatch:
    """
    Score one candidate; keep the best step, earlier steps winning ties.

    Step order: exact email, email domain, exact name, fuzzy name/alias.
    """
    config = config or DEFAULT_CONFIG.matching
    query_email = (query.email or "").strip().lower()
    candidate_email = (candidate.email or "").strip().lower()

    # Step 1: exact email is the highest possible score.
    if query_email and candidate_email and query_email == candidate_email:
        return FuzzyMatch(candidate, 1.0, MatchType.EXACT_EMAIL, "Exact email match")

    best_score = 0.0
    match_type = MatchType.FUZZY_NAME
    details = ""

    # Step 2: similar email domains.
    if query_email and candidate_email:
        domain_score = domain_similarity(query_email, candidate_email)
        if domain_score > config.domain_similarity_floor:
            best_score = domain_score * config.domain_weight
            match_type = MatchType.EMAIL_DOMAIN
            details = "Same email domain" if domain_score == 1.0 else "Similar email domain"

    normalized_query = normalize_name(query.name)
    if normalized_query:
        # Step 3: exact normalized name.
        if normalized_query == normalize_name(candidate.name) and config.exact_name_score > best_score:
            best_score = config.exact_name_score
            match_type = MatchType.EXACT_NAME
            details = "Exact name match"

        # Step 4: token similarity over name and aliases.
        name_score = name_match_score(query.name, candidate.name, candidate.aliases, config)
        if name_score > best_score:
            best_score = name_score
            match_type = MatchType.ALIAS if name_score > config.alias_type_floor else MatchType.FUZZY_NAME
            details = f"Name similarity: {name_score * 100:.1f}%"

    return FuzzyMatch(candidate, best_score, match_type, details)


def find_best_matches(
    query: MatchQuery | Mapping[str, Any],
    candidates: Iterable[MatchCandidate | Mapping[str, Any]],
    threshold: float | None = None,
    config: MatchingConfig | None = None,
) -> list[FuzzyMatch]:
    """
    Rank candidates for a query, dropping those scoring below `threshold`.

    Every candidate is evaluated independently. Results are sorted by score
    descending; at equal scores exact-email matches come first, otherwise
    candidate order is preserved.
    """
    config = config or DEFAULT_CONFIG.matching
    if threshold is None:
        threshold = config.general_threshold
    if not isinstance(query, MatchQuery):
        query = MatchQuery.from_mapping(query)

    matches: list[FuzzyMatch] = []
    for item in candidates:
        candidate = item if isinstance(item, MatchCandidate) else MatchCandidate.from_mapping(item)
        match = score_candidate(query, candidate, config)
        if match.score > 0.0 and match.score >= threshold:
            matches.append(match)

    matches.sort(key=lambda item: (-item.score, item.match_type is not MatchType.EXACT_EMAIL))
    return matches
