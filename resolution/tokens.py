"""Name tokens, edit-distance similarity and email helpers."""

from __future__ import annotations

import re
from typing import Any, Iterable

_PUNCTUATION = re.compile(r"[^\w\s]|_")


def normalize_name(value: Any) -> str:
    """Lowercase, strip punctuation and collapse whitespace; '' for non-strings."""
    if not isinstance(value, str):
        return ""
    cleaned = _PUNCTUATION.sub("", value.lower())
    return " ".join(cleaned.split())


def name_tokens(name: Any) -> set[str]:
    """
    Derive comparison tokens for a free-text name.

    For "John Smith" this yields the full name, each part, the abbreviations
    "john s", "j smith", "j s" and the initials string. Never raises.
    """
    normalized = normalize_name(name)
    if not normalized:
        return set()

    tokens = {normalized}
    parts = [part for part in normalized.split() if len(part) > 1]
    tokens.update(parts)

    if len(parts) >= 2:
        first, last = parts[0], parts[-1]
        tokens.add(f"{first} {last[0]}")
        tokens.add(f"{first[0]} {last}")
        tokens.add(f"{first[0]} {last[0]}")
        tokens.add(" ".join(part[0] for part in parts))
    return tokens


def levenshtein_distance(left: str, right: str) -> int:
    """Compute classic Levenshtein edit distance in O(m*n)."""
    if left == right:
        return 0
    if not left:
        return len(right)
    if not right:
        return len(left)

    previous = list(range(len(right) + 1))
    for i, left_ch in enumerate(left, start=1):
        current = [i]
        for j, right_ch in enumerate(right, start=1):
            insertion = current[j - 1] + 1
            deletion = previous[j] + 1
            substitution = previous[j - 1] + (0 if left_ch == right_ch else 1)
            current.append(min(insertion, deletion, substitution))
        previous = current
    return previous[-1]


def similarity(left: str, right: str) -> float:
    """
    Case-insensitive similarity in [0, 1]: 1 - distance / max length.

    Two empty strings are identical (1.0); one empty string scores 0.0.
    """
    left = (left or "").lower()
    right = (right or "").lower()
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0
    return 1.0 - levenshtein_distance(left, right) / max(len(left), len(right))


def best_token_similarity(query_tokens: Iterable[str], candidate_tokens: Iterable[str]) -> float:
    """Maximum pairwise similarity across two token sets."""
    candidate_list = list(candidate_tokens)
    best = 0.0
    for query_token in query_tokens:
        for candidate_token in candidate_list:
            best = max(best, similarity(query_token, candidate_token))
            if best == 1.0:
                return best
    return best


# ============================================================================
# Email helpers
# ============================================================================

def email_domain(email: str | None) -> str:
    """Lowercase domain part of an email; '' when missing."""
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().lower()


def domain_similarity(left_email: str | None, right_email: str | None) -> float:
    """Similarity of two email domains; 0.0 when either lacks a domain."""
    left = email_domain(left_email)
    right = email_domain(right_email)
    if not left or not right:
        return 0.0
    return similarity(left, right)


def company_name_from_domain(domain: str) -> str | None:
    """
    Synthesize a company name from a domain.

    "insightpartners.com" -> "Insightpartners", "scale-venture.io" -> "Scale Venture".
    Returns None for domains without a TLD.
    """
    labels = [label for label in domain.strip().lower().split(".") if label]
    if len(labels) < 2:
        return None
    segments = [segment for segment in re.split(r"[-_]", labels[0]) if segment]
    if not segments:
        return None
    return " ".join(segment[0].upper() + segment[1:] for segment in segments)


def extract_name_from_email(email: str) -> str:
    """Best-effort display name from the local part: "jane.doe@x" -> "Jane Doe"."""
    local_part = email.split("@", 1)[0].strip()
    segments = [segment for segment in local_part.split(".") if segment]
    if not segments:
        return local_part
    return " ".join(segment[0].upper() + segment[1:] for segment in segments)
