"""
Policy configuration for attendee resolution.

Every number here is an empirically chosen constant carried over for
compatibility with existing scores. None of them is derived; they are exposed
so that deployments can tune them explicitly instead of editing code.

The general-purpose matcher threshold (0.6) and the person-resolution
threshold (0.7) are deliberately separate settings.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import FrozenSet

from pydantic import BaseModel, Field, ValidationError, model_validator


PERSONAL_EMAIL_DOMAINS: FrozenSet[str] = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "icloud.com",
        "me.com",
        "mac.com",
        "aol.com",
        "protonmail.com",
        "fastmail.com",
        "hey.com",
    }
)
"""Consumer mail providers; their domains never imply a company."""


class MatchingConfig(BaseModel):
    """Fuzzy matcher knobs."""

    general_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    """Default cut-off for general-purpose matching."""

    person_resolution_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    """Cut-off used by the resolver when binding an attendee to a person."""

    domain_similarity_floor: float = Field(default=0.8, ge=0.0, le=1.0)
    """Domain similarity must exceed this to count as an email-domain match."""

    domain_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    """Email-domain matches contribute `domain_score * domain_weight`."""

    exact_name_score: float = Field(default=0.95, ge=0.0, le=1.0)

    alias_type_floor: float = Field(default=0.9, ge=0.0, le=1.0)
    """Name scores above this are labelled `alias`, otherwise `fuzzy_name`."""

    boost_first_floor: float = Field(default=0.8, ge=0.0, le=1.0)
    boost_last_floor: float = Field(default=0.6, ge=0.0, le=1.0)


class ScoringWeights(BaseModel):
    """Facet weights for the final confidence score."""

    identity: float = Field(default=0.4, ge=0.0, le=1.0)
    reliability: float = Field(default=0.3, ge=0.0, le=1.0)
    completeness: float = Field(default=0.2, ge=0.0, le=1.0)
    freshness: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def weights_sum_to_one(self) -> "ScoringWeights":
        total = self.identity + self.reliability + self.completeness + self.freshness
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"facet weights must sum to 1.0, got {total:.4f}")
        return self


class ConfidenceBonuses(BaseModel):
    """Per-rule bonuses, bases and cut-offs inside each confidence facet."""

    # Identity
    email_match: float = Field(default=0.5, ge=0.0, le=1.0)
    domain_match: float = Field(default=0.3, ge=0.0, le=1.0)
    strong_name: float = Field(default=0.4, ge=0.0, le=1.0)
    good_name: float = Field(default=0.25, ge=0.0, le=1.0)
    partial_name: float = Field(default=0.1, ge=0.0, le=1.0)
    alias_match: float = Field(default=0.2, ge=0.0, le=1.0)
    title_match: float = Field(default=0.1, ge=0.0, le=1.0)
    company_match: float = Field(default=0.15, ge=0.0, le=1.0)
    slack_handle: float = Field(default=0.1, ge=0.0, le=1.0)
    manual_verification: float = Field(default=0.3, ge=0.0, le=1.0)

    strong_name_floor: float = Field(default=0.9, ge=0.0, le=1.0)
    good_name_floor: float = Field(default=0.7, ge=0.0, le=1.0)
    partial_name_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    low_name_similarity_below: float = Field(default=0.6, ge=0.0, le=1.0)
    """Partial name matches under this also raise a low-similarity flag."""

    # Completeness
    completeness_base: float = Field(default=0.2, ge=0.0, le=1.0)
    multiple_emails: float = Field(default=0.1, ge=0.0, le=1.0)
    known_title: float = Field(default=0.2, ge=0.0, le=1.0)
    company_affiliation: float = Field(default=0.2, ge=0.0, le=1.0)
    profile_link: float = Field(default=0.15, ge=0.0, le=1.0)
    messaging_handles: float = Field(default=0.1, ge=0.0, le=1.0)
    notable_facts: float = Field(default=0.15, ge=0.0, le=1.0)
    known_aliases: float = Field(default=0.1, ge=0.0, le=1.0)

    # Freshness
    freshness_base: float = Field(default=0.5, ge=0.0, le=1.0)
    recent_decay_floor: float = Field(default=0.8, ge=0.0, le=1.0)
    recent_interaction: float = Field(default=0.3, ge=0.0, le=1.0)
    moderate_decay_floor: float = Field(default=0.5, ge=0.0, le=1.0)
    moderate_interaction: float = Field(default=0.2, ge=0.0, le=1.0)
    stale_decay_below: float = Field(default=0.2, ge=0.0, le=1.0)
    stale_penalty: float = Field(default=0.2, ge=0.0, le=1.0)
    strong_history_above: int = Field(default=5, ge=0)
    strong_history: float = Field(default=0.2, ge=0.0, le=1.0)
    some_history_above: int = Field(default=1, ge=0)
    some_history: float = Field(default=0.1, ge=0.0, le=1.0)

    # Reliability
    reliability_base: float = Field(default=0.4, ge=0.0, le=1.0)
    human_verified: float = Field(default=0.4, ge=0.0, le=1.0)
    email_verification: float = Field(default=0.3, ge=0.0, le=1.0)
    historical_interactions: float = Field(default=0.2, ge=0.0, le=1.0)
    company_context_verified: float = Field(default=0.1, ge=0.0, le=1.0)
    weak_name_below: float = Field(default=0.7, ge=0.0, le=1.0)
    weak_signal_penalty: float = Field(default=0.2, ge=0.0, le=1.0)

    # Final score flags
    very_low_confidence_below: float = Field(default=0.3, ge=0.0, le=1.0)
    low_confidence_below: float = Field(default=0.5, ge=0.0, le=1.0)


class SufficiencyThresholds(BaseModel):
    """Minimum final score required per downstream use case."""

    brief_generation: float = Field(default=0.6, ge=0.0, le=1.0)
    ai_analysis: float = Field(default=0.5, ge=0.0, le=1.0)
    contact_merge: float = Field(default=0.8, ge=0.0, le=1.0)
    display_only: float = Field(default=0.3, ge=0.0, le=1.0)


class ResolutionConfig(BaseModel):
    """Complete resolver configuration."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    bonuses: ConfidenceBonuses = Field(default_factory=ConfidenceBonuses)
    sufficiency: SufficiencyThresholds = Field(default_factory=SufficiencyThresholds)

    personal_email_domains: FrozenSet[str] = PERSONAL_EMAIL_DOMAINS

    internal_domain_marker: str = Field(default="tribe", min_length=1)
    """Email domains containing this string belong to our own organization."""

    domain_match_confidence: float = Field(default=0.75, ge=0.0, le=1.0)
    unresolved_confidence: float = Field(default=0.25, ge=0.0, le=1.0)
    internal_confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    alias_context: str = "calendar"
    """Context tag written on aliases learned during resolution."""

    max_workers: int = Field(default=4, ge=1)
    """Thread pool size for batch resolution."""

    @model_validator(mode="after")
    def normalize_domains(self) -> "ResolutionConfig":
        self.personal_email_domains = frozenset(
            item.strip().lower() for item in self.personal_email_domains if item.strip()
        )
        self.internal_domain_marker = self.internal_domain_marker.strip().lower()
        return self

    def is_personal_domain(self, domain: str) -> bool:
        return domain.strip().lower() in self.personal_email_domains

    @classmethod
    def from_file(cls, path: str | Path) -> "ResolutionConfig":
        """
        Load configuration from a JSON file; missing keys keep their defaults.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid JSON or violates a constraint.
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid config JSON in {config_path}: {exc}") from exc
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Invalid config in {config_path}: {exc}") from exc


# Validate at module import time
DEFAULT_CONFIG = ResolutionConfig()
