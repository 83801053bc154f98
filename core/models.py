"""
Core Pydantic models for the attendee resolution engine.

Design principles:
- Every persisted record is explicitly typed and validated
- Emails and domains are normalized on the way in (lowercase, trimmed)
- Manual overrides are immutable once created
- Resolution results are not persisted; they carry their own explanation
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _normalize_email(value: str) -> str:
    return value.strip().lower()


# ============================================================================
# Enums
# ============================================================================

class PersonType(str, Enum):
    """Which side of the table a person sits on."""
    INTERNAL = "internal"
    EXTERNAL = "external"
    UNKNOWN = "unknown"


class EntityStatus(str, Enum):
    """Lifecycle of a person record. Records are never hard-deleted."""
    ACTIVE = "active"
    MERGED = "merged"
    DUPLICATE = "duplicate"
    ARCHIVED = "archived"


class CompanyType(str, Enum):
    """Relationship of a company to us."""
    INTERNAL = "internal"
    CUSTOMER = "customer"
    PARTNER = "partner"
    VENDOR = "vendor"
    INVESTOR = "investor"


class OverrideType(str, Enum):
    """Kind of human-asserted correction."""
    PERSON_MERGE = "person_merge"
    PERSON_SPLIT = "person_split"
    COMPANY_ASSIGNMENT = "company_assignment"
    ALIAS_LINK = "alias_link"


class ResolutionMethod(str, Enum):
    """How an attendee was bound (or not) to a person."""
    EXACT_EMAIL = "exact_email"
    DOMAIN_MATCH = "domain_match"
    MANUAL_OVERRIDE = "manual_override"
    FUZZY_NAME = "fuzzy_name"
    ALIAS_MATCH = "alias_match"
    INTERNAL_INFERENCE = "internal_inference"
    UNRESOLVED = "unresolved"


# ============================================================================
# Company
# ============================================================================

class CompanyDraft(BaseModel):
    """Payload for creating a company (id and timestamps assigned by the store)."""
    name: str
    domain: Optional[str] = None  # join key from email domains
    description: Optional[str] = None
    industry: Optional[str] = None
    size_category: Optional[str] = None  # startup, growth, enterprise, ...
    company_type: CompanyType = CompanyType.CUSTOMER
    notable_facts: List[str] = Field(default_factory=list)
    parent_company_id: Optional[str] = None
    website_url: Optional[str] = None

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class Company(CompanyDraft):
    """
    Organizational record.

    Invariant: `domain`, when present, is unique across the store.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ============================================================================
# Person
# ============================================================================

class PersonDraft(BaseModel):
    """
    Person in draft state (before storage).

    Same as Person but without id, interaction bookkeeping or timestamps.
    """
    name: str
    emails: List[str]
    company_id: Optional[str] = None
    title: Optional[str] = None
    slack_handles: List[str] = Field(default_factory=list)
    linkedin_url: Optional[str] = None  # external profile link
    notable_facts: List[str] = Field(default_factory=list)
    aliases: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    person_type: PersonType = PersonType.EXTERNAL

    @field_validator("emails")
    @classmethod
    def normalize_emails(cls, v: List[str]) -> List[str]:
        """Lowercase, trim and dedupe while keeping order (first = primary)."""
        seen: list[str] = []
        for item in v:
            email = _normalize_email(item)
            if email and email not in seen:
                seen.append(email)
        if not seen:
            raise ValueError("at least one email is required")
        return seen

    @property
    def primary_email(self) -> str:
        return self.emails[0]


class Person(PersonDraft):
    """
    Canonical person identity.

    Invariant: each email maps to at most one active Person in the store.

    Example:
      name = "Sarah Chen"
      emails = ["sarah@insightpartners.com", "s.chen@insight.com"]
      confidence = 0.75  # certainty at creation / last update
    """
    id: str = Field(default_factory=lambda: str(uuid4()))

    entity_status: EntityStatus = EntityStatus.ACTIVE
    last_interaction: Optional[datetime] = None
    interaction_count: int = Field(default=0, ge=0)

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ============================================================================
# Alias / Override
# ============================================================================

class PersonAlias(BaseModel):
    """
    A learned alternate identity for a person.

    Invariant: one record per (person, alias name, alias email).
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    person_id: str

    alias_name: str
    alias_email: Optional[str] = None
    context: str = "calendar"  # which channel produced it: calendar, email, slack, manual

    confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    verified: bool = False  # human-verified vs auto-detected

    created_at: datetime = Field(default_factory=_utc_now)

    @field_validator("alias_email")
    @classmethod
    def normalize_alias_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return _normalize_email(v) or None

    @property
    def key(self) -> str:
        """Case-insensitive identity of this alias for a given person."""
        return alias_key(self.alias_name, self.alias_email)


def alias_key(alias_name: Optional[str], alias_email: Optional[str]) -> str:
    """Build the dedupe key shared by every store implementation."""
    name = " ".join((alias_name or "").strip().lower().split())
    email = (alias_email or "").strip().lower()
    return f"{name}|{email}"


class ManualOverride(BaseModel):
    """
    Human-asserted correction.

    Takes absolute precedence over automated resolution for `source_identifier`.
    Corrections are made by creating a newer override, never by editing one.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    override_type: OverrideType

    source_identifier: str  # raw email or name being overridden
    source_person_id: Optional[str] = None

    target_person_id: Optional[str] = None
    target_company_id: Optional[str] = None

    reason: Optional[str] = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    created_by: Optional[str] = None

    created_at: datetime = Field(default_factory=_utc_now)

    @field_validator("source_identifier")
    @classmethod
    def normalize_identifier(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("source_identifier must not be empty")
        return v


# ============================================================================
# Resolution I/O
# ============================================================================

class Attendee(BaseModel):
    """Raw (email, display name) pair from a calendar event."""
    email: str
    display_name: Optional[str] = None


class EntityResolutionResult(BaseModel):
    """
    Output of one resolution call. Not persisted.

    `assessment` is the confidence scorer's explanation for the bound person
    (absent for manual overrides and unbound results).
    """
    person: Optional[Person] = None
    company: Optional[Company] = None
    confidence: float = Field(ge=0.0, le=1.0)
    method: ResolutionMethod
    created_new_entity: bool = False
    assessment: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize into the result JSON shape (schemas/resolution_result.schema.json)."""
        person = None
        if self.person is not None:
            person = {
                "id": self.person.id,
                "name": self.person.name,
                "emails": list(self.person.emails),
                "company_id": self.person.company_id,
                "title": self.person.title,
                "person_type": self.person.person_type.value,
                "confidence": self.person.confidence,
                "interaction_count": self.person.interaction_count,
            }
        company = None
        if self.company is not None:
            company = {
                "id": self.company.id,
                "name": self.company.name,
                "domain": self.company.domain,
                "company_type": self.company.company_type.value,
            }
        return {
            "person": person,
            "company": company,
            "confidence": self.confidence,
            "method": self.method.value,
            "created_new_entity": self.created_new_entity,
            "assessment": self.assessment,
        }
