"""Core module: records, configuration and logging."""

from core.config import DEFAULT_CONFIG, ResolutionConfig
from core.models import (
    Attendee,
    Company,
    CompanyDraft,
    CompanyType,
    EntityResolutionResult,
    EntityStatus,
    ManualOverride,
    OverrideType,
    Person,
    PersonAlias,
    PersonDraft,
    PersonType,
    ResolutionMethod,
)

__all__ = [
    "Attendee",
    "Company",
    "CompanyDraft",
    "CompanyType",
    "EntityResolutionResult",
    "EntityStatus",
    "ManualOverride",
    "OverrideType",
    "Person",
    "PersonAlias",
    "PersonDraft",
    "PersonType",
    "ResolutionMethod",
    "ResolutionConfig",
    "DEFAULT_CONFIG",
]
