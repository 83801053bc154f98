"""
Profile store contract.

The resolver only talks to a ProfileStore. Implementations must:
- raise StoreUnavailableError for infrastructure failures (the resolver
  degrades to its fallback store)
- raise DuplicateRecordError when a uniqueness rule rejects a create
  (the resolver re-fetches the winner's record)
- enforce uniqueness themselves: one active person per email, one company per
  domain, one alias per (person, alias name, alias email)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from core.models import (
    Company,
    CompanyDraft,
    ManualOverride,
    Person,
    PersonAlias,
    PersonDraft,
)

T = TypeVar("T")


class StoreUnavailableError(RuntimeError):
    """The backing store cannot serve requests."""


class DuplicateRecordError(ValueError):
    """A create lost against a uniqueness constraint (usually a concurrent create)."""


# ============================================================================
# Result type for store calls
# ============================================================================

@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    reason: str
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return False


StoreResult = Union[Ok[T], Err]


# ============================================================================
# Store Interface
# ============================================================================

class ProfileStore(ABC):
    """Persistence of Person, Company, PersonAlias and ManualOverride records."""

    name: str = "store"

    @abstractmethod
    def find_person_by_email(self, email: str) -> Optional[Person]:
        """
        Find the active person known by `email` (case-insensitive).

        Matches any of the person's emails, then learned alias emails.
        """

    @abstractmethod
    def find_person_by_id(self, person_id: str) -> Optional[Person]:
        pass

    @abstractmethod
    def find_company_by_domain(self, domain: str) -> Optional[Company]:
        pass

    @abstractmethod
    def find_company_by_id(self, company_id: str) -> Optional[Company]:
        pass

    @abstractmethod
    def find_internal_company(self, marker: str) -> Optional[Company]:
        """Company of type internal, else one whose name contains `marker`."""

    @abstractmethod
    def find_override(self, identifier: str) -> Optional[ManualOverride]:
        """Most recent override whose source identifier equals `identifier`."""

    @abstractmethod
    def create_person(self, draft: PersonDraft) -> Person:
        """
        Insert a person.

        Raises:
            DuplicateRecordError: If any email already belongs to a person.
        """

    @abstractmethod
    def create_company(self, draft: CompanyDraft) -> Company:
        """
        Insert a company.

        Raises:
            DuplicateRecordError: If the domain is already taken.
        """

    @abstractmethod
    def create_alias(self, alias: PersonAlias) -> bool:
        """
        Record an alias once.

        Returns:
            True when inserted, False when the same alias already exists.
        """

    @abstractmethod
    def create_override(self, override: ManualOverride) -> ManualOverride:
        pass

    @abstractmethod
    def update_person_interaction(self, person_id: str) -> Optional[Person]:
        """Bump interaction count and last-interaction; return the refreshed person."""

    @abstractmethod
    def list_active_persons_with_aliases(self) -> list[tuple[Person, list[PersonAlias]]]:
        pass

    @abstractmethod
    def list_aliases(self, person_id: str) -> list[PersonAlias]:
        pass
