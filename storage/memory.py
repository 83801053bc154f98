"""In-process profile store, also used as the resolver's degrade fallback."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Optional

from core.models import (
    Company,
    CompanyDraft,
    CompanyType,
    EntityStatus,
    ManualOverride,
    Person,
    PersonAlias,
    PersonDraft,
    alias_key,
)
from storage.base import DuplicateRecordError, ProfileStore


def _ranking_key(person: Person) -> tuple[float, float]:
    """Higher confidence first, then most recent interaction (never-met last)."""
    last = person.last_interaction.timestamp() if person.last_interaction else float("-inf")
    return (-person.confidence, -last)


class InMemoryProfileStore(ProfileStore):
    """Dict-backed store; one lock serializes every read-check-write sequence."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._persons: dict[str, Person] = {}
        self._email_index: dict[str, str] = {}
        self._companies: dict[str, Company] = {}
        self._domain_index: dict[str, str] = {}
        self._aliases: dict[str, list[PersonAlias]] = {}
        self._overrides: list[ManualOverride] = []

    def find_person_by_email(self, email: str) -> Optional[Person]:
        email = email.strip().lower()
        with self._lock:
            person_id = self._email_index.get(email)
            person = self._persons.get(person_id) if person_id else None
            if person is not None and person.entity_status == EntityStatus.ACTIVE:
                return person.model_copy(deep=True)

            alias_owners = [
                self._persons[owner_id]
                for owner_id, aliases in self._aliases.items()
                if any(alias.alias_email == email for alias in aliases)
                and self._persons[owner_id].entity_status == EntityStatus.ACTIVE
            ]
            if not alias_owners:
                return None
            return min(alias_owners, key=_ranking_key).model_copy(deep=True)

    def find_person_by_id(self, person_id: str) -> Optional[Person]:
        with self._lock:
            person = self._persons.get(person_id)
            return person.model_copy(deep=True) if person else None

    def find_company_by_domain(self, domain: str) -> Optional[Company]:
        with self._lock:
            company_id = self._domain_index.get(domain.strip().lower())
            return self._companies[company_id].model_copy(deep=True) if company_id else None

    def find_company_by_id(self, company_id: str) -> Optional[Company]:
        with self._lock:
            company = self._companies.get(company_id)
            return company.model_copy(deep=True) if company else None

    def find_internal_company(self, marker: str) -> Optional[Company]:
        marker = marker.strip().lower()
        with self._lock:
            companies = list(self._companies.values())
        for company in companies:
            if company.company_type == CompanyType.INTERNAL:
                return company.model_copy(deep=True)
        for company in companies:
            if marker and marker in company.name.lower():
                return company.model_copy(deep=True)
        return None

    def find_override(self, identifier: str) -> Optional[ManualOverride]:
        identifier = identifier.strip().lower()
        with self._lock:
            matches = [item for item in self._overrides if item.source_identifier == identifier]
        if not matches:
            return None
        # max() keeps the first of equal timestamps; iterate newest-inserted first
        return max(reversed(matches), key=lambda item: item.created_at)

    def create_person(self, draft: PersonDraft) -> Person:
        person = Person(**draft.model_dump())
        with self._lock:
            taken = [email for email in person.emails if email in self._email_index]
            if taken:
                raise DuplicateRecordError(f"Email already assigned: {', '.join(taken)}")
            self._persons[person.id] = person
            for email in person.emails:
                self._email_index[email] = person.id
            return person.model_copy(deep=True)

    def create_company(self, draft: CompanyDraft) -> Company:
        company = Company(**draft.model_dump())
        with self._lock:
            if company.domain and company.domain in self._domain_index:
                raise DuplicateRecordError(f"Company domain already assigned: {company.domain}")
            self._companies[company.id] = company
            if company.domain:
                self._domain_index[company.domain] = company.id
            return company.model_copy(deep=True)

    def create_alias(self, alias: PersonAlias) -> bool:
        with self._lock:
            person = self._persons.get(alias.person_id)
            if person is None:
                raise ValueError(f"Cannot create alias: person not found: {alias.person_id}")
            existing = self._aliases.setdefault(alias.person_id, [])
            if any(item.key == alias.key for item in existing):
                return False
            existing.append(alias)
            if alias.alias_name and alias.alias_name not in person.aliases:
                person.aliases.append(alias.alias_name)
                person.updated_at = datetime.now(UTC)
            return True

    def create_override(self, override: ManualOverride) -> ManualOverride:
        with self._lock:
            self._overrides.append(override)
        return override

    def update_person_interaction(self, person_id: str) -> Optional[Person]:
        now = datetime.now(UTC)
        with self._lock:
            person = self._persons.get(person_id)
            if person is None:
                return None
            person.interaction_count += 1
            person.last_interaction = now
            person.updated_at = now
            return person.model_copy(deep=True)

    def list_active_persons_with_aliases(self) -> list[tuple[Person, list[PersonAlias]]]:
        with self._lock:
            active = [
                person for person in self._persons.values()
                if person.entity_status == EntityStatus.ACTIVE
            ]
            active.sort(key=_ranking_key)
            return [
                (
                    person.model_copy(deep=True),
                    [alias.model_copy() for alias in self._aliases.get(person.id, [])],
                )
                for person in active
            ]

    def list_aliases(self, person_id: str) -> list[PersonAlias]:
        with self._lock:
            return [alias.model_copy() for alias in self._aliases.get(person_id, [])]
