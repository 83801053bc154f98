"""
Attendee resolution state machine.

Steps, first success wins:
override -> exact email -> fuzzy name -> domain inference -> new person.

Store failures are not exceptions at this level: every store call comes back
as Ok/Err. One resolution runs every step against a single store. An Err on
the primary store flips the resolver (once) onto its in-memory fallback and
the whole step sequence starts over there, so ids read from one store are
never written into the other.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar
from uuid import uuid4

from core.config import DEFAULT_CONFIG, ResolutionConfig
from core.models import (
    Attendee,
    Company,
    CompanyDraft,
    CompanyType,
    EntityResolutionResult,
    Person,
    PersonAlias,
    PersonDraft,
    PersonType,
    ResolutionMethod,
)
from core.structured_logging import emit_json_event
from resolution.confidence import (
    ConfidenceSignals,
    ContextualClues,
    calculate_confidence,
    calculate_time_decay,
)
from resolution.matching import MatchCandidate, MatchQuery, MatchType, find_best_matches, name_match_score
from resolution.tokens import company_name_from_domain, email_domain, extract_name_from_email
from storage.base import DuplicateRecordError, Err, Ok, ProfileStore, StoreResult, StoreUnavailableError
from storage.memory import InMemoryProfileStore

T = TypeVar("T")


class InvalidAttendeeError(ValueError):
    """The attendee cannot be resolved at all (missing email)."""


class ResolutionError(RuntimeError):
    """Both the primary and the fallback store failed during one call."""


class _StoreFailed(Exception):
    """Unwinds one resolution attempt after a store call returned Err."""

    def __init__(self, operation: str, result: Err) -> None:
        super().__init__(f"{operation}: {result.reason}")
        self.operation = operation
        self.result = result


class StoreAvailability:
    """
    Primary store plus a one-way switch to a fallback store.

    The switch flips at most once per instance and is never retried.
    """

    def __init__(
        self,
        primary: ProfileStore,
        fallback: ProfileStore | None = None,
        run_id: str | None = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or InMemoryProfileStore()
        self.run_id = run_id
        self._degraded = False
        self._lock = threading.Lock()

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def active(self) -> ProfileStore:
        return self.fallback if self._degraded else self.primary

    def degrade(self, operation: str, reason: str) -> bool:
        """Switch to the fallback store; True only for the call that flipped it."""
        with self._lock:
            if self._degraded:
                return False
            self._degraded = True
        emit_json_event(
            "resolution_store_degraded",
            run_id=self.run_id,
            level="warning",
            component="resolver",
            operation=operation,
            primary_store=self.primary.name,
            fallback_store=self.fallback.name,
            error=reason,
        )
        return True

    def status(self) -> dict[str, Any]:
        return {
            "type": "memory" if self._degraded else "database",
            "available": not self._degraded,
            "store": self.active.name,
        }


def _attempt(store: ProfileStore, call: Callable[[ProfileStore], T]) -> StoreResult:
    try:
        return Ok(call(store))
    except StoreUnavailableError as exc:
        return Err(str(exc), exc)


def _require_email(email: Any) -> str:
    if not isinstance(email, str) or not email.strip():
        raise InvalidAttendeeError("email required")
    return email.strip().lower()


def _clean_name(display_name: Any) -> Optional[str]:
    if not isinstance(display_name, str):
        return None
    return display_name.strip() or None


class AttendeeResolver:
    """Resolve calendar attendees to Person/Company records."""

    def __init__(
        self,
        store: ProfileStore | None = None,
        *,
        fallback: ProfileStore | None = None,
        availability: StoreAvailability | None = None,
        config: ResolutionConfig | None = None,
        run_id: str | None = None,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self.run_id = run_id or str(uuid4())
        if availability is None:
            availability = StoreAvailability(
                store or InMemoryProfileStore(),
                fallback=fallback,
                run_id=self.run_id,
            )
        self.availability = availability

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def _call(self, store: ProfileStore, operation: str, call: Callable[[ProfileStore], T]) -> T:
        """Run a store call; an Err aborts the current resolution attempt."""
        result = _attempt(store, call)
        if isinstance(result, Err):
            raise _StoreFailed(operation, result)
        return result.value

    def _create_person(self, store: ProfileStore, draft: PersonDraft) -> tuple[Optional[Person], bool]:
        """Create a person; on a lost race return the winner's record instead."""
        try:
            return self._call(store, "create_person", lambda s: s.create_person(draft)), True
        except DuplicateRecordError:
            winner = self._call(store, "find_person_by_email", lambda s: s.find_person_by_email(draft.primary_email))
            emit_json_event(
                "resolution_create_race_recovered",
                run_id=self.run_id,
                component="resolver",
                record="person",
                email=draft.primary_email,
                person_id=winner.id if winner else None,
            )
            return winner, False

    def _create_company(self, store: ProfileStore, draft: CompanyDraft) -> Optional[Company]:
        try:
            return self._call(store, "create_company", lambda s: s.create_company(draft))
        except DuplicateRecordError:
            winner = self._call(
                store,
                "find_company_by_domain",
                lambda s: s.find_company_by_domain(draft.domain or ""),
            )
            emit_json_event(
                "resolution_create_race_recovered",
                run_id=self.run_id,
                component="resolver",
                record="company",
                domain=draft.domain,
                company_id=winner.id if winner else None,
            )
            return winner

    def _company_of(self, store: ProfileStore, person: Person) -> Optional[Company]:
        if not person.company_id:
            return None
        company_id = person.company_id
        return self._call(store, "find_company_by_id", lambda s: s.find_company_by_id(company_id))

    def storage_status(self) -> dict[str, Any]:
        return self.availability.status()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def resolve_attendee(self, email: str, display_name: str | None = None) -> EntityResolutionResult:
        """
        Resolve one attendee.

        Raises:
            InvalidAttendeeError: If email is missing or blank.
            ResolutionError: If the fallback store fails as well.
        """
        clean_email = _require_email(email)
        name = _clean_name(display_name)

        store = self.availability.active
        try:
            result = self._run_steps(store, clean_email, name)
        except _StoreFailed as failure:
            if store is self.availability.fallback:
                raise ResolutionError(
                    f"{failure.operation} failed on fallback store: {failure.result.reason}"
                ) from failure.result.error
            self.availability.degrade(failure.operation, failure.result.reason)
            store = self.availability.fallback
            try:
                result = self._run_steps(store, clean_email, name)
            except _StoreFailed as again:
                raise ResolutionError(
                    f"{again.operation} failed on fallback store: {again.result.reason}"
                ) from again.result.error

        emit_json_event(
            "resolution_completed",
            run_id=self.run_id,
            component="resolver",
            email=clean_email,
            display_name=name,
            method=result.method.value,
            confidence=result.confidence,
            person_id=result.person.id if result.person else None,
            created_new_entity=result.created_new_entity,
            store=store.name,
        )
        return result

    def resolve_attendees(
        self,
        attendees: Iterable[Attendee | Mapping[str, Any]],
    ) -> list[EntityResolutionResult]:
        """Resolve many attendees concurrently; results follow input order."""
        items = [
            item if isinstance(item, Attendee) else Attendee.model_validate(item)
            for item in attendees
        ]
        if not items:
            return []
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            return list(
                executor.map(lambda item: self.resolve_attendee(item.email, item.display_name), items)
            )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _run_steps(self, store: ProfileStore, email: str, name: Optional[str]) -> EntityResolutionResult:
        steps = (
            self._resolve_override,
            self._resolve_exact_email,
            self._resolve_fuzzy,
            self._resolve_domain,
            self._resolve_new_person,
        )
        for step in steps:
            result = step(store, email, name)
            if result is not None:
                return result
        return EntityResolutionResult(confidence=0.0, method=ResolutionMethod.UNRESOLVED)

    def _resolve_override(
        self, store: ProfileStore, email: str, name: Optional[str]
    ) -> Optional[EntityResolutionResult]:
        for identifier in (email, name):
            if not identifier:
                continue
            override = self._call(store, "find_override", lambda s: s.find_override(identifier))
            if override is None or not override.target_person_id:
                continue
            target_id = override.target_person_id
            person = self._call(store, "find_person_by_id", lambda s: s.find_person_by_id(target_id))
            if person is None:
                continue
            company = None
            if override.target_company_id:
                company_id = override.target_company_id
                company = self._call(store, "find_company_by_id", lambda s: s.find_company_by_id(company_id))
            return EntityResolutionResult(
                person=person,
                company=company or self._company_of(store, person),
                confidence=override.confidence,
                method=ResolutionMethod.MANUAL_OVERRIDE,
            )
        return None

    def _resolve_exact_email(
        self, store: ProfileStore, email: str, name: Optional[str]
    ) -> Optional[EntityResolutionResult]:
        person = self._call(store, "find_person_by_email", lambda s: s.find_person_by_email(email))
        if person is None:
            return None
        return self._exact_email_result(store, person, email, name)

    def _exact_email_result(
        self, store: ProfileStore, person: Person, email: str, name: Optional[str]
    ) -> EntityResolutionResult:
        person_id = person.id
        person = self._call(
            store,
            "update_person_interaction",
            lambda s: s.update_person_interaction(person_id),
        ) or person
        company = self._company_of(store, person)
        assessment = self._assess(
            person,
            name=name,
            email_match=True,
            company_match=bool(company and company.domain == email_domain(email)),
        )
        return EntityResolutionResult(
            person=person,
            company=company,
            confidence=person.confidence,
            method=ResolutionMethod.EXACT_EMAIL,
            assessment=assessment,
        )

    def _resolve_fuzzy(
        self, store: ProfileStore, email: str, name: Optional[str]
    ) -> Optional[EntityResolutionResult]:
        if not name:
            return None

        entries = self._call(
            store,
            "list_active_persons_with_aliases",
            lambda s: s.list_active_persons_with_aliases(),
        )
        if not entries:
            return None
        candidates = [MatchCandidate.from_person(person, aliases) for person, aliases in entries]
        matches = find_best_matches(
            MatchQuery(name=name, email=email),
            candidates,
            threshold=self.config.matching.person_resolution_threshold,
            config=self.config.matching,
        )
        if not matches:
            return None

        best = matches[0]
        person_id = best.candidate.id
        # A person deleted since the listing is no match.
        if self._call(store, "find_person_by_id", lambda s: s.find_person_by_id(person_id)) is None:
            return None

        alias = PersonAlias(
            person_id=person_id,
            alias_name=name,
            alias_email=email,
            context=self.config.alias_context,
            confidence=min(1.0, best.score),
        )
        if self._call(store, "create_alias", lambda s: s.create_alias(alias)):
            emit_json_event(
                "resolution_alias_learned",
                run_id=self.run_id,
                component="resolver",
                person_id=person_id,
                alias_name=alias.alias_name,
                alias_email=alias.alias_email,
                confidence=alias.confidence,
            )

        person = self._call(
            store,
            "update_person_interaction",
            lambda s: s.update_person_interaction(person_id),
        )
        if person is None:
            return None
        company = self._company_of(store, person)
        domain = email_domain(email)
        is_alias = best.match_type is MatchType.ALIAS
        assessment = self._assess(
            person,
            name=name,
            domain_match=bool(domain) and domain == email_domain(person.primary_email),
            alias_match=is_alias,
            company_match=bool(company and company.domain and company.domain == domain),
        )
        return EntityResolutionResult(
            person=person,
            company=company,
            confidence=best.score,
            method=ResolutionMethod.ALIAS_MATCH if is_alias else ResolutionMethod.FUZZY_NAME,
            assessment=assessment,
        )

    def _resolve_domain(
        self, store: ProfileStore, email: str, name: Optional[str]
    ) -> Optional[EntityResolutionResult]:
        domain = email_domain(email)
        if not domain or self.config.is_personal_domain(domain):
            return None
        if self.config.internal_domain_marker in domain:
            return None

        company = self._call(store, "find_company_by_domain", lambda s: s.find_company_by_domain(domain))
        if company is None:
            company_name = company_name_from_domain(domain)
            if company_name is None:
                return None
            company = self._create_company(
                store,
                CompanyDraft(
                    name=company_name,
                    domain=domain,
                    company_type=CompanyType.CUSTOMER,
                    description=f"Auto-created from email domain: {domain}",
                    website_url=f"https://{domain}",
                ),
            )
            if company is None:
                return None

        person, created = self._create_person(
            store,
            PersonDraft(
                name=name or extract_name_from_email(email),
                emails=[email],
                company_id=company.id,
                person_type=PersonType.EXTERNAL,
                confidence=self.config.domain_match_confidence,
            ),
        )
        if person is None:
            return None
        if not created:
            return self._exact_email_result(store, person, email, name)

        assessment = self._assess(person, name=name, domain_match=True, company_match=True)
        return EntityResolutionResult(
            person=person,
            company=company,
            confidence=self.config.domain_match_confidence,
            method=ResolutionMethod.DOMAIN_MATCH,
            created_new_entity=True,
            assessment=assessment,
        )

    def _resolve_new_person(
        self, store: ProfileStore, email: str, name: Optional[str]
    ) -> Optional[EntityResolutionResult]:
        domain = email_domain(email)
        marker = self.config.internal_domain_marker
        company: Optional[Company] = None

        if domain and marker in domain:
            company = self._call(store, "find_internal_company", lambda s: s.find_internal_company(marker))
            draft = PersonDraft(
                name=name or extract_name_from_email(email),
                emails=[email],
                company_id=company.id if company else None,
                person_type=PersonType.INTERNAL,
                confidence=self.config.internal_confidence,
            )
            method = ResolutionMethod.INTERNAL_INFERENCE
        elif name:
            draft = PersonDraft(
                name=name,
                emails=[email],
                person_type=PersonType.EXTERNAL,
                confidence=self.config.unresolved_confidence,
            )
            method = ResolutionMethod.UNRESOLVED
        else:
            return None

        person, created = self._create_person(store, draft)
        if person is None:
            return None
        if not created:
            return self._exact_email_result(store, person, email, name)

        assessment = self._assess(
            person,
            name=name,
            domain_match=bool(company and company.domain == domain),
            company_match=company is not None,
        )
        return EntityResolutionResult(
            person=person,
            company=company,
            confidence=draft.confidence,
            method=method,
            created_new_entity=True,
            assessment=assessment,
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _assess(
        self,
        person: Person,
        *,
        name: Optional[str],
        email_match: bool = False,
        domain_match: bool = False,
        alias_match: bool = False,
        company_match: bool = False,
    ) -> dict[str, Any]:
        """Confidence breakdown for a bound person, attached to the result."""
        name_score = 0.0
        if name:
            name_score = name_match_score(name, person.name, person.aliases, self.config.matching)
        signals = ConfidenceSignals(
            email_match=email_match,
            name_match_score=name_score,
            domain_match=domain_match,
            alias_match=alias_match,
            interaction_history=person.interaction_count,
            time_decay=calculate_time_decay(person.last_interaction),
            contextual_clues=ContextualClues(company_match=company_match),
        )
        return calculate_confidence(
            signals,
            person,
            self.config.weights,
            self.config.bonuses,
        ).to_dict()
