"""Integration tests: resolver end to end over the SQLite profile store."""

from __future__ import annotations

import json
import sqlite3

import pytest

from core.models import ManualOverride, OverrideType, ResolutionMethod
from resolution import AttendeeResolver
from storage import SQLiteProfileStore


def _json_lines(stdout: str) -> list[dict]:
    """Parse JSON log lines emitted during resolution."""
    lines = [line.strip() for line in stdout.splitlines() if line.strip()]
    return [json.loads(line) for line in lines]


@pytest.mark.integration
def test_domain_inference_persists_company_and_person(sqlite_store, temp_db):
    resolver = AttendeeResolver(sqlite_store, run_id="run-sqlite-domain")

    result = resolver.resolve_attendee("sarah@insightpartners.com")

    assert result.method == ResolutionMethod.DOMAIN_MATCH
    assert result.confidence == 0.75
    assert result.company.name == "Insightpartners"
    assert sqlite_store.counts() == {
        "people": 1,
        "companies": 1,
        "person_aliases": 0,
        "entity_overrides": 0,
    }

    with sqlite3.connect(temp_db) as connection:
        description = connection.execute("SELECT description FROM companies").fetchone()[0]
    assert description == "Auto-created from email domain: insightpartners.com"


@pytest.mark.integration
def test_people_table_stores_only_read_columns(sqlite_store, temp_db):
    resolver = AttendeeResolver(sqlite_store, run_id="run-sqlite-columns")
    created = resolver.resolve_attendee("sarah@insightpartners.com", "Sarah Chen").person

    with sqlite3.connect(temp_db) as connection:
        columns = {row[1] for row in connection.execute("PRAGMA table_info(people)")}

    assert "fuzzy_name_tokens" not in columns
    assert columns == {
        "id",
        "name",
        "company_id",
        "title",
        "slack_handles",
        "linkedin_url",
        "notable_facts",
        "aliases",
        "confidence",
        "person_type",
        "entity_status",
        "last_interaction",
        "interaction_count",
        "created_at",
        "updated_at",
    }
    assert sqlite_store.find_person_by_id(created.id).name == "Sarah Chen"


@pytest.mark.integration
def test_round_trip_hits_exact_email_across_resolvers(temp_db):
    first = AttendeeResolver(SQLiteProfileStore(temp_db), run_id="run-a").resolve_attendee(
        "sarah@insightpartners.com", "Sarah Chen"
    )
    second = AttendeeResolver(SQLiteProfileStore(temp_db), run_id="run-b").resolve_attendee(
        "sarah@insightpartners.com", "Sarah Chen"
    )

    assert first.method == ResolutionMethod.DOMAIN_MATCH
    assert second.method == ResolutionMethod.EXACT_EMAIL
    assert second.person.id == first.person.id
    assert second.person.interaction_count == 1
    assert SQLiteProfileStore(temp_db).counts()["people"] == 1


@pytest.mark.integration
def test_personal_domain_without_name_is_unresolved(sqlite_store):
    result = AttendeeResolver(sqlite_store, run_id="run-gmail").resolve_attendee("unknown@gmail.com", None)

    assert result.person is None
    assert result.confidence == 0.0
    assert result.method == ResolutionMethod.UNRESOLVED
    assert sqlite_store.counts()["people"] == 0


@pytest.mark.integration
def test_known_person_at_unseen_address_learns_alias_once(seeded_sqlite_store):
    store, seed = seeded_sqlite_store
    resolver = AttendeeResolver(store, run_id="run-sqlite-alias")

    first = resolver.resolve_attendee("athompson@scale.com", "Alex Thompson")
    second = resolver.resolve_attendee("athompson@scale.com", "Alex Thompson")
    third = resolver.resolve_attendee("athompson@scale.com", "Alex Thompson")

    assert first.method == ResolutionMethod.ALIAS_MATCH
    assert first.confidence >= 0.85
    assert first.person.id == seed["alex"].id
    assert second.method == ResolutionMethod.EXACT_EMAIL
    assert third.method == ResolutionMethod.EXACT_EMAIL
    assert third.person.interaction_count == 3

    aliases = store.list_aliases(seed["alex"].id)
    assert [(item.alias_name, item.alias_email) for item in aliases] == [("Alex Thompson", "athompson@scale.com")]
    assert store.counts()["people"] == 2
    assert store.find_person_by_id(seed["alex"].id).aliases == ["Alex Thompson"]


@pytest.mark.integration
def test_override_beats_exact_email(seeded_sqlite_store):
    store, seed = seeded_sqlite_store
    store.create_override(
        ManualOverride(
            override_type=OverrideType.PERSON_MERGE,
            source_identifier="priya@northwind.dev",
            target_person_id=seed["alex"].id,
            confidence=0.9,
            reason="shared inbox",
        )
    )

    result = AttendeeResolver(store, run_id="run-sqlite-override").resolve_attendee("priya@northwind.dev")

    assert result.method == ResolutionMethod.MANUAL_OVERRIDE
    assert result.person.id == seed["alex"].id
    assert result.confidence == 0.9


@pytest.mark.integration
def test_unreachable_database_degrades_to_memory(tmp_path, capsys):
    broken = SQLiteProfileStore(tmp_path, initialize=False)
    resolver = AttendeeResolver(broken, run_id="run-sqlite-down")

    first = resolver.resolve_attendee("sarah@insightpartners.com")
    second = resolver.resolve_attendee("sarah@insightpartners.com")

    assert first.method == ResolutionMethod.DOMAIN_MATCH
    assert second.method == ResolutionMethod.EXACT_EMAIL
    assert resolver.storage_status()["available"] is False

    events = _json_lines(capsys.readouterr().out)
    degraded = [item for item in events if item["event_type"] == "resolution_store_degraded"]
    assert len(degraded) == 1
    assert degraded[0]["primary_store"] == "sqlite"
    assert degraded[0]["operation"] == "find_override"


@pytest.mark.integration
def test_batch_over_sqlite_keeps_order(sqlite_store):
    resolver = AttendeeResolver(sqlite_store, run_id="run-sqlite-batch")
    attendees = [
        {"email": "sarah@insightpartners.com", "display_name": "Sarah Chen"},
        {"email": "unknown@gmail.com"},
        {"email": "jeff@insightpartners.com", "display_name": "Jeff Horing"},
    ]

    results = resolver.resolve_attendees(attendees)

    assert [item.method for item in results] == [
        ResolutionMethod.DOMAIN_MATCH,
        ResolutionMethod.UNRESOLVED,
        ResolutionMethod.DOMAIN_MATCH,
    ]
    assert results[0].company.id == results[2].company.id
    assert sqlite_store.counts()["companies"] == 1
