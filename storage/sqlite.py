"""SQLite persistence for people, companies, aliases and manual overrides."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from core.models import (
    Company,
    CompanyDraft,
    ManualOverride,
    Person,
    PersonAlias,
    PersonDraft,
)
from storage.base import DuplicateRecordError, ProfileStore, StoreUnavailableError

MIGRATION_PATH = Path(__file__).resolve().parent / "migrations" / "0001_init.sql"

_PERSON_ORDER = "p.confidence DESC, p.last_interaction IS NULL, p.last_interaction DESC, p.created_at"


def _utc_now() -> datetime:
    """Return timezone-aware UTC timestamp."""
    return datetime.now(UTC)


def _parse_iso_datetime(value: str | None) -> datetime | None:
    """Parse ISO datetime string into datetime, preserving None."""
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _dump_list(values: list[str]) -> str:
    return json.dumps(list(values), ensure_ascii=True)


def _load_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        values = json.loads(raw)
    except json.JSONDecodeError:
        return []
    return [str(item) for item in values] if isinstance(values, list) else []


def _row_to_company(row: sqlite3.Row) -> Company:
    return Company(
        id=str(row["id"]),
        name=str(row["name"]),
        domain=row["domain"],
        description=row["description"],
        industry=row["industry"],
        size_category=row["size_category"],
        company_type=str(row["company_type"]),
        notable_facts=_load_list(row["notable_facts"]),
        parent_company_id=row["parent_company_id"],
        website_url=row["website_url"],
        created_at=_parse_iso_datetime(row["created_at"]) or _utc_now(),
        updated_at=_parse_iso_datetime(row["updated_at"]) or _utc_now(),
    )


def _row_to_alias(row: sqlite3.Row) -> PersonAlias:
    return PersonAlias(
        id=str(row["id"]),
        person_id=str(row["person_id"]),
        alias_name=str(row["alias_name"]),
        alias_email=row["alias_email"],
        context=row["context"] or "calendar",
        confidence=float(row["confidence"]),
        verified=bool(row["verified"]),
        created_at=_parse_iso_datetime(row["created_at"]) or _utc_now(),
    )


def _row_to_override(row: sqlite3.Row) -> ManualOverride:
    return ManualOverride(
        id=str(row["id"]),
        override_type=str(row["override_type"]),
        source_identifier=str(row["source_identifier"]),
        source_person_id=row["source_person_id"],
        target_person_id=row["target_person_id"],
        target_company_id=row["target_company_id"],
        reason=row["reason"],
        confidence=float(row["confidence"]) if row["confidence"] is not None else 1.0,
        created_by=row["created_by"],
        created_at=_parse_iso_datetime(row["created_at"]) or _utc_now(),
    )


class SQLiteProfileStore(ProfileStore):
    """
    Profile store backed by one SQLite file.

    Uniqueness lives in the schema (email primary key, unique company domain,
    unique alias key per person), so concurrent creates of the same identity
    fail with DuplicateRecordError instead of producing duplicates.
    """

    name = "sqlite"

    def __init__(self, db_path: str | Path, initialize: bool = True, timeout: float = 5.0) -> None:
        """Initialize store and optionally apply the schema."""
        self.db_path = Path(db_path)
        self.timeout = timeout
        if initialize:
            self.initialize_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open one connection per call; map sqlite errors onto store errors."""
        connection: sqlite3.Connection | None = None
        try:
            connection = sqlite3.connect(self.db_path, timeout=self.timeout)
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
            yield connection
            connection.commit()
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecordError(str(exc)) from exc
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"SQLite store unavailable ({self.db_path}): {exc}") from exc
        finally:
            if connection is not None:
                connection.close()

    def initialize_schema(self) -> None:
        """Apply the migration schema (idempotent)."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailableError(f"Cannot create database directory: {exc}") from exc
        sql = MIGRATION_PATH.read_text(encoding="utf-8")
        with self._connect() as connection:
            connection.executescript(sql)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_person(self, connection: sqlite3.Connection, row: sqlite3.Row) -> Person:
        email_rows = connection.execute(
            "SELECT email FROM person_emails WHERE person_id = ? ORDER BY position",
            (row["id"],),
        ).fetchall()
        return Person(
            id=str(row["id"]),
            name=str(row["name"]),
            emails=[str(item["email"]) for item in email_rows],
            company_id=row["company_id"],
            title=row["title"],
            slack_handles=_load_list(row["slack_handles"]),
            linkedin_url=row["linkedin_url"],
            notable_facts=_load_list(row["notable_facts"]),
            aliases=_load_list(row["aliases"]),
            confidence=float(row["confidence"]),
            person_type=str(row["person_type"]),
            entity_status=str(row["entity_status"]),
            last_interaction=_parse_iso_datetime(row["last_interaction"]),
            interaction_count=int(row["interaction_count"]),
            created_at=_parse_iso_datetime(row["created_at"]) or _utc_now(),
            updated_at=_parse_iso_datetime(row["updated_at"]) or _utc_now(),
        )

    def _person_by_id(self, connection: sqlite3.Connection, person_id: str) -> Optional[Person]:
        row = connection.execute("SELECT * FROM people WHERE id = ?", (person_id,)).fetchone()
        return self._load_person(connection, row) if row else None

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_person_by_email(self, email: str) -> Optional[Person]:
        email = email.strip().lower()
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT p.*
                FROM people p
                JOIN person_emails e ON e.person_id = p.id
                WHERE e.email = ? AND p.entity_status = 'active'
                """,
                (email,),
            ).fetchone()
            if row is None:
                row = connection.execute(
                    f"""
                    SELECT DISTINCT p.*
                    FROM people p
                    JOIN person_aliases a ON a.person_id = p.id
                    WHERE a.alias_email = ? AND p.entity_status = 'active'
                    ORDER BY {_PERSON_ORDER}
                    LIMIT 1
                    """,
                    (email,),
                ).fetchone()
            return self._load_person(connection, row) if row else None

    def find_person_by_id(self, person_id: str) -> Optional[Person]:
        with self._connect() as connection:
            return self._person_by_id(connection, person_id)

    def find_company_by_domain(self, domain: str) -> Optional[Company]:
        with self._connect() as connection:
            row = connection.execute(
                "SELECT * FROM companies WHERE domain = ?",
                (domain.strip().lower(),),
            ).fetchone()
            return _row_to_company(row) if row else None

    def find_company_by_id(self, company_id: str) -> Optional[Company]:
        with self._connect() as connection:
            row = connection.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
            return _row_to_company(row) if row else None

    def find_internal_company(self, marker: str) -> Optional[Company]:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT *
                FROM companies
                WHERE company_type = 'internal' OR (? <> '' AND LOWER(name) LIKE '%' || ? || '%')
                ORDER BY company_type <> 'internal', created_at
                LIMIT 1
                """,
                (marker.strip().lower(), marker.strip().lower()),
            ).fetchone()
            return _row_to_company(row) if row else None

    def find_override(self, identifier: str) -> Optional[ManualOverride]:
        with self._connect() as connection:
            row = connection.execute(
                """
                SELECT *
                FROM entity_overrides
                WHERE source_identifier = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                (identifier.strip().lower(),),
            ).fetchone()
            return _row_to_override(row) if row else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_person(self, draft: PersonDraft) -> Person:
        person = Person(**draft.model_dump())
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO people (
                    id, name, company_id, title, slack_handles, linkedin_url,
                    notable_facts, aliases, confidence, person_type, entity_status,
                    last_interaction, interaction_count, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    person.id,
                    person.name,
                    person.company_id,
                    person.title,
                    _dump_list(person.slack_handles),
                    person.linkedin_url,
                    _dump_list(person.notable_facts),
                    _dump_list(person.aliases),
                    person.confidence,
                    person.person_type.value,
                    person.entity_status.value,
                    None,
                    0,
                    person.created_at.isoformat(),
                    person.updated_at.isoformat(),
                ),
            )
            connection.executemany(
                "INSERT INTO person_emails (email, person_id, position) VALUES (?, ?, ?)",
                [(email, person.id, position) for position, email in enumerate(person.emails)],
            )
        return person

    def create_company(self, draft: CompanyDraft) -> Company:
        company = Company(**draft.model_dump())
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO companies (
                    id, name, domain, description, industry, size_category, company_type,
                    notable_facts, parent_company_id, website_url, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    company.id,
                    company.name,
                    company.domain,
                    company.description,
                    company.industry,
                    company.size_category,
                    company.company_type.value,
                    _dump_list(company.notable_facts),
                    company.parent_company_id,
                    company.website_url,
                    company.created_at.isoformat(),
                    company.updated_at.isoformat(),
                ),
            )
        return company

    def create_alias(self, alias: PersonAlias) -> bool:
        with self._connect() as connection:
            person_row = connection.execute(
                "SELECT aliases FROM people WHERE id = ?",
                (alias.person_id,),
            ).fetchone()
            if person_row is None:
                raise ValueError(f"Cannot create alias: person not found: {alias.person_id}")

            rowcount = connection.execute(
                """
                INSERT OR IGNORE INTO person_aliases (
                    id, person_id, alias_name, alias_email, alias_key,
                    context, confidence, verified, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    alias.id,
                    alias.person_id,
                    alias.alias_name,
                    alias.alias_email,
                    alias.key,
                    alias.context,
                    alias.confidence,
                    int(alias.verified),
                    alias.created_at.isoformat(),
                ),
            ).rowcount
            if not rowcount:
                return False

            names = _load_list(person_row["aliases"])
            if alias.alias_name and alias.alias_name not in names:
                names.append(alias.alias_name)
                connection.execute(
                    "UPDATE people SET aliases = ?, updated_at = ? WHERE id = ?",
                    (_dump_list(names), _utc_now().isoformat(), alias.person_id),
                )
            return True

    def create_override(self, override: ManualOverride) -> ManualOverride:
        with self._connect() as connection:
            connection.execute(
                """
                INSERT INTO entity_overrides (
                    id, override_type, source_identifier, source_person_id, target_person_id,
                    target_company_id, reason, confidence, created_by, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    override.id,
                    override.override_type.value,
                    override.source_identifier,
                    override.source_person_id,
                    override.target_person_id,
                    override.target_company_id,
                    override.reason,
                    override.confidence,
                    override.created_by,
                    override.created_at.isoformat(),
                ),
            )
        return override

    def update_person_interaction(self, person_id: str) -> Optional[Person]:
        now = _utc_now().isoformat()
        with self._connect() as connection:
            connection.execute(
                """
                UPDATE people
                SET
                    last_interaction = ?,
                    interaction_count = interaction_count + 1,
                    updated_at = ?
                WHERE id = ?
                """,
                (now, now, person_id),
            )
            return self._person_by_id(connection, person_id)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_active_persons_with_aliases(self) -> list[tuple[Person, list[PersonAlias]]]:
        with self._connect() as connection:
            person_rows = connection.execute(
                f"""
                SELECT p.*
                FROM people p
                WHERE p.entity_status = 'active'
                ORDER BY {_PERSON_ORDER}
                """
            ).fetchall()
            alias_rows = connection.execute(
                """
                SELECT a.*
                FROM person_aliases a
                JOIN people p ON p.id = a.person_id
                WHERE p.entity_status = 'active'
                ORDER BY a.created_at, a.id
                """
            ).fetchall()

            by_person: dict[str, list[PersonAlias]] = {}
            for row in alias_rows:
                by_person.setdefault(str(row["person_id"]), []).append(_row_to_alias(row))

            return [
                (self._load_person(connection, row), by_person.get(str(row["id"]), []))
                for row in person_rows
            ]

    def list_aliases(self, person_id: str) -> list[PersonAlias]:
        with self._connect() as connection:
            rows = connection.execute(
                "SELECT * FROM person_aliases WHERE person_id = ? ORDER BY created_at, id",
                (person_id,),
            ).fetchall()
            return [_row_to_alias(row) for row in rows]

    def counts(self) -> dict[str, Any]:
        """Row counts per table."""
        with self._connect() as connection:
            return {
                table: int(connection.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])
                for table in ("people", "companies", "person_aliases", "entity_overrides")
            }
