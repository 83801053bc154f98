"""
Shared pytest fixtures and configuration for attendee-resolution tests.
"""

import pytest
from pathlib import Path
from datetime import UTC, datetime, timedelta

from core.models import (
    Company,
    CompanyDraft,
    CompanyType,
    Person,
    PersonDraft,
    PersonType,
)
from resolution import AttendeeResolver
from storage import InMemoryProfileStore, SQLiteProfileStore


# ============================================================================
# Fixtures: Records
# ============================================================================

@pytest.fixture
def sample_company_draft() -> CompanyDraft:
    """Customer company keyed by its email domain."""
    return CompanyDraft(
        name="Insight Partners",
        domain="insight.com",
        company_type=CompanyType.INVESTOR,
        industry="Venture Capital",
    )


@pytest.fixture
def sample_person_draft() -> PersonDraft:
    """External person with a single email."""
    return PersonDraft(
        name="Sarah Chen",
        emails=["Sarah@Insight.com"],
        title="Partner",
        confidence=0.9,
    )


@pytest.fixture
def rich_person() -> Person:
    """Person with every completeness attribute filled in."""
    return Person(
        name="Maria Lopez",
        emails=["maria@acme.io", "m.lopez@acme.io"],
        company_id="company-acme",
        title="VP Engineering",
        linkedin_url="https://www.linkedin.com/in/maria-lopez",
        slack_handles=["@maria"],
        notable_facts=["Ex-Stripe"],
        aliases=["Mari Lopez"],
        confidence=0.8,
        interaction_count=7,
        last_interaction=datetime.now(UTC) - timedelta(days=2),
    )


# ============================================================================
# Fixtures: Stores
# ============================================================================

@pytest.fixture
def memory_store() -> InMemoryProfileStore:
    """Empty in-memory profile store."""
    return InMemoryProfileStore()


@pytest.fixture
def temp_db(tmp_path) -> Path:
    """Temporary SQLite database path."""
    return tmp_path / "test.db"


@pytest.fixture
def sqlite_store(temp_db: Path) -> SQLiteProfileStore:
    """SQLite profile store with the schema applied."""
    return SQLiteProfileStore(temp_db)


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    """Each store implementation, for contract-level tests."""
    if request.param == "memory":
        return InMemoryProfileStore()
    return SQLiteProfileStore(tmp_path / "contract.db")


def seed_catalog(store) -> dict[str, object]:
    """
    Insert a small catalog: one investor company and two people.

    Names are chosen so that no pair shares initials.
    """
    company: Company = store.create_company(
        CompanyDraft(name="Scale Venture Partners", domain="scalevp.com", company_type=CompanyType.INVESTOR)
    )
    alex: Person = store.create_person(
        PersonDraft(
            name="Alex Thompson",
            emails=["alex@scalevp.com"],
            company_id=company.id,
            title="Partner",
            confidence=0.9,
        )
    )
    priya: Person = store.create_person(
        PersonDraft(
            name="Priya Raman",
            emails=["priya@northwind.dev"],
            person_type=PersonType.EXTERNAL,
            confidence=0.6,
        )
    )
    return {"company": company, "alex": alex, "priya": priya}


@pytest.fixture
def seeded_memory_store(memory_store: InMemoryProfileStore) -> tuple[InMemoryProfileStore, dict]:
    """In-memory store with the seed catalog."""
    return memory_store, seed_catalog(memory_store)


@pytest.fixture
def seeded_sqlite_store(sqlite_store: SQLiteProfileStore) -> tuple[SQLiteProfileStore, dict]:
    """SQLite store with the seed catalog."""
    return sqlite_store, seed_catalog(sqlite_store)


@pytest.fixture
def resolver(memory_store: InMemoryProfileStore) -> AttendeeResolver:
    """Resolver over an empty in-memory store."""
    return AttendeeResolver(memory_store, run_id="run-test")


# ============================================================================
# Fixtures: File Paths
# ============================================================================

@pytest.fixture
def schemas_dir() -> Path:
    """Path to schemas directory."""
    return Path(__file__).parent.parent / "schemas"


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "contract: contract schema compliance tests")
    config.addinivalue_line("markers", "integration: end-to-end integration tests")
    config.addinivalue_line("markers", "unit: unit tests")
