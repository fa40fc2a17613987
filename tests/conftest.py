"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- Test database engine and sessions (in-memory SQLite by default)
- HTTP client for API testing
- Common FHIR Patient test data
"""

import json
import os
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

import patientstore.models  # noqa: F401
from patientstore.database import Base, create_db_engine, create_session_factory, get_db
from patientstore.main import app
from patientstore.services.patient_service import PatientService

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine with automatic schema management.

    Creates all tables before tests, drops them after.
    Uses DATABASE_TEST_URL env var if set, otherwise in-memory SQLite.
    """
    db_url = os.environ.get("DATABASE_TEST_URL", "sqlite+aiosqlite:///:memory:")
    engine = create_db_engine(db_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncSession:
    """Create test database session.

    Each test gets a fresh schema from ``test_engine``, so commits made by
    the service layer do not leak between tests.
    """
    session_factory = create_session_factory(test_engine)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def service(db_session) -> PatientService:
    """PatientService bound to the test session."""
    return PatientService(db_session)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def client(test_engine):
    """Async test client for FastAPI app with test database.

    Overrides the app's get_db dependency to use the test database.
    """
    session_factory = create_session_factory(test_engine)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.pop(get_db, None)


# =============================================================================
# FHIR Test Data
# =============================================================================

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "patients"


def _patient_document(
    family: str = "Gauss",
    given: list[str] | None = None,
    gender: str = "male",
    birth_date: str = "1990-01-01",
    **extra,
) -> dict:
    """Build a minimal Patient document."""
    document = {
        "resourceType": "Patient",
        "name": [{"family": family, "given": given if given is not None else ["Carl"]}],
        "gender": gender,
        "birthDate": birth_date,
    }
    document.update(extra)
    return document


@pytest.fixture
def make_patient():
    """Factory for Patient documents; keyword arguments override fields."""
    return _patient_document


@pytest.fixture
def sample_patient() -> dict:
    """Patient document without an id."""
    return _patient_document()


@pytest.fixture
def patient_id() -> uuid.UUID:
    """Generate a unique patient ID for testing."""
    return uuid.uuid4()


@pytest.fixture
def fixture_patients() -> list[dict]:
    """Load all Patient fixtures shipped with the repository."""
    documents = []
    for path in sorted(FIXTURES_DIR.glob("*.json")):
        with open(path) as f:
            documents.append(json.load(f))
    return documents
