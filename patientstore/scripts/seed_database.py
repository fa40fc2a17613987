"""Seed database with sample Patient fixtures.

Loads every Patient document from fixtures/patients/ through the patient
service, so history and search index rows are written exactly as they
would be for an API request.

Usage:
    python -m patientstore.scripts.seed_database

The script is idempotent - it can be run multiple times safely. Fixtures
carry fixed ids, so re-running stores a new version of each patient.
"""

import asyncio
import json
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from patientstore.config import configure_logging, settings
from patientstore.database import create_db_engine, create_schema, create_session_factory
from patientstore.errors import PatientStoreError
from patientstore.services.patient_service import PatientService

FIXTURES_DIR = Path(__file__).parent.parent.parent / "fixtures" / "patients"


async def verify_connection(engine: AsyncEngine) -> bool:
    """Verify the database connection is working."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        print(f"  Database ({engine.dialect.name}): connected")
    except Exception as e:
        print(f"  Database: FAILED - {e}")
        return False
    return True


async def seed_database(engine: AsyncEngine, fixtures_dir: Path) -> dict[str, int]:
    """
    Seed database with all patient fixtures.

    Args:
        engine: Engine to load into.
        fixtures_dir: Path to the fixtures/patients directory.

    Returns:
        Dictionary with counts: patients_loaded, patients_failed.
    """
    stats = {"patients_loaded": 0, "patients_failed": 0}

    patient_files = sorted(fixtures_dir.glob("*.json"))
    if not patient_files:
        print(f"No patient fixtures found in {fixtures_dir}")
        return stats

    print(f"Found {len(patient_files)} patient fixtures")

    print("\nVerifying database connection...")
    if not await verify_connection(engine):
        raise RuntimeError("Database connection verification failed")

    if settings.auto_create_schema:
        await create_schema(engine)
        print("  Schema: ensured")

    session_factory = create_session_factory(engine)

    print("\nLoading patients...")
    for patient_path in patient_files:
        with open(patient_path) as f:
            document = json.load(f)

        async with session_factory() as session:
            try:
                created = await PatientService(session).create(document)
            except PatientStoreError as e:
                print(f"  {patient_path.name}: FAILED - {e.message}")
                stats["patients_failed"] += 1
                continue

        print(
            f"  {patient_path.name}: Patient/{created['id']} "
            f"version {created['meta']['versionId']}"
        )
        stats["patients_loaded"] += 1

    return stats


async def _run(fixtures_dir: Path) -> dict[str, int]:
    engine = create_db_engine(settings.database_url, echo=settings.database_echo)
    try:
        return await seed_database(engine, fixtures_dir)
    finally:
        await engine.dispose()


def main() -> None:
    """Main entry point for the seed script."""
    configure_logging(settings)

    if not FIXTURES_DIR.exists():
        print(f"Fixtures directory not found: {FIXTURES_DIR}")
        return

    print("=" * 50)
    print("Patient Store Database Seeding")
    print("=" * 50)

    stats = asyncio.run(_run(FIXTURES_DIR))

    print("\n" + "=" * 50)
    print("Summary")
    print("=" * 50)
    print(f"  Patients loaded: {stats['patients_loaded']}")
    print(f"  Patients failed: {stats['patients_failed']}")
    print("\nDatabase seeding complete!")


if __name__ == "__main__":
    main()
