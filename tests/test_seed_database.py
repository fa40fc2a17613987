"""Tests for the seed_database script."""

import json
import uuid

import pytest

from patientstore.scripts import seed_database as seed_module
from patientstore.services.patient_service import PatientService


class TestSeedDatabaseModule:
    """Tests for seed_database module structure."""

    def test_module_exposes_entry_points(self):
        assert callable(seed_module.main)
        assert callable(seed_module.seed_database)
        assert callable(seed_module.verify_connection)

    def test_fixtures_directory_ships_patients(self, fixture_patients):
        assert len(fixture_patients) >= 3
        for document in fixture_patients:
            assert document["resourceType"] == "Patient"
            uuid.UUID(document["id"])


class TestSeedDatabase:
    """Tests for loading fixtures through the service."""

    @pytest.mark.asyncio
    async def test_loads_all_fixtures(self, test_engine, db_session):
        stats = await seed_module.seed_database(test_engine, seed_module.FIXTURES_DIR)

        assert stats["patients_failed"] == 0
        assert stats["patients_loaded"] == len(list(seed_module.FIXTURES_DIR.glob("*.json")))

        page = await PatientService(db_session).search({"name": "gauss"})
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_rerun_stores_new_versions(self, test_engine, db_session):
        await seed_module.seed_database(test_engine, seed_module.FIXTURES_DIR)
        await seed_module.seed_database(test_engine, seed_module.FIXTURES_DIR)

        entries = await PatientService(db_session).history(
            uuid.UUID("0b8e6a3e-5f0c-4d8e-9a52-7c1f0e2d4a01")
        )
        assert [entry.version_id for entry in entries] == [2, 1]

    @pytest.mark.asyncio
    async def test_invalid_fixture_is_counted(self, test_engine, tmp_path):
        (tmp_path / "good.json").write_text(json.dumps({"resourceType": "Patient"}))
        (tmp_path / "bad.json").write_text(
            json.dumps({"resourceType": "Patient", "gender": "robot"})
        )

        stats = await seed_module.seed_database(test_engine, tmp_path)

        assert stats == {"patients_loaded": 1, "patients_failed": 1}

    @pytest.mark.asyncio
    async def test_empty_directory(self, test_engine, tmp_path):
        stats = await seed_module.seed_database(test_engine, tmp_path)
        assert stats == {"patients_loaded": 0, "patients_failed": 0}
