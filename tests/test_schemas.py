"""Tests for Patient validation, OperationOutcome and Bundle schemas."""

import uuid
from datetime import datetime, timezone

import pytest

from patientstore.errors import (
    HistoryIntegrityError,
    InvalidResourceError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from patientstore.schemas import Bundle, OperationOutcome, validate_patient_document
from patientstore.schemas.outcome import GENERIC_INTERNAL_MESSAGE
from patientstore.utils.fhir_helpers import (
    format_instant,
    normalize_document,
    parse_resource_id,
    with_meta,
)


class TestValidatePatientDocument:
    """Tests for validate_patient_document."""

    def test_accepts_minimal_patient(self):
        document = validate_patient_document({"resourceType": "Patient"})
        assert document.resource_type == "Patient"

    def test_keeps_unmodelled_fields(self):
        document = validate_patient_document(
            {"resourceType": "Patient", "extension": [{"url": "urn:x", "valueString": "y"}]}
        )
        assert document.model_extra["extension"][0]["url"] == "urn:x"

    def test_rejects_non_object(self):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document(["Patient"])
        assert exc_info.value.location == "$"

    def test_requires_resource_type(self):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"gender": "male"})
        assert exc_info.value.location == "resourceType"

    def test_rejects_other_resource_type(self):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"resourceType": "Observation"})
        assert exc_info.value.location == "resourceType"

    @pytest.mark.parametrize("gender", ["M", "Male", "robot"])
    def test_rejects_unknown_gender(self, gender):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"resourceType": "Patient", "gender": gender})
        assert exc_info.value.location == "gender"

    @pytest.mark.parametrize("birth_date", ["1990-13-01", "1990-02-30", "1990-1-1", "1990-W01-1", "19900101"])
    def test_rejects_malformed_birth_date(self, birth_date):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"resourceType": "Patient", "birthDate": birth_date})
        assert exc_info.value.location == "birthDate"

    def test_rejects_non_boolean_active(self):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"resourceType": "Patient", "active": "yes"})
        assert exc_info.value.location == "active"

    def test_rejects_non_uuid_id(self):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"resourceType": "Patient", "id": "patient-1"})
        assert exc_info.value.location == "id"

    def test_rejects_name_that_is_not_a_list(self):
        with pytest.raises(InvalidResourceError) as exc_info:
            validate_patient_document({"resourceType": "Patient", "name": {"family": "Gauss"}})
        assert exc_info.value.location.startswith("name")


class TestFhirHelpers:
    """Tests for document helpers."""

    def test_normalize_overrides_id_and_type(self):
        resource_id = uuid.uuid4()
        body = normalize_document("Patient", resource_id, {"resourceType": "patient"})
        assert body == {"resourceType": "Patient", "id": str(resource_id)}

    def test_normalize_strips_server_meta(self):
        resource_id = uuid.uuid4()
        source = {
            "resourceType": "Patient",
            "meta": {"versionId": "7", "lastUpdated": "2020-01-01T00:00:00Z", "tag": [{"code": "x"}]},
        }
        body = normalize_document("Patient", resource_id, source)
        assert body["meta"] == {"tag": [{"code": "x"}]}
        # Input untouched
        assert source["meta"]["versionId"] == "7"

    def test_normalize_drops_emptied_meta(self):
        body = normalize_document("Patient", uuid.uuid4(), {"meta": {"versionId": "1"}})
        assert "meta" not in body

    def test_with_meta_adds_version_and_timestamp(self):
        ts = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        stored = {"resourceType": "Patient"}
        document = with_meta(stored, 3, ts)
        assert document["meta"] == {
            "versionId": "3",
            "lastUpdated": "2026-01-02T03:04:05+00:00",
        }
        assert "meta" not in stored

    def test_format_instant_treats_naive_as_utc(self):
        assert format_instant(datetime(2026, 1, 1, 12, 0)) == "2026-01-01T12:00:00+00:00"

    def test_parse_resource_id(self):
        resource_id = uuid.uuid4()
        assert parse_resource_id(str(resource_id)) == resource_id
        with pytest.raises(InvalidResourceError) as exc_info:
            parse_resource_id("nope", location="_id")
        assert exc_info.value.location == "_id"


class TestOperationOutcome:
    """Tests for the error carrier."""

    def test_not_found_outcome(self):
        error = ResourceNotFoundError("Patient with ID x not found", location="Patient/x")
        outcome = OperationOutcome.from_error(error).model_dump(exclude_none=True)

        issue = outcome["issue"][0]
        assert outcome["resourceType"] == "OperationOutcome"
        assert issue["severity"] == "error"
        assert issue["code"] == "not-found"
        assert issue["details"]["text"] == "not-found"
        assert issue["diagnostics"] == "Patient with ID x not found"
        assert issue["location"] == ["Patient/x"]

    def test_invalid_and_conflict_codes(self):
        assert OperationOutcome.from_error(InvalidResourceError("bad")).issue[0].code == "invalid"
        assert OperationOutcome.from_error(ResourceConflictError("dup")).issue[0].code == "conflict"

    def test_internal_outcome_hides_diagnostics(self):
        error = HistoryIntegrityError("Version history for Patient/x is inconsistent")
        issue = OperationOutcome.from_error(error).issue[0]
        assert issue.severity == "fatal"
        assert issue.code == "exception"
        assert issue.diagnostics == GENERIC_INTERNAL_MESSAGE
        assert issue.location is None

    def test_error_http_status(self):
        assert ResourceNotFoundError("x").http_status == 404
        assert InvalidResourceError("x").http_status == 400
        assert ResourceConflictError("x").http_status == 409
        assert HistoryIntegrityError("x").http_status == 500


class TestBundle:
    """Tests for the Bundle schema."""

    def test_empty_searchset(self):
        bundle = Bundle(type="searchset", total=0)
        assert bundle.model_dump() == {
            "resourceType": "Bundle",
            "type": "searchset",
            "total": 0,
            "link": [],
            "entry": [],
        }
