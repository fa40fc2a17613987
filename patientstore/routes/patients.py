"""Patient FHIR REST routes.

Errors raised by the service are rendered as OperationOutcome responses by
the application's exception handlers (see patientstore.main).
"""

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from patientstore.database import get_db
from patientstore.repositories import HistoryEntry
from patientstore.schemas import (
    Bundle,
    BundleEntry,
    BundleEntryRequest,
    BundleEntryResponse,
    BundleLink,
)
from patientstore.services.patient_service import PatientService
from patientstore.utils.fhir_helpers import format_instant

router = APIRouter(prefix="/Patient", tags=["Patient"])

# Bundle entry response status per method that produced a version
RESPONSE_STATUS = {
    "POST": "201 Created",
    "PUT": "200 OK",
    "DELETE": "204 No Content",
}


async def get_patient_service(db: AsyncSession = Depends(get_db)) -> PatientService:
    """Dependency providing a PatientService bound to the request session."""
    return PatientService(db)


def _full_url(request: Request, patient_id: Any) -> str:
    return str(request.url_for("read_patient", patient_id=str(patient_id)))


def _history_entry(request: Request, patient_id: uuid.UUID, entry: HistoryEntry) -> BundleEntry:
    method = entry.method
    return BundleEntry(
        fullUrl=_full_url(request, patient_id),
        resource=entry.resource,
        request=BundleEntryRequest(
            method=method,
            url="Patient" if method == "POST" else f"Patient/{patient_id}",
        ),
        response=BundleEntryResponse(
            status=RESPONSE_STATUS[method],
            lastModified=format_instant(entry.ts),
        ),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_patient(
    request: Request,
    response: Response,
    document: dict[str, Any] = Body(...),
    service: PatientService = Depends(get_patient_service),
) -> dict:
    """Create a patient.

    An ``id`` in the body is honoured; otherwise one is generated.

    Returns:
        The stored patient with meta.versionId and meta.lastUpdated.
    """
    created = await service.create(document)
    response.headers["Location"] = str(
        request.url_for(
            "read_patient_version",
            patient_id=created["id"],
            version_id=created["meta"]["versionId"],
        )
    )
    return created


@router.get("", response_model=Bundle, response_model_exclude_none=True)
async def search_patients(
    request: Request,
    count: int | None = Query(default=None, alias="_count", ge=0),
    offset: int = Query(default=0, alias="_offset", ge=0),
    service: PatientService = Depends(get_patient_service),
) -> Bundle:
    """Search patients.

    Recognized parameters combine with AND; unknown parameters are ignored.
    Results are ordered by id so pages are stable.

    Returns:
        A searchset Bundle whose ``total`` counts every match.
    """
    page = await service.search(request.query_params.multi_items(), count, offset)

    links = [BundleLink(relation="self", url=str(request.url))]
    if page.count and page.offset + page.count < page.total:
        links.append(
            BundleLink(
                relation="next",
                url=str(
                    request.url.include_query_params(
                        _count=page.count, _offset=page.offset + page.count
                    )
                ),
            )
        )
    if page.count and page.offset > 0:
        links.append(
            BundleLink(
                relation="previous",
                url=str(
                    request.url.include_query_params(
                        _count=page.count, _offset=max(page.offset - page.count, 0)
                    )
                ),
            )
        )

    return Bundle(
        type="searchset",
        total=page.total,
        link=links,
        entry=[
            BundleEntry(fullUrl=_full_url(request, document["id"]), resource=document)
            for document in page.entries
        ],
    )


@router.get("/{patient_id}", name="read_patient")
async def read_patient(
    patient_id: uuid.UUID,
    service: PatientService = Depends(get_patient_service),
) -> dict:
    """Get the current version of a patient; 404 if absent or deleted."""
    return await service.read(patient_id)


@router.put("/{patient_id}")
async def update_patient(
    patient_id: uuid.UUID,
    document: dict[str, Any] = Body(...),
    service: PatientService = Depends(get_patient_service),
) -> dict:
    """Replace an existing patient.

    Raises 404 if the patient does not exist and 400 if the body's id
    differs from the path.
    """
    return await service.update(patient_id, document)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_patient(
    patient_id: uuid.UUID,
    service: PatientService = Depends(get_patient_service),
) -> Response:
    """Soft-delete a patient. History stays readable."""
    await service.delete(patient_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{patient_id}/_history", response_model=Bundle, response_model_exclude_none=True
)
async def patient_history(
    request: Request,
    patient_id: uuid.UUID,
    service: PatientService = Depends(get_patient_service),
) -> Bundle:
    """List every version of a patient, newest first."""
    entries = await service.history(patient_id)
    return Bundle(
        type="history",
        total=len(entries),
        link=[BundleLink(relation="self", url=str(request.url))],
        entry=[_history_entry(request, patient_id, entry) for entry in entries],
    )


@router.get("/{patient_id}/_history/{version_id}", name="read_patient_version")
async def read_patient_version(
    patient_id: uuid.UUID,
    version_id: int,
    service: PatientService = Depends(get_patient_service),
) -> dict:
    """Get one version of a patient, including deleted versions."""
    entry = await service.read_version(patient_id, version_id)
    return entry.resource
