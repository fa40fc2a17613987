"""SQLAlchemy models for Patient documents and their version history."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from patientstore.constants import BASE_VERSION, RESOURCE_TYPE, STATUS_CREATED
from patientstore.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
DocumentType = JSON().with_variant(JSONB(), "postgresql")


class PatientResource(Base):
    """Current state of a Patient document.

    The row always holds the latest version; earlier versions live in
    ``patient_history``. Rows are never physically removed, a delete
    only flips ``status`` to ``deleted``.
    """

    __tablename__ = "patient"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    resource_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=RESOURCE_TYPE
    )

    # The FHIR document body, stored as raw JSON
    resource: Mapped[dict] = mapped_column(DocumentType, nullable=False)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=BASE_VERSION)
    txid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_CREATED)

    # Scalar search columns, derived from the body on every write
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    birth_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    active: Mapped[str | None] = mapped_column(String(5), nullable=True)

    __table_args__ = (
        Index("idx_patient_status", "status"),
        Index("idx_patient_gender", "gender"),
        Index("idx_patient_birth_date", "birth_date"),
        Index("idx_patient_ts", "ts"),
    )

    def __repr__(self) -> str:
        return f"<PatientResource(id={self.id}, version={self.version_id}, status={self.status})>"


class PatientHistory(Base):
    """Frozen snapshot of a prior Patient version.

    Insert-only: rows are never updated or deleted once written.
    """

    __tablename__ = "patient_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    version_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    resource: Mapped[dict] = mapped_column(DocumentType, nullable=False)
    txid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<PatientHistory(id={self.id}, version={self.version_id})>"
