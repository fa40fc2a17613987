"""Denormalized search index tables for Patient documents.

One table per index family. Rows are derived data: they are rebuilt from
the document body on every write and removed with the owning patient row.
"""

import uuid

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from patientstore.database import Base

# SQLite only autoincrements INTEGER PRIMARY KEY columns
SurrogateKey = BigInteger().with_variant(Integer(), "sqlite")


def _owner_column() -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("patient.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class PatientNameIndex(Base):
    """One row per HumanName element."""

    __tablename__ = "patient_name_index"

    idx_id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    patient_id: Mapped[uuid.UUID] = _owner_column()
    family_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    given_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    name_use: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_patient_name_family", "family_name"),
        Index("idx_patient_name_given", "given_name"),
    )


class PatientIdentifierIndex(Base):
    """One row per Identifier element with a value."""

    __tablename__ = "patient_identifier_index"

    idx_id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    patient_id: Mapped[uuid.UUID] = _owner_column()
    identifier_value: Mapped[str] = mapped_column(String(255), nullable=False)
    identifier_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    identifier_system: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_patient_identifier_value", "identifier_value"),
        Index("idx_patient_identifier_system", "identifier_system"),
    )


class PatientTelecomIndex(Base):
    """One row per ContactPoint element with a value."""

    __tablename__ = "patient_telecom_index"

    idx_id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    patient_id: Mapped[uuid.UUID] = _owner_column()
    telecom_value: Mapped[str] = mapped_column(String(255), nullable=False)
    telecom_system: Mapped[str | None] = mapped_column(String(50), nullable=True)
    telecom_use: Mapped[str | None] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index("idx_patient_telecom_value", "telecom_value"),)


class PatientAddressIndex(Base):
    """One row per Address element with a city, country or text.

    Several addresses in the same city/country are allowed.
    """

    __tablename__ = "patient_address_index"

    idx_id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    patient_id: Mapped[uuid.UUID] = _owner_column()
    city: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    address_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_patient_address_city", "city"),
        Index("idx_patient_address_country", "country"),
    )
