"""initial_patient_schema

Revision ID: 0001_initial_patient_schema
Revises:
Create Date: 2026-10-18 09:12:40.511203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial_patient_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

DOCUMENT = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
SURROGATE_KEY = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

INDEX_TABLES = (
    "patient_name_index",
    "patient_identifier_index",
    "patient_telecom_index",
    "patient_address_index",
)


def _index_table(name: str, *columns: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("idx_id", SURROGATE_KEY, autoincrement=True, nullable=False),
        sa.Column("patient_id", sa.Uuid(as_uuid=True), nullable=False),
        *columns,
        sa.ForeignKeyConstraint(["patient_id"], ["patient.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("idx_id"),
    )
    op.create_index(f"ix_{name}_patient_id", name, ["patient_id"], unique=False)


def upgrade() -> None:
    """Create patient, patient_history and the search index tables."""
    op.create_table(
        "patient",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource", DOCUMENT, nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("txid", sa.BigInteger(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("gender", sa.String(20), nullable=True),
        sa.Column("birth_date", sa.String(10), nullable=True),
        sa.Column("active", sa.String(5), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_patient_status", "patient", ["status"], unique=False)
    op.create_index("idx_patient_gender", "patient", ["gender"], unique=False)
    op.create_index("idx_patient_birth_date", "patient", ["birth_date"], unique=False)
    op.create_index("idx_patient_ts", "patient", ["ts"], unique=False)

    # Insert-only; (id, version_id) is unique per archived version
    op.create_table(
        "patient_history",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("resource", DOCUMENT, nullable=False),
        sa.Column("txid", sa.BigInteger(), nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.PrimaryKeyConstraint("id", "version_id"),
    )

    _index_table(
        "patient_name_index",
        sa.Column("family_name", sa.String(255), nullable=True),
        sa.Column("given_name", sa.String(255), nullable=True),
        sa.Column("name_text", sa.Text(), nullable=True),
        sa.Column("name_use", sa.String(50), nullable=True),
    )
    op.create_index("idx_patient_name_family", "patient_name_index", ["family_name"])
    op.create_index("idx_patient_name_given", "patient_name_index", ["given_name"])

    _index_table(
        "patient_identifier_index",
        sa.Column("identifier_value", sa.String(255), nullable=False),
        sa.Column("identifier_type", sa.String(100), nullable=True),
        sa.Column("identifier_system", sa.String(255), nullable=True),
    )
    op.create_index(
        "idx_patient_identifier_value", "patient_identifier_index", ["identifier_value"]
    )
    op.create_index(
        "idx_patient_identifier_system", "patient_identifier_index", ["identifier_system"]
    )

    _index_table(
        "patient_telecom_index",
        sa.Column("telecom_value", sa.String(255), nullable=False),
        sa.Column("telecom_system", sa.String(50), nullable=True),
        sa.Column("telecom_use", sa.String(50), nullable=True),
    )
    op.create_index("idx_patient_telecom_value", "patient_telecom_index", ["telecom_value"])

    _index_table(
        "patient_address_index",
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("postal_code", sa.String(20), nullable=True),
        sa.Column("address_text", sa.Text(), nullable=True),
    )
    op.create_index("idx_patient_address_city", "patient_address_index", ["city"])
    op.create_index("idx_patient_address_country", "patient_address_index", ["country"])

    # Trigram indexes back case-insensitive substring search on PostgreSQL
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
        op.execute(
            "CREATE INDEX idx_patient_name_family_trgm "
            "ON patient_name_index USING gin (lower(family_name) gin_trgm_ops)"
        )
        op.execute(
            "CREATE INDEX idx_patient_name_given_trgm "
            "ON patient_name_index USING gin (lower(given_name) gin_trgm_ops)"
        )


def downgrade() -> None:
    """Drop all patient tables."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP INDEX IF EXISTS idx_patient_name_given_trgm")
        op.execute("DROP INDEX IF EXISTS idx_patient_name_family_trgm")
    for name in reversed(INDEX_TABLES):
        op.drop_table(name)
    op.drop_table("patient_history")
    op.drop_index("idx_patient_ts", table_name="patient")
    op.drop_index("idx_patient_birth_date", table_name="patient")
    op.drop_index("idx_patient_gender", table_name="patient")
    op.drop_index("idx_patient_status", table_name="patient")
    op.drop_table("patient")
