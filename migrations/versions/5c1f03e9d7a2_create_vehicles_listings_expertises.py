"""create vehicles, listings and expertises

Revision ID: 5c1f03e9d7a2
Revises: ab7ddd444281
Create Date: 2026-09-28 10:31:07.562930

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c1f03e9d7a2'
down_revision: Union[str, None] = 'ab7ddd444281'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("registration_number", sa.String(50), nullable=False),
        sa.Column("vehicle_type", sa.String(50), nullable=False),
        sa.Column("mileage", sa.Float(), nullable=True),
        sa.Column("color", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_vehicles_owner_id", "vehicles", ["owner_id"])

    op.create_table(
        "listings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "listing_type",
            sa.Enum("SALE", "RENT", name="listing_types", native_enum=False),
            nullable=False,
        ),
        sa.Column("owner_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("vehicle_id", sa.String(36), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column(
            "currency",
            sa.Enum("TND", "EUR", "USD", name="currencies", native_enum=False),
            nullable=False,
        ),
        sa.Column("is_price_negotiable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contact_phone", sa.String(20), nullable=True),
        sa.Column("location", sa.String(100), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "PENDING_REVIEW",
                "PUBLISHED",
                "REJECTED",
                "ARCHIVED",
                name="listing_statuses",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("expiration_date", sa.DateTime(), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])
    op.create_index("ix_listings_vehicle_id", "listings", ["vehicle_id"])
    op.create_index("ix_listings_status", "listings", ["status"])

    op.create_table(
        "expertises",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "listing_id",
            sa.String(36),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("expert_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "decision",
            sa.Enum("PENDING", "APPROVED", "REJECTED", name="expertise_decisions", native_enum=False),
            nullable=False,
        ),
        sa.Column("rejection_reason", sa.String(200), nullable=True),
        sa.Column("rejection_feedback", sa.String(1000), nullable=True),
        sa.Column("document_url", sa.String(500), nullable=True),
        sa.Column("technical_report", sa.String(5000), nullable=True),
        sa.Column("condition_score", sa.Integer(), nullable=True),
        sa.Column("estimated_value", sa.Float(), nullable=True),
        sa.Column("inspection_date", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("listing_id", name="uq_expertises_listing_id"),
    )


def downgrade() -> None:
    op.drop_table("expertises")
    op.drop_index("ix_listings_status", table_name="listings")
    op.drop_index("ix_listings_vehicle_id", table_name="listings")
    op.drop_index("ix_listings_owner_id", table_name="listings")
    op.drop_table("listings")
    op.drop_index("ix_vehicles_owner_id", table_name="vehicles")
    op.drop_table("vehicles")
