"""create marketplace tables

Revision ID: 5a1d0c3e8b21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5a1d0c3e8b21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _indexes(table, columns):
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column], unique=False)


def _drop_indexes(table, columns):
    for column in reversed(columns):
        op.drop_index(f"ix_{table}_{column}", table_name=table)


INDEXES = {
    "profiles": ["id", "role", "agency_id"],
    "import_tokens": ["id", "developer_id"],
    "properties": ["id", "status", "import_token_id", "creator_id", "creator_type"],
    "unit_types": ["id", "project_id", "developer_id"],
    "developer_agency_contracts": ["id", "developer_id", "agency_id", "status"],
    "agent_projects": ["id", "agent_id", "project_id"],
    "agent_unit_types": ["id", "agent_id", "unit_type_id"],
    "page_views": ["id", "property_id", "profile_id", "viewer_id", "viewed_at"],
    "audit_logs": [
        "id", "actor_id", "actor_email", "action", "entity_type", "entity_id",
        "source", "status", "project_id", "risk_level",
    ],
}


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("agency_id", sa.String(length=36), nullable=True),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("api_token", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("api_token"),
    )

    op.create_table(
        "import_tokens",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("developer_id", sa.String(length=36), nullable=False),
        sa.Column("project_count", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=False),
        sa.Column("lat", sa.Float(), nullable=True),
        sa.Column("lng", sa.Float(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("videos", sa.JSON(), nullable=False),
        sa.Column("amenities", sa.JSON(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="Apartment"),
        sa.Column("contract_type", sa.String(), nullable=False, server_default="Sale"),
        sa.Column("completion_status", sa.String(), nullable=True),
        sa.Column("payment_plan", sa.String(), nullable=True),
        sa.Column("handover_date", sa.String(), nullable=True),
        sa.Column("first_payment_percent", sa.Float(), nullable=True),
        sa.Column("handover_percent", sa.Float(), nullable=True),
        sa.Column("brochure_url", sa.String(), nullable=True),
        sa.Column("is_prelaunch", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("launch_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entry_type", sa.String(), nullable=False, server_default="manual"),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("size_range_min", sa.Integer(), nullable=True),
        sa.Column("size_range_max", sa.Integer(), nullable=True),
        sa.Column("unit_type_names", sa.JSON(), nullable=False),
        sa.Column("import_token_id", sa.String(length=36), nullable=True),
        sa.Column("creator_id", sa.String(length=36), nullable=False),
        sa.Column("creator_type", sa.String(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["import_token_id"], ["import_tokens.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "unit_types",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("developer_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("size_range", sa.String(), nullable=True),
        sa.Column("price_range", sa.String(), nullable=True),
        sa.Column("floor_range", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="available"),
        sa.Column("units_available", sa.Integer(), nullable=True),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("floor_plan_image", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["project_id"], ["properties.id"]),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "developer_agency_contracts",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("developer_id", sa.String(length=36), nullable=False),
        sa.Column("agency_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("developer_contract_url", sa.String(), nullable=True),
        sa.Column("agency_license_url", sa.String(), nullable=True),
        sa.Column("agency_signed_contract_url", sa.String(), nullable=True),
        sa.Column("agency_registration_url", sa.String(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("developer_id", "agency_id", name="uq_developer_agency"),
    )

    op.create_table(
        "agent_projects",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("agent_id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["agent_id"], ["profiles.id"]),
        sa.ForeignKeyConstraint(["project_id"], ["properties.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agent_id", "project_id", name="uq_agent_project"),
    )

    op.create_table(
        "agent_unit_types",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("agent_id", sa.String(length=36), nullable=False),
        sa.Column("unit_type_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["unit_type_id"], ["unit_types.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("agent_id", "unit_type_id", name="uq_agent_unit_type"),
    )

    op.create_table(
        "page_views",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=True),
        sa.Column("profile_id", sa.String(length=36), nullable=True),
        sa.Column("viewer_id", sa.String(length=36), nullable=True),
        sa.Column("user_agent", sa.String(), nullable=True),
        sa.Column("viewed_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=False),
        sa.Column("actor_email", sa.String(), nullable=True),
        sa.Column("actor_role", sa.String(), nullable=True),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("project_id", sa.String(length=36), nullable=True),
        sa.Column("risk_level", sa.String(), nullable=False, server_default="low"),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    for table, columns in INDEXES.items():
        _indexes(table, columns)


def downgrade() -> None:
    """Downgrade schema."""
    for table, columns in reversed(list(INDEXES.items())):
        _drop_indexes(table, columns)

    op.drop_table("audit_logs")
    op.drop_table("page_views")
    op.drop_table("agent_unit_types")
    op.drop_table("agent_projects")
    op.drop_table("developer_agency_contracts")
    op.drop_table("unit_types")
    op.drop_table("properties")
    op.drop_table("import_tokens")
    op.drop_table("profiles")
