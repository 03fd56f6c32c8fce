"""Initial schema: service providers, operation mappings, usage, system config.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ── Service providers ─────────────────────────────────────
    op.create_table(
        "service_providers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("type", sa.String(30), nullable=False, index=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer, nullable=False, server_default="1"),
        sa.Column("config", sa.Text, nullable=False, server_default="{}"),
        sa.Column("capabilities", sa.Text, nullable=False, server_default="[]"),
        sa.Column("limits", sa.Text, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("name", "type", name="uq_service_provider_name_type"),
    )
    op.create_index("ix_service_providers_priority", "service_providers", ["priority", "id"])

    # ── Operation mappings ────────────────────────────────────
    op.create_table(
        "operation_service_mappings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("operation", sa.String(60), nullable=False, index=True),
        sa.Column(
            "provider_id",
            sa.Integer,
            sa.ForeignKey("service_providers.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("is_enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.Integer, nullable=False, server_default="1"),
        sa.Column("config", sa.Text, nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("operation", "provider_id", name="uq_operation_provider"),
    )

    # ── Usage ─────────────────────────────────────────────────
    op.create_table(
        "service_usage",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "provider_id",
            sa.Integer,
            sa.ForeignKey("service_providers.id"),
            nullable=False,
            index=True,
        ),
        sa.Column("operation", sa.String(60), nullable=False),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column("duration_ms", sa.Float, nullable=False, server_default="0"),
        sa.Column("cost", sa.Float, nullable=True),
        sa.Column("tokens_used", sa.Integer, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_service_usage_created", "service_usage", ["created_at"])
    op.create_index(
        "ix_service_usage_provider_operation", "service_usage", ["provider_id", "operation"]
    )

    # ── System config (legacy credential rows) ────────────────
    op.create_table(
        "system_config",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("key", sa.String(120), nullable=False, unique=True),
        sa.Column("value", sa.Text, nullable=False),
        sa.Column("is_encrypted", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("category", sa.String(40), nullable=False, server_default="GENERAL"),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("system_config")
    op.drop_table("service_usage")
    op.drop_table("operation_service_mappings")
    op.drop_table("service_providers")
