"""init portfolio schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _insp():
    return inspect(op.get_bind())


def _has_table(name: str) -> bool:
    return name in _insp().get_table_names()


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    if not _has_table("app_users"):
        op.create_table(
            "app_users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("display_name", sa.String(length=160), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    if not _has_table("properties"):
        op.create_table(
            "properties",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("title", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("street", sa.String(length=255), nullable=False),
            sa.Column("city", sa.String(length=120), nullable=False),
            sa.Column("postal_code", sa.String(length=10), nullable=False),
            sa.Column("country", sa.String(length=80), nullable=False, server_default="France"),
            sa.Column("price_amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("price_currency", sa.String(length=3), nullable=False, server_default="EUR"),
            sa.Column("surface", sa.Float(), nullable=False),
            sa.Column("rooms", sa.Integer(), nullable=False),
            sa.Column("bedrooms", sa.Integer(), nullable=True),
            sa.Column("bathrooms", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="searching"),
            sa.Column("current_step_id", sa.Integer(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index("ix_properties_owner_id", "properties", ["owner_id"])
        op.create_index("ix_properties_city", "properties", ["city"])
        op.create_index("ix_properties_status", "properties", ["status"])
        op.create_index("ix_properties_owner_created", "properties", ["owner_id", "created_at"])

    if not _has_table("property_shares"):
        op.create_table(
            "property_shares",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="viewer"),
            sa.Column("shared_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("property_id", "user_id", name="uq_property_shares_property_user"),
        )
        op.create_index("ix_property_shares_property_id", "property_shares", ["property_id"])
        op.create_index("ix_property_shares_user_id", "property_shares", ["user_id"])

    if not _has_table("steps"):
        op.create_table(
            "steps",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="todo"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("step_order", sa.Integer(), nullable=False),
            sa.Column("planned_start", sa.DateTime(), nullable=True),
            sa.Column("planned_end", sa.DateTime(), nullable=True),
            sa.Column("actual_start", sa.DateTime(), nullable=True),
            sa.Column("actual_end", sa.DateTime(), nullable=True),
            sa.Column("deadline", sa.DateTime(), nullable=True),
            sa.Column("completion_percentage", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index("ix_steps_property_id", "steps", ["property_id"])
        op.create_index("ix_steps_category", "steps", ["category"])
        op.create_index("ix_steps_status", "steps", ["status"])
        op.create_index("ix_steps_property_order", "steps", ["property_id", "step_order"])
        op.create_index("ix_steps_deadline", "steps", ["deadline"])

    if not _has_table("step_checklist_items"):
        op.create_table(
            "step_checklist_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("step_id", sa.Integer(), sa.ForeignKey("steps.id", ondelete="CASCADE"), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("item", sa.String(length=255), nullable=False),
            sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("completed_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
        )
        op.create_index("ix_step_checklist_items_step_id", "step_checklist_items", ["step_id"])

    if not _has_table("step_costs"):
        op.create_table(
            "step_costs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("step_id", sa.Integer(), sa.ForeignKey("steps.id", ondelete="CASCADE"), nullable=False),
            sa.Column("category", sa.String(length=30), nullable=False),
            sa.Column("label", sa.String(length=160), nullable=True),
            sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("currency", sa.String(length=3), nullable=False, server_default="EUR"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_step_costs_step_id", "step_costs", ["step_id"])
        op.create_index("ix_step_costs_category", "step_costs", ["category"])

    if not _has_table("documents"):
        op.create_table(
            "documents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("step_id", sa.Integer(), sa.ForeignKey("steps.id", ondelete="SET NULL"), nullable=True),
            sa.Column("uploaded_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=False),
            sa.Column("doc_type", sa.String(length=20), nullable=False, server_default="other"),
            sa.Column("original_name", sa.String(length=255), nullable=False),
            sa.Column("filename", sa.String(length=255), nullable=False),
            sa.Column("storage_path", sa.String(length=500), nullable=False),
            sa.Column("mime_type", sa.String(length=120), nullable=False),
            sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("checksum", sa.String(length=128), nullable=True),
            sa.Column("version", sa.String(length=20), nullable=False, server_default="1.0"),
            sa.Column("download_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_downloaded_at", sa.DateTime(), nullable=True),
            sa.Column("last_downloaded_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
            sa.Column("expiration_date", sa.DateTime(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index("ix_documents_property_id", "documents", ["property_id"])
        op.create_index("ix_documents_step_id", "documents", ["step_id"])
        op.create_index("ix_documents_category", "documents", ["category"])
        op.create_index("ix_documents_doc_type", "documents", ["doc_type"])
        op.create_index("ix_documents_property_created", "documents", ["property_id", "created_at"])

    if not _has_table("document_shares"):
        op.create_table(
            "document_shares",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "document_id", sa.Integer(), sa.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("permission", sa.String(length=20), nullable=False, server_default="view"),
            sa.Column("shared_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("document_id", "user_id", name="uq_document_shares_document_user"),
        )
        op.create_index("ix_document_shares_document_id", "document_shares", ["document_id"])
        op.create_index("ix_document_shares_user_id", "document_shares", ["user_id"])

    if not _has_table("document_versions"):
        op.create_table(
            "document_versions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "document_id", sa.Integer(), sa.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("version", sa.String(length=20), nullable=False),
            sa.Column("filename", sa.String(length=255), nullable=False),
            sa.Column("storage_path", sa.String(length=500), nullable=False),
            sa.Column("size_bytes", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("uploaded_by_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("changelog", sa.Text(), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_document_versions_document_id", "document_versions", ["document_id"])

    if not _has_table("calendar_events"):
        op.create_table(
            "calendar_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column(
                "property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="SET NULL"), nullable=True
            ),
            sa.Column("step_id", sa.Integer(), sa.ForeignKey("steps.id", ondelete="SET NULL"), nullable=True),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("event_type", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="scheduled"),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("start_date", sa.DateTime(), nullable=False),
            sa.Column("end_date", sa.DateTime(), nullable=False),
            sa.Column("location", sa.String(length=255), nullable=True),
            sa.Column("outcome", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
        )
        op.create_index("ix_calendar_events_owner_id", "calendar_events", ["owner_id"])
        op.create_index("ix_calendar_events_property_id", "calendar_events", ["property_id"])
        op.create_index("ix_calendar_events_step_id", "calendar_events", ["step_id"])
        op.create_index("ix_calendar_events_event_type", "calendar_events", ["event_type"])
        op.create_index("ix_calendar_events_status", "calendar_events", ["status"])
        op.create_index("ix_calendar_events_owner_start", "calendar_events", ["owner_id", "start_date"])

    if not _has_table("event_shares"):
        op.create_table(
            "event_shares",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "event_id", sa.Integer(), sa.ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False
            ),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="viewer"),
            sa.Column("shared_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("event_id", "user_id", name="uq_event_shares_event_user"),
        )
        op.create_index("ix_event_shares_event_id", "event_shares", ["event_id"])
        op.create_index("ix_event_shares_user_id", "event_shares", ["user_id"])

    if not _has_table("audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
            sa.Column("action", sa.String(length=80), nullable=False),
            sa.Column("entity_type", sa.String(length=80), nullable=False),
            sa.Column("entity_id", sa.String(length=80), nullable=False),
            sa.Column("before_json", sa.Text(), nullable=True),
            sa.Column("after_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table("workflow_events"):
        op.create_table(
            "workflow_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
            sa.Column("event_type", sa.String(length=80), nullable=False),
            sa.Column("payload_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_workflow_events_property_id", "workflow_events", ["property_id"])
        op.create_index("ix_workflow_events_event_type", "workflow_events", ["event_type"])


def downgrade() -> None:
    for name in (
        "workflow_events",
        "audit_events",
        "event_shares",
        "calendar_events",
        "document_versions",
        "document_shares",
        "documents",
        "step_costs",
        "step_checklist_items",
        "steps",
        "property_shares",
        "properties",
        "app_users",
    ):
        if _has_table(name):
            op.drop_table(name)
