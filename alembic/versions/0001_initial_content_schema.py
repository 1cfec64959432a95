"""Create content, version, source, chat and audit tables.

Revision ID: 0001_initial_content_schema
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_initial_content_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    is_postgres = bind.dialect.name == "postgresql"
    json_type = postgresql.JSONB if is_postgres else sa.JSON
    uuid_type = postgresql.UUID(as_uuid=False) if is_postgres else sa.String(length=36)

    op.create_table(
        "organization_members",
        sa.Column("organization_id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=255), primary_key=True),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="member"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_organization_members_user", "organization_members", ["user_id"])

    op.create_table(
        "source_content",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("source_type", sa.String(length=50), nullable=False, server_default="manual"),
        sa.Column("external_id", sa.String(length=255)),
        sa.Column("title", sa.String(length=500)),
        sa.Column("source_text", sa.Text()),
        sa.Column("metadata", json_type),
        sa.Column("ingest_status", sa.String(length=50), nullable=False, server_default="pending"),
        sa.Column("created_by_user_id", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_source_content_org_external_id",
        "source_content",
        ["organization_id", "external_id"],
    )
    op.create_index(
        "ix_source_content_org_updated",
        "source_content",
        ["organization_id", "updated_at"],
    )

    op.create_table(
        "content",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="draft"),
        sa.Column("content_type", sa.String(length=50), nullable=False, server_default="blog_post"),
        sa.Column(
            "source_content_id",
            uuid_type,
            sa.ForeignKey("source_content.id", ondelete="SET NULL"),
        ),
        sa.Column("current_version_id", uuid_type),
        sa.Column("created_by_user_id", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("organization_id", "slug", name="uq_content_org_slug"),
    )
    op.create_index("ix_content_org_updated", "content", ["organization_id", "updated_at"])

    op.create_table(
        "content_versions",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column(
            "content_id",
            uuid_type,
            sa.ForeignKey("content.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("frontmatter", json_type),
        sa.Column("body_markdown", sa.Text(), nullable=False, server_default=""),
        sa.Column("sections", json_type),
        sa.Column("assets", json_type),
        sa.Column("seo_snapshot", json_type),
        sa.Column("created_by_user_id", sa.String(length=255)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("content_id", "version", name="uq_content_versions_content_version"),
    )
    op.create_index(
        "ix_content_versions_content_created",
        "content_versions",
        ["content_id", "created_at"],
    )

    op.create_table(
        "content_chat_sessions",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("content_id", uuid_type, sa.ForeignKey("content.id", ondelete="CASCADE")),
        sa.Column(
            "source_content_id",
            uuid_type,
            sa.ForeignKey("source_content.id", ondelete="SET NULL"),
        ),
        sa.Column("created_by_user_id", sa.String(length=255)),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="active"),
        sa.Column("metadata", json_type),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("organization_id", "content_id", name="uq_content_chat_sessions_org_content"),
    )

    op.create_table(
        "content_chat_messages",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column(
            "session_id",
            uuid_type,
            sa.ForeignKey("content_chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("payload", json_type),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_content_chat_messages_session_created",
        "content_chat_messages",
        ["session_id", "created_at"],
    )

    op.create_table(
        "content_chat_logs",
        sa.Column("id", uuid_type, primary_key=True),
        sa.Column(
            "session_id",
            uuid_type,
            sa.ForeignKey("content_chat_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("organization_id", sa.String(length=36), nullable=False),
        sa.Column("log_type", sa.String(length=100), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("payload", json_type),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_content_chat_logs_session_created",
        "content_chat_logs",
        ["session_id", "created_at"],
    )

    op.create_table(
        "audit_events",
        sa.Column("event_id", uuid_type, primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_type", sa.String(length=100), nullable=False),
        sa.Column("event_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("actor_type", sa.String(length=50), nullable=False),
        sa.Column("actor_id", sa.String(length=255)),
        sa.Column("org_id", sa.String(length=255)),
        sa.Column("user_id", sa.String(length=255)),
        sa.Column("target_type", sa.String(length=50), nullable=False),
        sa.Column("target_ids", json_type, nullable=False),
        sa.Column("request_id", sa.String(length=255)),
        sa.Column("metadata", json_type),
    )
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_org_id", "audit_events", ["org_id"])
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_user_id", table_name="audit_events")
    op.drop_index("ix_audit_events_org_id", table_name="audit_events")
    op.drop_index("ix_audit_events_event_type", table_name="audit_events")
    op.drop_index("ix_audit_events_created_at", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_content_chat_logs_session_created", table_name="content_chat_logs")
    op.drop_table("content_chat_logs")
    op.drop_index("ix_content_chat_messages_session_created", table_name="content_chat_messages")
    op.drop_table("content_chat_messages")
    op.drop_table("content_chat_sessions")
    op.drop_index("ix_content_versions_content_created", table_name="content_versions")
    op.drop_table("content_versions")
    op.drop_index("ix_content_org_updated", table_name="content")
    op.drop_table("content")
    op.drop_index("ix_source_content_org_updated", table_name="source_content")
    op.drop_index("ix_source_content_org_external_id", table_name="source_content")
    op.drop_table("source_content")
    op.drop_index("ix_organization_members_user", table_name="organization_members")
    op.drop_table("organization_members")
