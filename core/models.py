"""
DraftDesk Database Models
PostgreSQL (or SQLite for local runs) schema
"""

from datetime import datetime
from enum import Enum as PyEnum
import uuid
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Index, UniqueConstraint, Enum, JSON, event
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base, object_session

import core.config as config
from core.errors import ImmutableVersionError

DB_BACKEND_EFFECTIVE = config.DB_BACKEND_EFFECTIVE

JSON_TYPE = JSONB if DB_BACKEND_EFFECTIVE == "postgres" else JSON
UUID_TYPE = UUID(as_uuid=False) if DB_BACKEND_EFFECTIVE == "postgres" else String(36)


def _uuid_default() -> str:
    return str(uuid.uuid4())

Base = declarative_base()

# =============================================================================
# Enums
# =============================================================================

class ContentStatus(str, PyEnum):
    draft = "draft"
    in_review = "in_review"
    ready_for_publish = "ready_for_publish"
    published = "published"
    archived = "archived"


class ContentType(str, PyEnum):
    blog_post = "blog_post"
    recipe = "recipe"
    faq_page = "faq_page"
    course = "course"
    how_to = "how_to"


class IngestStatus(str, PyEnum):
    pending = "pending"
    ingested = "ingested"
    failed = "failed"


class ChatRole(str, PyEnum):
    user = "user"
    assistant = "assistant"
    system = "system"


def _enum_column(enum_cls, name: str):
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=50,
        values_callable=lambda members: [member.value for member in members],
    )


# =============================================================================
# Organization membership (read-only mirror of the auth provider)
# =============================================================================

class OrganizationMember(Base):
    __tablename__ = "organization_members"

    organization_id = Column(String(36), primary_key=True)
    user_id = Column(String(255), primary_key=True)
    role = Column(String(50), nullable=False, default="member")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_organization_members_user", "user_id"),
    )


# =============================================================================
# Source Content
# =============================================================================

class SourceContent(Base):
    __tablename__ = "source_content"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    organization_id = Column(String(36), nullable=False)
    source_type = Column(String(50), nullable=False, default="manual")  # transcript, youtube, url, document
    external_id = Column(String(255))
    title = Column(String(500))
    source_text = Column(Text)
    metadata_ = Column("metadata", JSON_TYPE, default=dict)
    ingest_status = Column(
        _enum_column(IngestStatus, "ingest_status"),
        default=IngestStatus.pending,
        nullable=False,
    )
    created_by_user_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_source_content_org_external_id", "organization_id", "external_id"),
        Index("ix_source_content_org_updated", "organization_id", "updated_at"),
    )


# =============================================================================
# Content
# =============================================================================

class Content(Base):
    __tablename__ = "content"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    organization_id = Column(String(36), nullable=False)
    slug = Column(String(255), nullable=False)
    title = Column(String(500), nullable=False)
    status = Column(
        _enum_column(ContentStatus, "content_status"),
        default=ContentStatus.draft,
        nullable=False,
    )
    content_type = Column(
        _enum_column(ContentType, "content_type"),
        default=ContentType.blog_post,
        nullable=False,
    )
    source_content_id = Column(UUID_TYPE, ForeignKey("source_content.id", ondelete="SET NULL"))
    # Always a content_versions row of this same content, or null.
    current_version_id = Column(UUID_TYPE)
    created_by_user_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "slug", name="uq_content_org_slug"),
        Index("ix_content_org_updated", "organization_id", "updated_at"),
    )


class ContentVersion(Base):
    """Append-only snapshot of a content's body, frontmatter and sections."""
    __tablename__ = "content_versions"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    content_id = Column(UUID_TYPE, ForeignKey("content.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(String(36), nullable=False)
    version = Column(Integer, nullable=False)
    frontmatter = Column(JSON_TYPE, default=dict)
    body_markdown = Column(Text, nullable=False, default="")
    sections = Column(JSON_TYPE, default=list)
    assets = Column(JSON_TYPE, default=dict)
    seo_snapshot = Column(JSON_TYPE, default=dict)
    created_by_user_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("content_id", "version", name="uq_content_versions_content_version"),
        Index("ix_content_versions_content_created", "content_id", "created_at"),
    )


# =============================================================================
# Chat sessions (one per content, per organization)
# =============================================================================

class ChatSession(Base):
    __tablename__ = "content_chat_sessions"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    organization_id = Column(String(36), nullable=False)
    content_id = Column(UUID_TYPE, ForeignKey("content.id", ondelete="CASCADE"))
    source_content_id = Column(UUID_TYPE, ForeignKey("source_content.id", ondelete="SET NULL"))
    created_by_user_id = Column(String(255))
    status = Column(String(50), nullable=False, default="active")
    metadata_ = Column("metadata", JSON_TYPE, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "content_id", name="uq_content_chat_sessions_org_content"),
    )


class ChatMessage(Base):
    __tablename__ = "content_chat_messages"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    session_id = Column(UUID_TYPE, ForeignKey("content_chat_sessions.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(String(36), nullable=False)
    role = Column(_enum_column(ChatRole, "chat_role"), nullable=False)
    content = Column(Text, nullable=False)
    payload = Column(JSON_TYPE)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_content_chat_messages_session_created", "session_id", "created_at"),
    )


class ChatLogEntry(Base):
    __tablename__ = "content_chat_logs"

    id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    session_id = Column(UUID_TYPE, ForeignKey("content_chat_sessions.id", ondelete="CASCADE"), nullable=False)
    organization_id = Column(String(36), nullable=False)
    log_type = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON_TYPE)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_content_chat_logs_session_created", "session_id", "created_at"),
    )


# =============================================================================
# Audit Events
# =============================================================================

class AuditEvent(Base):
    __tablename__ = "audit_events"

    event_id = Column(UUID_TYPE, primary_key=True, default=_uuid_default)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    event_type = Column(String(100), nullable=False)
    event_version = Column(Integer, default=1, nullable=False)
    actor_type = Column(String(50), nullable=False)
    actor_id = Column(String(255))
    org_id = Column(String(255))
    user_id = Column(String(255))
    target_type = Column(String(50), nullable=False)
    target_ids = Column(JSON_TYPE, nullable=False)
    request_id = Column(String(255))
    metadata_ = Column("metadata", JSON_TYPE)

    __table_args__ = (
        Index("ix_audit_events_created_at", "created_at"),
        Index("ix_audit_events_event_type", "event_type"),
        Index("ix_audit_events_org_id", "org_id"),
        Index("ix_audit_events_user_id", "user_id"),
    )


@event.listens_for(ContentVersion, "before_update")
def _reject_content_version_update(mapper, connection, target) -> None:
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableVersionError(f"content version {target.id} is immutable")


__all__ = [
    "Base",
    "ContentStatus",
    "ContentType",
    "IngestStatus",
    "ChatRole",
    "OrganizationMember",
    "SourceContent",
    "Content",
    "ContentVersion",
    "ChatSession",
    "ChatMessage",
    "ChatLogEntry",
    "AuditEvent",
]
