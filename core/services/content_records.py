"""
Content and source-content records.

Content rows are created here (with a slug that is unique per
organization); their bodies only change through content_versions.
Source rows are created on submission and afterwards only move through
the ingest lifecycle pending -> ingested | failed.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.audit import log_event
from core.audit_constants import EVENT_CONTENT_CREATED, EVENT_SOURCE_INGEST_STATUS_CHANGED
from core.db import DB
from core.errors import ValidationIssue
from core.models import Content, ContentStatus, ContentType, IngestStatus, SourceContent
from core.services.content_sections import slugify_title
from core.services.workspace_cache import invalidate_workspace
from core.services.content_shared import (
    _enum_value,
    _require_content,
    _require_source,
    _serialize_content,
    _serialize_source,
    _validate_enum,
    _validate_metadata,
    _validate_optional_text,
    _validate_organization_id,
    _validate_required_text,
    _validate_uuid,
    logger,
    MAX_BODY_LENGTH,
    MAX_SHORT_TEXT_LENGTH,
    MAX_TITLE_LENGTH,
)

SLUG_ATTEMPTS = 50
_INGEST_TRANSITIONS = {
    IngestStatus.pending: {IngestStatus.ingested, IngestStatus.failed},
    IngestStatus.ingested: set(),
    IngestStatus.failed: set(),
}


def _slug_taken(db, organization_id: str, slug: str) -> bool:
    return (
        db.query(Content.id)
        .filter(Content.organization_id == organization_id)
        .filter(Content.slug == slug)
        .first()
        is not None
    )


def _unique_slug(db, organization_id: str, base_slug: str) -> str:
    if not _slug_taken(db, organization_id, base_slug):
        return base_slug
    for suffix in range(2, SLUG_ATTEMPTS + 2):
        candidate = f"{base_slug}-{suffix}"
        if not _slug_taken(db, organization_id, candidate):
            return candidate
    raise ValidationIssue(
        f"Could not allocate a unique slug for '{base_slug}'",
        field="slug",
        error_type="conflict",
    )


def create_content(
    *,
    organization_id: str,
    title: str,
    created_by_user_id: Optional[str],
    slug: Optional[str] = None,
    content_type: str = ContentType.blog_post.value,
    status: str = ContentStatus.draft.value,
    source_content_id: Optional[str] = None,
) -> dict:
    """Create a content row with no versions (``current_version_id`` stays null)."""
    organization_id = _validate_organization_id(organization_id)
    _validate_required_text(title, "title", MAX_TITLE_LENGTH)
    _validate_optional_text(slug, "slug", MAX_SHORT_TEXT_LENGTH)
    content_type_value = _validate_enum(content_type, ContentType, "content_type")
    status_value = _validate_enum(status, ContentStatus, "status")
    if source_content_id is not None:
        source_content_id = _validate_uuid(source_content_id, "source_content_id")

    base_slug = slugify_title(slug or title)
    if not base_slug:
        raise ValidationIssue("slug could not be derived from title", field="slug", error_type="invalid_value")

    db = DB.SessionLocal()
    try:
        if source_content_id:
            _require_source(db, organization_id, source_content_id)
        content = Content(
            organization_id=organization_id,
            slug=_unique_slug(db, organization_id, base_slug),
            title=title.strip(),
            content_type=content_type_value,
            status=status_value,
            source_content_id=source_content_id,
            created_by_user_id=created_by_user_id,
        )
        db.add(content)
        db.flush()
        log_event(
            db,
            event_type=EVENT_CONTENT_CREATED,
            actor_type="user",
            actor_id=created_by_user_id,
            org_id=organization_id,
            user_id=created_by_user_id,
            target_type="content",
            target_ids=[str(content.id)],
            metadata={"slug": content.slug, "content_type": content_type_value.value},
        )
        db.commit()
        db.refresh(content)
        logger.info(
            "content_created",
            extra={"organization_id": organization_id, "content_id": str(content.id), "slug": content.slug},
        )
        return {"status": "ok", "content": _serialize_content(content)}
    except IntegrityError as exc:
        db.rollback()
        raise ValidationIssue(
            f"Slug already exists in this organization: {base_slug}",
            field="slug",
            error_type="conflict",
        ) from exc
    finally:
        db.close()


def get_content(content_id: str, *, organization_id: str) -> dict:
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    db = DB.SessionLocal()
    try:
        content = _require_content(db, organization_id, content_id)
        return {"status": "ok", "content": _serialize_content(content)}
    finally:
        db.close()


def create_source_content(
    *,
    organization_id: str,
    source_type: str,
    created_by_user_id: Optional[str],
    title: Optional[str] = None,
    external_id: Optional[str] = None,
    source_text: Optional[str] = None,
    metadata: Optional[dict] = None,
    ingest_status: str = IngestStatus.pending.value,
) -> dict:
    organization_id = _validate_organization_id(organization_id)
    _validate_required_text(source_type, "source_type", 50)
    _validate_optional_text(title, "title", MAX_TITLE_LENGTH)
    _validate_optional_text(external_id, "external_id", MAX_SHORT_TEXT_LENGTH)
    _validate_optional_text(source_text, "source_text", MAX_BODY_LENGTH)
    _validate_metadata(metadata, "metadata")
    status_value = _validate_enum(ingest_status, IngestStatus, "ingest_status")

    db = DB.SessionLocal()
    try:
        source = SourceContent(
            organization_id=organization_id,
            source_type=source_type.strip().lower(),
            external_id=external_id.strip() if external_id else None,
            title=title.strip() if title else None,
            source_text=source_text,
            metadata_=metadata or {},
            ingest_status=status_value,
            created_by_user_id=created_by_user_id,
        )
        db.add(source)
        db.commit()
        db.refresh(source)
        return {"status": "ok", "source_content": _serialize_source(source)}
    finally:
        db.close()


def get_source_content(source_id: str, *, organization_id: str) -> dict:
    organization_id = _validate_organization_id(organization_id)
    source_id = _validate_uuid(source_id, "source_content_id")
    db = DB.SessionLocal()
    try:
        source = _require_source(db, organization_id, source_id)
        return {"status": "ok", "source_content": _serialize_source(source)}
    finally:
        db.close()


def update_ingest_status(
    source_id: str,
    status: str,
    *,
    organization_id: str,
    source_text: Optional[str] = None,
    error: Optional[str] = None,
) -> dict:
    """Move a source through its ingest lifecycle; only pending sources can change."""
    organization_id = _validate_organization_id(organization_id)
    source_id = _validate_uuid(source_id, "source_content_id")
    target = _validate_enum(status, IngestStatus, "status")
    _validate_optional_text(source_text, "source_text", MAX_BODY_LENGTH)
    _validate_optional_text(error, "error", MAX_SHORT_TEXT_LENGTH)

    db = DB.SessionLocal()
    try:
        source = _require_source(db, organization_id, source_id)
        current = IngestStatus(_enum_value(source.ingest_status))
        if target != current and target not in _INGEST_TRANSITIONS[current]:
            raise ValidationIssue(
                f"ingest_status cannot move from {current.value} to {target.value}",
                field="status",
                error_type="invalid_transition",
            )
        source.ingest_status = target
        if source_text is not None:
            source.source_text = source_text
        if error:
            meta = dict(source.metadata_ or {})
            meta["ingest_error"] = error
            source.metadata_ = meta
        source.updated_at = datetime.utcnow()
        log_event(
            db,
            event_type=EVENT_SOURCE_INGEST_STATUS_CHANGED,
            actor_type="system",
            org_id=organization_id,
            target_type="source_content",
            target_ids=[str(source.id)],
            metadata={"from_status": current.value, "to_status": target.value},
        )
        linked_content_ids = [
            str(row[0])
            for row in db.query(Content.id)
            .filter(Content.organization_id == organization_id)
            .filter(Content.source_content_id == source.id)
            .all()
        ]
        db.commit()
        db.refresh(source)
        result = {"status": "ok", "source_content": _serialize_source(source)}
    finally:
        db.close()

    for content_id in linked_content_ids:
        invalidate_workspace(organization_id, content_id)
    return result
