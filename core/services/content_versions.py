"""
Version manager: append-only content versions and the current-version pointer.

Every write inserts a new ContentVersion numbered one past the content's
current maximum and repoints ``Content.current_version_id`` in the same
transaction. The content row is locked for the read-max/insert/repoint
sequence where the database supports it; concurrent writers otherwise
resolve to last-commit-wins for the pointer. The workspace cache entry is
invalidated only after the commit.

Section patches call the content generator outside any transaction and
fail closed: a generator error leaves the prior version current.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from core.audit import log_event
from core.audit_constants import (
    EVENT_CONTENT_SECTION_PATCHED,
    EVENT_CONTENT_VERSION_CREATED,
    EVENT_CONTENT_VERSION_REVERTED,
)
from core.context import Mode, coerce_mode
from core.db import DB
from core.errors import (
    GenerationFailure,
    SectionNotFound,
    ValidationIssue,
    VersionNotFound,
    WriteNotAllowed,
)
from core.models import Content, ContentVersion, SourceContent
from core.services.content_generation import (
    ContentGenerator,
    GenerationRequest,
    get_content_generator,
)
from core.services.content_sections import (
    assemble_markdown,
    calculate_diff_stats,
    count_words,
    find_section,
    find_section_line_range,
    normalize_sections,
)
from core.services.content_shared import (
    _current_version,
    _enum_value,
    _require_content,
    _serialize_content,
    _serialize_version,
    _validate_limit,
    _validate_list,
    _validate_metadata,
    _validate_optional_text,
    _validate_organization_id,
    _validate_required_text,
    _validate_uuid,
    logger,
    MAX_BODY_LENGTH,
    MAX_INSTRUCTIONS_LENGTH,
    MAX_RESULT_LIMIT,
    MAX_SECTION_ITEMS,
    MAX_SHORT_TEXT_LENGTH,
)
from core.services.workspace_cache import invalidate_workspace

# Retries when a concurrent writer took the same version number first.
VERSION_WRITE_ATTEMPTS = 3


def _require_writable(mode) -> Mode:
    resolved = coerce_mode(mode, default=Mode.agent)
    if resolved == Mode.chat:
        raise WriteNotAllowed("Writes are not allowed in chat mode")
    return resolved


def _next_version_number(db, content_id: str) -> int:
    latest = (
        db.query(func.max(ContentVersion.version))
        .filter(ContentVersion.content_id == content_id)
        .scalar()
    )
    return (latest or 0) + 1


def _insert_version(
    db,
    content: Content,
    *,
    frontmatter: dict,
    body_markdown: str,
    sections: list,
    assets: dict,
    seo_snapshot: dict,
    created_by_user_id: Optional[str],
) -> ContentVersion:
    """Insert the next version and repoint the content at it (caller commits)."""
    row = ContentVersion(
        content_id=content.id,
        organization_id=content.organization_id,
        version=_next_version_number(db, content.id),
        frontmatter=frontmatter,
        body_markdown=body_markdown,
        sections=sections,
        assets=assets,
        seo_snapshot=seo_snapshot,
        created_by_user_id=created_by_user_id,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    content.current_version_id = row.id
    content.updated_at = datetime.utcnow()
    db.flush()
    return row


def _base_frontmatter(content: Content, frontmatter: Optional[dict]) -> dict:
    merged = dict(frontmatter or {})
    merged.setdefault("title", content.title)
    merged.setdefault("slug", content.slug)
    merged.setdefault("content_type", _enum_value(content.content_type))
    return merged


def _write_with_retry(write_fn):
    """Run ``write_fn(db)`` in a fresh session, retrying version-number collisions."""
    for attempt in range(VERSION_WRITE_ATTEMPTS):
        db = DB.SessionLocal()
        try:
            result = write_fn(db)
            db.commit()
            return result
        except IntegrityError:
            db.rollback()
            if attempt + 1 >= VERSION_WRITE_ATTEMPTS:
                raise
            logger.warning("version_number_conflict_retry", extra={"attempt": attempt + 1})
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
    raise RuntimeError("version write did not complete")


def create_version(
    content_id: str,
    *,
    organization_id: str,
    created_by_user_id: Optional[str],
    frontmatter: Optional[dict] = None,
    body_markdown: Optional[str] = None,
    sections: Optional[list] = None,
    assets: Optional[dict] = None,
    seo_snapshot: Optional[dict] = None,
    mode=Mode.agent,
    actor_type: str = "user",
    request_id: Optional[str] = None,
) -> dict:
    """
    Create the next immutable version of a content and make it current.

    Fields left as ``None`` carry over from the current version. When only
    sections are given, the markdown body is assembled from them.
    """
    _require_writable(mode)
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    _validate_optional_text(created_by_user_id, "created_by_user_id", MAX_SHORT_TEXT_LENGTH)
    _validate_metadata(frontmatter, "frontmatter")
    _validate_metadata(assets, "assets")
    _validate_metadata(seo_snapshot, "seo_snapshot")
    _validate_optional_text(body_markdown, "body_markdown", MAX_BODY_LENGTH)
    _validate_list(sections, "sections", MAX_SECTION_ITEMS)

    def _write(db) -> dict:
        content = _require_content(db, organization_id, content_id, lock=True)
        previous = _current_version(db, content)

        base = frontmatter if frontmatter is not None else (previous.frontmatter if previous else None)
        next_frontmatter = _base_frontmatter(content, base)
        next_frontmatter.pop("diff_stats", None)
        next_frontmatter.pop("last_patched_section_id", None)
        previous_body = previous.body_markdown if previous else ""

        if sections is not None:
            next_sections = normalize_sections(sections, body_markdown)
        else:
            next_sections = normalize_sections(previous.sections if previous else [], previous_body)

        if body_markdown is not None:
            next_body = body_markdown
        elif sections is not None:
            next_body, next_sections = assemble_markdown(next_frontmatter.get("title"), next_sections)
        else:
            next_body = previous_body

        next_frontmatter["diff_stats"] = calculate_diff_stats(previous_body, next_body)
        row = _insert_version(
            db,
            content,
            frontmatter=next_frontmatter,
            body_markdown=next_body,
            sections=next_sections,
            assets=dict(assets if assets is not None else (previous.assets if previous else None) or {}),
            seo_snapshot=dict(
                seo_snapshot if seo_snapshot is not None else (previous.seo_snapshot if previous else None) or {}
            ),
            created_by_user_id=created_by_user_id,
        )
        log_event(
            db,
            event_type=EVENT_CONTENT_VERSION_CREATED,
            actor_type=actor_type,
            actor_id=created_by_user_id,
            org_id=organization_id,
            user_id=created_by_user_id,
            target_type="content_version",
            target_ids=[str(row.id)],
            request_id=request_id,
            metadata={
                "content_id": str(content.id),
                "version": row.version,
                "section_count": len(next_sections),
                "additions": next_frontmatter["diff_stats"]["additions"],
                "deletions": next_frontmatter["diff_stats"]["deletions"],
            },
        )
        return {
            "status": "ok",
            "content": _serialize_content(content),
            "version": _serialize_version(row),
        }

    result = _write_with_retry(_write)
    invalidate_workspace(organization_id, content_id)
    logger.info(
        "version_created",
        extra={
            "organization_id": organization_id,
            "content_id": content_id,
            "version": result["version"]["version"],
        },
    )
    return result


def _load_patch_snapshot(organization_id: str, content_id: str, section_id: str) -> dict:
    db = DB.SessionLocal()
    try:
        content = _require_content(db, organization_id, content_id)
        current = _current_version(db, content)
        if current is None:
            raise ValidationIssue(
                "This content item does not have a version to update",
                field="content_id",
                error_type="no_version",
            )
        sections = normalize_sections(current.sections, current.body_markdown)
        if not sections:
            raise ValidationIssue(
                "This draft has no sections to edit",
                field="section_id",
                error_type="no_sections",
            )
        section = find_section(sections, section_id)
        if section is None:
            raise SectionNotFound("Section not found on this draft", resource_id=section_id)

        source_text = None
        if content.source_content_id:
            source = db.query(SourceContent).filter(SourceContent.id == content.source_content_id).first()
            source_text = source.source_text if source else None

        return {
            "content_title": content.title,
            "content_type": _enum_value(content.content_type),
            "frontmatter": dict(current.frontmatter or {}),
            "section": section,
            "source_text": source_text,
        }
    finally:
        db.close()


def patch_section(
    content_id: str,
    section_id: str,
    instructions: str,
    *,
    organization_id: str,
    user_id: Optional[str],
    mode=Mode.agent,
    temperature: Optional[float] = None,
    generator: Optional[ContentGenerator] = None,
    actor_type: str = "user",
    request_id: Optional[str] = None,
) -> dict:
    """
    Rewrite one section via the content generator and store the result as a new version.

    All other sections are copied unchanged and index order is preserved.
    Returns ``{content, version, markdown, section, line_range, diff_stats}``.
    """
    _require_writable(mode)
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    _validate_required_text(section_id, "section_id", MAX_SHORT_TEXT_LENGTH)
    _validate_required_text(instructions, "instructions", MAX_INSTRUCTIONS_LENGTH)

    snapshot = _load_patch_snapshot(organization_id, content_id, section_id)
    original_section = snapshot["section"]

    generator = generator or get_content_generator()
    try:
        result = generator.generate(
            GenerationRequest(
                instructions=instructions.strip(),
                section_title=original_section.get("title"),
                section_body=original_section.get("body") or "",
                content_title=snapshot["content_title"],
                content_type=snapshot["content_type"],
                frontmatter=snapshot["frontmatter"],
                source_text=snapshot["source_text"],
                temperature=temperature,
            )
        )
    except GenerationFailure:
        logger.warning(
            "section_patch_generation_failed",
            extra={"organization_id": organization_id, "content_id": content_id, "section_id": section_id},
        )
        raise
    updated_body = (result.body or "").strip() if result else ""
    if not updated_body:
        raise GenerationFailure("AI response did not include updated section body")

    original_body = original_section.get("body") or ""
    diff_stats = calculate_diff_stats(original_body, updated_body)

    def _write(db) -> dict:
        content = _require_content(db, organization_id, content_id, lock=True)
        current = _current_version(db, content)
        if current is None:
            raise ValidationIssue(
                "This content item does not have a version to update",
                field="content_id",
                error_type="no_version",
            )
        sections = normalize_sections(current.sections, current.body_markdown)
        target = find_section(sections, section_id)
        if target is None:
            raise SectionNotFound("Section not found on this draft", resource_id=section_id)

        summary = result.summary or target.get("summary")
        replaced = []
        for section in sections:
            if section["id"] != section_id:
                replaced.append(section)
                continue
            meta = dict(section.get("meta") or {})
            if summary:
                meta["summary"] = summary
            replaced.append({
                **section,
                "body": updated_body,
                "summary": summary,
                "word_count": count_words(updated_body),
                "meta": meta,
            })

        frontmatter = _base_frontmatter(content, current.frontmatter)
        markdown, sections_with_offsets = assemble_markdown(frontmatter.get("title"), replaced)
        frontmatter["diff_stats"] = diff_stats
        frontmatter["last_patched_section_id"] = section_id

        row = _insert_version(
            db,
            content,
            frontmatter=frontmatter,
            body_markdown=markdown,
            sections=sections_with_offsets,
            assets=dict(current.assets or {}),
            seo_snapshot=dict(current.seo_snapshot or {}),
            created_by_user_id=user_id,
        )
        log_event(
            db,
            event_type=EVENT_CONTENT_SECTION_PATCHED,
            actor_type=actor_type,
            actor_id=user_id,
            org_id=organization_id,
            user_id=user_id,
            target_type="content_version",
            target_ids=[str(row.id)],
            request_id=request_id,
            metadata={
                "content_id": str(content.id),
                "section_id": section_id,
                "version": row.version,
                "additions": diff_stats["additions"],
                "deletions": diff_stats["deletions"],
            },
        )
        patched = find_section(sections_with_offsets, section_id)
        return {
            "status": "ok",
            "content": _serialize_content(content),
            "version": _serialize_version(row),
            "markdown": markdown,
            "section": {
                "id": patched["id"],
                "title": patched.get("title"),
                "index": patched.get("index"),
            },
            "line_range": find_section_line_range(markdown, section_id, sections_with_offsets),
            "diff_stats": diff_stats,
        }

    payload = _write_with_retry(_write)
    invalidate_workspace(organization_id, content_id)
    logger.info(
        "section_patched",
        extra={
            "organization_id": organization_id,
            "content_id": content_id,
            "section_id": section_id,
            "version": payload["version"]["version"],
        },
    )
    return payload


def revert_to_version(
    content_id: str,
    version_id: str,
    *,
    organization_id: str,
    user_id: Optional[str],
    mode=Mode.agent,
    request_id: Optional[str] = None,
) -> dict:
    """Point the content back at one of its existing versions."""
    _require_writable(mode)
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    version_id = _validate_uuid(version_id, "version_id")

    db = DB.SessionLocal()
    try:
        content = _require_content(db, organization_id, content_id, lock=True)
        version = (
            db.query(ContentVersion)
            .filter(ContentVersion.id == version_id)
            .filter(ContentVersion.content_id == content.id)
            .first()
        )
        if version is None:
            raise VersionNotFound("Version not found for this content", resource_id=version_id)

        previous_version_id = content.current_version_id
        content.current_version_id = version.id
        content.updated_at = datetime.utcnow()
        log_event(
            db,
            event_type=EVENT_CONTENT_VERSION_REVERTED,
            actor_type="user",
            actor_id=user_id,
            org_id=organization_id,
            user_id=user_id,
            target_type="content",
            target_ids=[str(content.id)],
            request_id=request_id,
            metadata={
                "from_version_id": str(previous_version_id) if previous_version_id else None,
                "to_version_id": str(version.id),
                "version": version.version,
            },
        )
        db.commit()
        payload = {
            "status": "ok",
            "content": _serialize_content(content),
            "version": _serialize_version(version),
        }
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    invalidate_workspace(organization_id, content_id)
    logger.info(
        "version_reverted",
        extra={"organization_id": organization_id, "content_id": content_id, "version": payload["version"]["version"]},
    )
    return payload


def list_versions(content_id: str, *, organization_id: str, limit: int = 50) -> dict:
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    _validate_limit(limit, "limit", MAX_RESULT_LIMIT)

    db = DB.SessionLocal()
    try:
        content = _require_content(db, organization_id, content_id)
        rows = (
            db.query(ContentVersion)
            .filter(ContentVersion.content_id == content.id)
            .order_by(ContentVersion.version.desc())
            .limit(limit)
            .all()
        )
        versions = []
        for row in rows:
            item = _serialize_version(row, include_body=False)
            item["is_current"] = str(row.id) == str(content.current_version_id)
            versions.append(item)
        return {
            "status": "ok",
            "content_id": str(content.id),
            "current_version_id": str(content.current_version_id) if content.current_version_id else None,
            "count": len(versions),
            "versions": versions,
        }
    finally:
        db.close()


def get_version(version_id: str, *, organization_id: str) -> dict:
    organization_id = _validate_organization_id(organization_id)
    version_id = _validate_uuid(version_id, "version_id")

    db = DB.SessionLocal()
    try:
        version = (
            db.query(ContentVersion)
            .filter(ContentVersion.id == version_id)
            .filter(ContentVersion.organization_id == organization_id)
            .first()
        )
        if version is None:
            raise VersionNotFound(f"Version not found: {version_id}", resource_id=version_id)
        return {"status": "ok", "version": _serialize_version(version)}
    finally:
        db.close()
