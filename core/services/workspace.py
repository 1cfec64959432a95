"""
Workspace compiler.

Builds the read-optimized bundle for one content item: the content row,
its current version (with normalized sections), the linked source, a
summary block and, on request, the chat session's messages and logs.

Lookups start in the caller's active organization. When the content is
not there, the other organizations the user belongs to are searched in
membership order; this is read-only and does not change which
organization is active.
"""

from __future__ import annotations

from typing import Optional

from core.db import DB
from core.errors import ContentNotFound
from core.models import SourceContent
from core.services.chat_sessions import (
    _find_session,
    _list_logs,
    _list_messages,
    _serialize_log,
    _serialize_message,
    _serialize_session,
)
from core.services.content_sections import count_words, normalize_sections
from core.services.content_shared import (
    _current_version,
    _require_content,
    _serialize_content,
    _serialize_source,
    _serialize_version,
    _validate_organization_id,
    _validate_uuid,
    logger,
)
from core.services.organizations import list_member_organization_ids
from core.services.workspace_cache import get_workspace_cache


def _workspace_summary(content_payload: dict, version_payload: Optional[dict], source_payload: Optional[dict]) -> dict:
    sections = (version_payload or {}).get("sections") or []
    body = (version_payload or {}).get("body_markdown") or ""
    return {
        "title": content_payload["title"],
        "status": content_payload["status"],
        "content_type": content_payload["content_type"],
        "version": version_payload["version"] if version_payload else None,
        "section_count": len(sections),
        "word_count": sum(section.get("word_count") or 0 for section in sections) if sections else count_words(body),
        "section_titles": [section.get("title") for section in sections],
        "diff_stats": (version_payload or {}).get("diff_stats"),
        "source_title": source_payload["title"] if source_payload else None,
        "source_type": source_payload["source_type"] if source_payload else None,
    }


def compile_workspace(db, organization_id: str, content_id: str, include_chat: bool = False) -> dict:
    """Assemble a fresh workspace payload from the database (no cache)."""
    content = _require_content(db, organization_id, content_id)
    content_payload = _serialize_content(content)

    version_payload = None
    version = _current_version(db, content)
    if version is not None:
        version_payload = _serialize_version(version)
        version_payload["sections"] = normalize_sections(version.sections, version.body_markdown)

    source_payload = None
    if content.source_content_id:
        source = (
            db.query(SourceContent)
            .filter(SourceContent.id == content.source_content_id)
            .filter(SourceContent.organization_id == organization_id)
            .first()
        )
        if source is not None:
            source_payload = _serialize_source(source)

    session = _find_session(db, organization_id, content.id)
    chat_messages = None
    chat_logs = None
    if include_chat and session is not None:
        chat_messages = [_serialize_message(row) for row in _list_messages(db, session.id)]
        chat_logs = [_serialize_log(row) for row in _list_logs(db, session.id)]
    elif include_chat:
        chat_messages = []
        chat_logs = []

    return {
        "organization_id": organization_id,
        "content": content_payload,
        "source_content": source_payload,
        "current_version": version_payload,
        "workspace_summary": _workspace_summary(content_payload, version_payload, source_payload),
        "chat_session": _serialize_session(session) if session else None,
        "chat_messages": chat_messages,
        "chat_logs": chat_logs,
    }


def _compile_in_session(organization_id: str, content_id: str, include_chat: bool) -> dict:
    db = DB.SessionLocal()
    try:
        return compile_workspace(db, organization_id, content_id, include_chat)
    finally:
        db.close()


def _get_for_organization(organization_id: str, content_id: str, include_chat: bool) -> dict:
    payload, cache_hit = get_workspace_cache().get_or_compile(
        organization_id,
        content_id,
        include_chat,
        lambda: _compile_in_session(organization_id, content_id, include_chat),
    )
    logger.debug(
        "workspace_loaded",
        extra={"organization_id": organization_id, "content_id": content_id, "cache_hit": cache_hit},
    )
    return payload


def _fallback_organization_ids(user_id: Optional[str], active_organization_id: str) -> list[str]:
    if not user_id:
        return []
    db = DB.SessionLocal()
    try:
        return [
            organization_id
            for organization_id in list_member_organization_ids(db, user_id)
            if organization_id != active_organization_id
        ]
    finally:
        db.close()


def get_workspace(
    organization_id: str,
    content_id: str,
    *,
    include_chat: bool = False,
    user_id: Optional[str] = None,
) -> dict:
    """
    Return the workspace payload for ``content_id``.

    Raises ContentNotFound when neither the active organization nor any
    other organization the user belongs to has the content.
    """
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    include_chat = bool(include_chat)

    try:
        return _get_for_organization(organization_id, content_id, include_chat)
    except ContentNotFound:
        if not user_id:
            raise

    for candidate_id in _fallback_organization_ids(user_id, organization_id):
        try:
            payload = _get_for_organization(candidate_id, content_id, include_chat)
        except ContentNotFound:
            continue
        logger.info(
            "workspace_cross_org_hit",
            extra={
                "active_organization_id": organization_id,
                "organization_id": candidate_id,
                "content_id": content_id,
            },
        )
        return payload

    raise ContentNotFound(f"Content not found: {content_id}", resource_id=content_id)


def get_workspace_header(
    organization_id: str,
    content_id: str,
    *,
    user_id: Optional[str] = None,
) -> dict:
    """Lightweight header view, served from the same cache as the full workspace."""
    payload = get_workspace(organization_id, content_id, include_chat=False, user_id=user_id)
    content = payload["content"]
    version = payload["current_version"]
    return {
        "organization_id": payload["organization_id"],
        "content": {
            key: content[key]
            for key in ("id", "slug", "title", "status", "content_type", "updated_at", "current_version_id")
        },
        "version": {
            "id": version["id"],
            "version": version["version"],
            "created_at": version["created_at"],
            "diff_stats": version["diff_stats"],
        } if version else None,
        "workspace_summary": payload["workspace_summary"],
        "chat_session_id": payload["chat_session"]["id"] if payload["chat_session"] else None,
    }
