"""
Chat sessions attached to a content item.

A session is found by (organization, content) and created on first use;
concurrent first uses converge on the same row. Message and log writes
invalidate the content's cached workspace.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.db import DB
from core.errors import ChatSessionNotFound
from core.models import ChatLogEntry, ChatMessage, ChatRole, ChatSession
from core.services.content_shared import (
    _iso,
    _enum_value,
    _require_content,
    _require_source,
    _validate_enum,
    _validate_metadata,
    _validate_organization_id,
    _validate_required_text,
    _validate_uuid,
    logger,
    MAX_MESSAGE_LENGTH,
    MAX_SHORT_TEXT_LENGTH,
)
from core.services.workspace_cache import invalidate_workspace


def _serialize_session(session: ChatSession) -> dict:
    return {
        "id": str(session.id),
        "organization_id": session.organization_id,
        "content_id": str(session.content_id) if session.content_id else None,
        "source_content_id": str(session.source_content_id) if session.source_content_id else None,
        "created_by_user_id": session.created_by_user_id,
        "status": session.status,
        "metadata": session.metadata_ or {},
        "created_at": _iso(session.created_at),
        "updated_at": _iso(session.updated_at),
    }


def _serialize_message(message: ChatMessage) -> dict:
    return {
        "id": str(message.id),
        "session_id": str(message.session_id),
        "role": _enum_value(message.role),
        "content": message.content,
        "payload": message.payload,
        "created_at": _iso(message.created_at),
    }


def _serialize_log(entry: ChatLogEntry) -> dict:
    return {
        "id": str(entry.id),
        "session_id": str(entry.session_id),
        "type": entry.log_type,
        "message": entry.message,
        "payload": entry.payload,
        "created_at": _iso(entry.created_at),
    }


def _find_session(db, organization_id: str, content_id: str) -> Optional[ChatSession]:
    return (
        db.query(ChatSession)
        .filter(ChatSession.organization_id == organization_id)
        .filter(ChatSession.content_id == content_id)
        .order_by(ChatSession.created_at.desc())
        .first()
    )


def _require_session(db, organization_id: str, session_id: str) -> ChatSession:
    session = (
        db.query(ChatSession)
        .filter(ChatSession.organization_id == organization_id)
        .filter(ChatSession.id == session_id)
        .first()
    )
    if session is None:
        raise ChatSessionNotFound(f"Chat session not found: {session_id}", resource_id=session_id)
    return session


def _list_messages(db, session_id: str) -> list[ChatMessage]:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .all()
    )


def _list_logs(db, session_id: str) -> list[ChatLogEntry]:
    return (
        db.query(ChatLogEntry)
        .filter(ChatLogEntry.session_id == session_id)
        .order_by(ChatLogEntry.created_at.asc(), ChatLogEntry.id.asc())
        .all()
    )


def find_chat_session(content_id: str, *, organization_id: str) -> dict:
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    db = DB.SessionLocal()
    try:
        session = _find_session(db, organization_id, content_id)
        return {"status": "ok", "session": _serialize_session(session) if session else None}
    finally:
        db.close()


def ensure_chat_session(
    content_id: str,
    *,
    organization_id: str,
    user_id: Optional[str],
    source_content_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> dict:
    """Return the content's chat session, creating it if none exists yet."""
    organization_id = _validate_organization_id(organization_id)
    content_id = _validate_uuid(content_id, "content_id")
    _validate_metadata(metadata, "metadata")
    if source_content_id is not None:
        source_content_id = _validate_uuid(source_content_id, "source_content_id")

    db = DB.SessionLocal()
    try:
        content = _require_content(db, organization_id, content_id)
        existing = _find_session(db, organization_id, content_id)
        if existing is not None:
            return {"status": "ok", "created": False, "session": _serialize_session(existing)}

        if source_content_id:
            _require_source(db, organization_id, source_content_id)

        session = ChatSession(
            organization_id=organization_id,
            content_id=content.id,
            source_content_id=source_content_id or content.source_content_id,
            created_by_user_id=user_id,
            metadata_=metadata or {},
        )
        db.add(session)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            existing = _find_session(db, organization_id, content_id)
            if existing is None:
                raise
            return {"status": "ok", "created": False, "session": _serialize_session(existing)}
        db.refresh(session)
        payload = _serialize_session(session)
        logger.info(
            "chat_session_created",
            extra={"organization_id": organization_id, "content_id": content_id, "session_id": str(session.id)},
        )
    finally:
        db.close()

    invalidate_workspace(organization_id, content_id)
    return {"status": "ok", "created": True, "session": payload}


def add_chat_message(
    session_id: str,
    *,
    organization_id: str,
    role: str,
    content: str,
    payload: Optional[dict] = None,
) -> dict:
    organization_id = _validate_organization_id(organization_id)
    session_id = _validate_uuid(session_id, "session_id")
    role_value = _validate_enum(role, ChatRole, "role")
    _validate_required_text(content, "content", MAX_MESSAGE_LENGTH)
    _validate_metadata(payload, "payload")

    db = DB.SessionLocal()
    try:
        session = _require_session(db, organization_id, session_id)
        message = ChatMessage(
            session_id=session.id,
            organization_id=organization_id,
            role=role_value,
            content=content.strip(),
            payload=payload,
            created_at=datetime.utcnow(),
        )
        db.add(message)
        session.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(message)
        content_id = str(session.content_id) if session.content_id else None
        result = {"status": "ok", "message": _serialize_message(message)}
    finally:
        db.close()

    if content_id:
        invalidate_workspace(organization_id, content_id)
    return result


def add_chat_log(
    session_id: str,
    *,
    organization_id: str,
    log_type: str,
    message: str,
    payload: Optional[dict] = None,
) -> dict:
    organization_id = _validate_organization_id(organization_id)
    session_id = _validate_uuid(session_id, "session_id")
    _validate_required_text(log_type, "type", 100)
    _validate_required_text(message, "message", MAX_SHORT_TEXT_LENGTH * 4)
    _validate_metadata(payload, "payload")

    db = DB.SessionLocal()
    try:
        session = _require_session(db, organization_id, session_id)
        entry = ChatLogEntry(
            session_id=session.id,
            organization_id=organization_id,
            log_type=log_type.strip(),
            message=message.strip(),
            payload=payload,
            created_at=datetime.utcnow(),
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        content_id = str(session.content_id) if session.content_id else None
        result = {"status": "ok", "log": _serialize_log(entry)}
    finally:
        db.close()

    if content_id:
        invalidate_workspace(organization_id, content_id)
    return result


def list_chat_messages(session_id: str, *, organization_id: str) -> dict:
    organization_id = _validate_organization_id(organization_id)
    session_id = _validate_uuid(session_id, "session_id")
    db = DB.SessionLocal()
    try:
        session = _require_session(db, organization_id, session_id)
        messages = [_serialize_message(row) for row in _list_messages(db, session.id)]
        return {"status": "ok", "count": len(messages), "messages": messages}
    finally:
        db.close()
