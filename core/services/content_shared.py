"""
Shared helpers for content services: lookups, serializers, and the
service_tool error wrapper used by the agent tool surface.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from functools import wraps
from typing import Any, Callable, Optional

import core.config as config
from core.errors import (
    ContentNotFound,
    GenerationFailure,
    NotFoundError,
    SourceNotFound,
    ValidationIssue,
    WriteNotAllowed,
)
from core.models import Content, ContentVersion, SourceContent
from core.validators import (
    validate_required_text as _validate_required_text,
    validate_optional_text as _validate_optional_text,
    validate_limit as _validate_limit,
    validate_list as _validate_list,
    validate_metadata as _validate_metadata,
    validate_uuid as _validate_uuid,
    validate_enum as _validate_enum,
)

logger = config.logger

MAX_RESULT_LIMIT = config.MAX_RESULT_LIMIT
MAX_MESSAGE_LENGTH = config.MAX_MESSAGE_LENGTH
MAX_SHORT_TEXT_LENGTH = config.MAX_SHORT_TEXT_LENGTH
MAX_TITLE_LENGTH = config.MAX_TITLE_LENGTH
MAX_INSTRUCTIONS_LENGTH = config.MAX_INSTRUCTIONS_LENGTH
MAX_BODY_LENGTH = config.MAX_BODY_LENGTH
MAX_SECTION_ITEMS = config.MAX_SECTION_ITEMS


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _validate_organization_id(organization_id: Optional[str]) -> str:
    _validate_required_text(organization_id, "organization_id", MAX_SHORT_TEXT_LENGTH)
    return organization_id.strip()


def _require_content(db, organization_id: str, content_id: str, *, lock: bool = False) -> Content:
    query = (
        db.query(Content)
        .filter(Content.organization_id == organization_id)
        .filter(Content.id == content_id)
    )
    if lock:
        query = query.with_for_update()
    content = query.first()
    if content is None:
        raise ContentNotFound(f"Content not found: {content_id}", resource_id=content_id)
    return content


def _require_source(db, organization_id: str, source_id: str) -> SourceContent:
    source = (
        db.query(SourceContent)
        .filter(SourceContent.organization_id == organization_id)
        .filter(SourceContent.id == source_id)
        .first()
    )
    if source is None:
        raise SourceNotFound(f"Source content not found: {source_id}", resource_id=source_id)
    return source


def _current_version(db, content: Content) -> Optional[ContentVersion]:
    if not content.current_version_id:
        return None
    return (
        db.query(ContentVersion)
        .filter(ContentVersion.id == content.current_version_id)
        .filter(ContentVersion.content_id == content.id)
        .first()
    )


def _serialize_content(content: Content) -> dict:
    return {
        "id": str(content.id),
        "organization_id": content.organization_id,
        "slug": content.slug,
        "title": content.title,
        "status": _enum_value(content.status),
        "content_type": _enum_value(content.content_type),
        "source_content_id": str(content.source_content_id) if content.source_content_id else None,
        "current_version_id": str(content.current_version_id) if content.current_version_id else None,
        "created_by_user_id": content.created_by_user_id,
        "created_at": _iso(content.created_at),
        "updated_at": _iso(content.updated_at),
    }


def _serialize_version(version: ContentVersion, *, include_body: bool = True) -> dict:
    frontmatter = version.frontmatter or {}
    payload = {
        "id": str(version.id),
        "content_id": str(version.content_id),
        "version": version.version,
        "frontmatter": frontmatter,
        "diff_stats": frontmatter.get("diff_stats"),
        "created_by_user_id": version.created_by_user_id,
        "created_at": _iso(version.created_at),
    }
    if include_body:
        payload["body_markdown"] = version.body_markdown or ""
        payload["sections"] = version.sections or []
        payload["assets"] = version.assets or {}
        payload["seo_snapshot"] = version.seo_snapshot or {}
    else:
        payload["section_count"] = len(version.sections or [])
    return payload


def _serialize_source(source: SourceContent, *, include_text: bool = True) -> dict:
    payload = {
        "id": str(source.id),
        "organization_id": source.organization_id,
        "source_type": source.source_type,
        "external_id": source.external_id,
        "title": source.title,
        "metadata": source.metadata_ or {},
        "ingest_status": _enum_value(source.ingest_status),
        "created_at": _iso(source.created_at),
        "updated_at": _iso(source.updated_at),
    }
    if include_text:
        payload["source_text"] = source.source_text
    return payload


# =============================================================================
# Tool error handling
# =============================================================================

def _tool_error_payload(tool_name: str, error_type: str, message: str, field: Optional[str] = None) -> dict:
    return {
        "status": "error",
        "error_type": error_type,
        "tool": tool_name,
        "field": field,
        "message": message,
    }


def _log_validation_issue(tool_name: str, exc: ValidationIssue, warn: bool = False) -> None:
    payload = {
        "tool": tool_name,
        "field": exc.field,
        "error_type": exc.error_type,
        "detail": str(exc),
    }
    if warn:
        logger.warning("tool_validation_error", extra=payload)
    else:
        logger.info("tool_validation_error", extra=payload)


def _tool_error_handler(fn: Callable[..., dict]) -> Callable[..., dict]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationIssue as exc:
            _log_validation_issue(fn.__name__, exc, warn=False)
            return _tool_error_payload(fn.__name__, "validation_error", str(exc), exc.field)
        except NotFoundError as exc:
            return _tool_error_payload(fn.__name__, "not_found", str(exc))
        except WriteNotAllowed as exc:
            return _tool_error_payload(fn.__name__, "forbidden", str(exc))
        except GenerationFailure as exc:
            return _tool_error_payload(fn.__name__, "generation_failed", str(exc))
    return wrapper


def service_tool(fn: Callable[..., dict]) -> Callable[..., dict]:
    return _tool_error_handler(fn)


__all__ = [
    "_iso",
    "_enum_value",
    "_validate_organization_id",
    "_require_content",
    "_require_source",
    "_current_version",
    "_serialize_content",
    "_serialize_version",
    "_serialize_source",
    "_validate_required_text",
    "_validate_optional_text",
    "_validate_limit",
    "_validate_list",
    "_validate_metadata",
    "_validate_uuid",
    "_validate_enum",
    "service_tool",
]
