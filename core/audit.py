"""
Audit trail for content writes.

Events are appended in the caller's transaction so an audit row exists
exactly when the write it describes commits. Only identifiers and small
scalar facts are recorded; anything that looks like document text is
refused.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from core.models import AuditEvent

ACTOR_TYPES = frozenset({"user", "agent", "system", "mcp"})
TARGET_TYPES = frozenset({"content", "content_version", "source_content", "chat_session"})

# Substrings of metadata keys that would carry body text.
TEXT_KEY_MARKERS = (
    "body",
    "markdown",
    "instructions",
    "source_text",
    "chat_message",
    "frontmatter",
    "raw_text",
    "prompt",
)
MAX_METADATA_STRING_LENGTH = 500
MAX_TARGET_ID_LENGTH = 200


def _is_text_key(key: str) -> bool:
    normalized = key.strip().lower().replace("-", "_")
    return any(marker in normalized for marker in TEXT_KEY_MARKERS)


def _check_metadata(value: Any, path: str = "metadata") -> None:
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path} keys must be strings")
            if _is_text_key(key):
                raise ValueError(f"audit metadata may not carry text field '{key}'")
            _check_metadata(item, f"{path}.{key}")
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _check_metadata(item, f"{path}[{index}]")
    elif isinstance(value, str) and len(value) > MAX_METADATA_STRING_LENGTH:
        raise ValueError(f"audit metadata value too long at '{path}'")


def _target_id_list(target_ids: Iterable[Any]) -> list[str]:
    if isinstance(target_ids, (str, bytes)) or not isinstance(target_ids, (list, tuple)):
        raise ValueError("target_ids must be a list of ids")
    ids = []
    for item in target_ids:
        value = str(item)
        if not value or len(value) > MAX_TARGET_ID_LENGTH:
            raise ValueError("target id is empty or too long")
        ids.append(value)
    return ids


def log_event(
    db,
    *,
    event_type: str,
    actor_type: str,
    target_type: str,
    target_ids: list[Any],
    actor_id: Optional[str] = None,
    org_id: Optional[str] = None,
    user_id: Optional[str] = None,
    request_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> AuditEvent:
    """Add an audit row to ``db``; the caller's commit persists it."""
    if not isinstance(event_type, str) or not event_type:
        raise ValueError("event_type must be a non-empty string")
    if actor_type not in ACTOR_TYPES:
        raise ValueError(f"actor_type must be one of: {'|'.join(sorted(ACTOR_TYPES))}")
    if target_type not in TARGET_TYPES:
        raise ValueError(f"target_type must be one of: {'|'.join(sorted(TARGET_TYPES))}")
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise ValueError("metadata must be a dict")
        _check_metadata(metadata)

    event = AuditEvent(
        created_at=datetime.utcnow(),
        event_type=event_type,
        actor_type=actor_type,
        actor_id=actor_id,
        org_id=org_id,
        user_id=user_id,
        target_type=target_type,
        target_ids=_target_id_list(target_ids),
        request_id=request_id,
        metadata_=metadata,
    )
    db.add(event)
    return event


__all__ = [
    "AuditEvent",
    "log_event",
    "ACTOR_TYPES",
    "TARGET_TYPES",
]
