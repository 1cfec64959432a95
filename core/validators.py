"""
Input checks shared by the content services.

Every failure raises ``ValidationIssue`` carrying the offending field name and
a short reason code (``required``, ``max_length``, ``invalid_type`` ...), which
the HTTP layer reports as ``reason`` and the agent tools as ``field``.
"""

from __future__ import annotations

import json
import re
from typing import Any, Optional, Sequence

from core.config import MAX_METADATA_BYTES
from core.errors import ValidationIssue

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)


def _fail(field: str, reason: str, message: str) -> ValidationIssue:
    return ValidationIssue(message, field=field, error_type=reason)


def _check_length(value: str, field: str, max_len: int) -> None:
    if len(value) > max_len:
        raise _fail(field, "max_length", f"{field} is longer than {max_len} characters")


def validate_required_text(value: Any, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise _fail(field, "required", f"{field} is required")
    _check_length(value, field, max_len)


def validate_optional_text(value: Any, field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise _fail(field, "invalid_type", f"{field} must be text")
    _check_length(value, field, max_len)


def validate_limit(value: Any, field: str, max_value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= max_value:
        raise _fail(field, "out_of_range", f"{field} must be an integer from 1 to {max_value}")


def validate_list(values: Optional[Sequence], field: str, max_items: int) -> None:
    if values is None:
        return
    if not isinstance(values, (list, tuple)):
        raise _fail(field, "invalid_type", f"{field} must be a list")
    if len(values) > max_items:
        raise _fail(field, "max_items", f"{field} holds more than {max_items} items")


def validate_metadata(metadata: Any, field: str) -> None:
    """JSON objects only, bounded by ``MAX_METADATA_BYTES`` once encoded."""
    if metadata is None:
        return
    if not isinstance(metadata, dict):
        raise _fail(field, "invalid_type", f"{field} must be a JSON object")
    try:
        encoded = json.dumps(metadata, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise _fail(field, "invalid_type", f"{field} is not JSON-encodable") from exc
    if len(encoded.encode("utf-8")) > MAX_METADATA_BYTES:
        raise _fail(field, "max_bytes", f"{field} is larger than {MAX_METADATA_BYTES} bytes")


def is_uuid(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_UUID_RE.match(value.strip()))


def validate_uuid(value: Any, field: str) -> str:
    """Return the normalized (stripped, lowercase) id."""
    if not isinstance(value, str) or not value.strip():
        raise _fail(field, "required", f"{field} is required")
    if not is_uuid(value):
        raise _fail(field, "invalid_id", f"{field} is not a valid id")
    return value.strip().lower()


def validate_enum(value, enum_cls, field: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = "|".join(member.value for member in enum_cls)
        raise _fail(field, "invalid_value", f"{field} must be one of: {allowed}") from exc
