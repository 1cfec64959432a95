"""
Request-scoped context objects for core services.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import contextvars

from core.errors import ValidationIssue


class Mode(str, Enum):
    """Caller surface. ``chat`` is read-only; ``agent`` may write and sees match details."""

    chat = "chat"
    agent = "agent"


@dataclass(frozen=True)
class AuthContext:
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    actor: Optional[str] = None


@dataclass(frozen=True)
class RequestContext:
    auth: AuthContext
    request_id: Optional[str] = None
    source: Optional[str] = None
    mode: Mode = Mode.agent


_CURRENT_REQUEST_CONTEXT: contextvars.ContextVar[Optional["RequestContext"]] = contextvars.ContextVar(
    "draftdesk_request_context",
    default=None,
)


def get_current_request_context() -> Optional["RequestContext"]:
    return _CURRENT_REQUEST_CONTEXT.get()


def set_current_request_context(context: Optional["RequestContext"]) -> contextvars.Token:
    return _CURRENT_REQUEST_CONTEXT.set(context)


def reset_current_request_context(token: contextvars.Token) -> None:
    _CURRENT_REQUEST_CONTEXT.reset(token)


def coerce_mode(value, default: Mode = Mode.chat) -> Mode:
    if value is None or value == "":
        return default
    if isinstance(value, Mode):
        return value
    try:
        return Mode(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationIssue(
            "mode must be one of: chat|agent",
            field="mode",
            error_type="invalid_value",
        ) from exc


def resolve_organization_id(context: Optional["RequestContext"]) -> str:
    organization_id = None
    if context is not None and context.auth is not None:
        organization_id = context.auth.organization_id
    if not organization_id:
        raise ValidationIssue(
            "organization_id is required for this operation",
            field="organization_id",
            error_type="required",
        )
    return organization_id


def resolve_user_id(context: Optional["RequestContext"]) -> str:
    user_id = None
    if context is not None and context.auth is not None:
        user_id = context.auth.user_id
    if not user_id:
        raise ValidationIssue(
            "user_id is required for this operation",
            field="user_id",
            error_type="required",
        )
    return str(user_id)


__all__ = [
    "Mode",
    "coerce_mode",
    "AuthContext",
    "RequestContext",
    "get_current_request_context",
    "set_current_request_context",
    "reset_current_request_context",
    "resolve_organization_id",
    "resolve_user_id",
]
