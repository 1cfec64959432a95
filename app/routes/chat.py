"""
Chat session endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.context import RequestContext
from core.services.chat_sessions import add_chat_message, ensure_chat_session, list_chat_messages
from app.deps import get_organization_id, get_request_context
from app.schemas import ChatMessageRequest, ChatSessionRequest


router = APIRouter(prefix="/api/chat")


@router.post("/sessions")
def ensure_session_route(
    body: ChatSessionRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    return ensure_chat_session(
        body.content_id,
        organization_id=organization_id,
        user_id=context.auth.user_id,
        source_content_id=body.source_content_id,
        metadata=body.metadata,
    )


@router.post("/sessions/{session_id}/messages")
def add_message_route(
    session_id: str,
    body: ChatMessageRequest,
    organization_id: str = Depends(get_organization_id),
):
    return add_chat_message(
        session_id,
        organization_id=organization_id,
        role=body.role,
        content=body.content,
        payload=body.payload,
    )


@router.get("/sessions/{session_id}/messages")
def list_messages_route(session_id: str, organization_id: str = Depends(get_organization_id)):
    return list_chat_messages(session_id, organization_id=organization_id)
