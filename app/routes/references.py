"""
Chat reference resolution endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from core.context import Mode, RequestContext, coerce_mode
from core.services.reference_resolver import resolve_message
from app.deps import get_organization_id, get_request_context
from app.schemas import ResolveReferencesRequest


router = APIRouter(prefix="/api/chat")


@router.post("/resolve-references")
def resolve_references_route(
    body: ResolveReferencesRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    """Parse @-mentions, UUIDs and URLs in a chat message and match them to records."""
    mode = coerce_mode(body.mode, default=Mode.chat)
    result = resolve_message(
        body.message,
        organization_id=organization_id,
        current_content_id=body.content_id,
        user_id=context.auth.user_id,
        mode=mode,
        include_current=body.include_current,
    )
    return {"status": "ok", "mode": mode.value, **result}
