"""
Workspace read endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from core.context import RequestContext
from core.services.workspace import get_workspace, get_workspace_header
from app.deps import get_organization_id, get_request_context


router = APIRouter(prefix="/api/chat")


@router.get("/workspace/{content_id}")
def workspace_route(
    content_id: str,
    include_chat: bool = Query(False, alias="includeChat"),
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    payload = get_workspace(
        organization_id,
        content_id,
        include_chat=include_chat,
        user_id=context.auth.user_id,
    )
    return {"status": "ok", "workspace": payload}


@router.get("/workspace-header/{content_id}")
def workspace_header_route(
    content_id: str,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    header = get_workspace_header(organization_id, content_id, user_id=context.auth.user_id)
    return {"status": "ok", "header": header}
