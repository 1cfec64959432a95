"""
Dependency helpers for the standalone FastAPI app.

Identity arrives from the upstream auth layer as trusted headers; this app
does not verify membership itself.
"""

from __future__ import annotations

from typing import Optional
from uuid import uuid4

from fastapi import Depends, Header

from core.context import AuthContext, Mode, RequestContext, resolve_organization_id


async def get_auth_context(
    x_user_id: Optional[str] = Header(None),
    x_organization_id: Optional[str] = Header(None),
) -> AuthContext:
    user_id = x_user_id.strip() if x_user_id and x_user_id.strip() else None
    organization_id = x_organization_id.strip() if x_organization_id and x_organization_id.strip() else None
    return AuthContext(user_id=user_id, organization_id=organization_id, actor=user_id or "anonymous")


async def get_request_context(
    auth: AuthContext = Depends(get_auth_context),
    x_request_id: Optional[str] = Header(None),
) -> RequestContext:
    return RequestContext(
        auth=auth,
        request_id=x_request_id or str(uuid4()),
        source="http",
        mode=Mode.chat,
    )


async def get_organization_id(context: RequestContext = Depends(get_request_context)) -> str:
    return resolve_organization_id(context)
