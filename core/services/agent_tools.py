"""
Agent-facing service tools.

Each tool takes the caller's RequestContext (organization, user, mode) and
returns a status dict; failures come back as error payloads via
``service_tool`` instead of raising.
"""

from __future__ import annotations

from typing import Optional

from core.context import Mode, RequestContext, resolve_organization_id
from core.services.content_shared import service_tool
from core.services.content_versions import create_version, list_versions, patch_section
from core.services.reference_resolver import resolve_message
from core.services.workspace import get_workspace


def _user_id(context: Optional[RequestContext]) -> Optional[str]:
    if context is None or context.auth is None:
        return None
    return context.auth.user_id


def _mode(context: Optional[RequestContext]) -> Mode:
    return context.mode if context is not None else Mode.agent


@service_tool
def references_resolve(
    message: str,
    current_content_id: Optional[str] = None,
    include_current: bool = False,
    context: Optional[RequestContext] = None,
) -> dict:
    mode = _mode(context)
    result = resolve_message(
        message,
        organization_id=resolve_organization_id(context),
        current_content_id=current_content_id,
        user_id=_user_id(context),
        mode=mode,
        include_current=include_current,
    )
    return {"status": "ok", "mode": mode.value, **result}


@service_tool
def workspace_get(
    content_id: str,
    include_chat: bool = False,
    context: Optional[RequestContext] = None,
) -> dict:
    payload = get_workspace(
        resolve_organization_id(context),
        content_id,
        include_chat=include_chat,
        user_id=_user_id(context),
    )
    return {"status": "ok", "workspace": payload}


@service_tool
def content_create_version(
    content_id: str,
    body_markdown: Optional[str] = None,
    sections: Optional[list] = None,
    frontmatter: Optional[dict] = None,
    assets: Optional[dict] = None,
    seo_snapshot: Optional[dict] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    return create_version(
        content_id,
        organization_id=resolve_organization_id(context),
        created_by_user_id=_user_id(context),
        frontmatter=frontmatter,
        body_markdown=body_markdown,
        sections=sections,
        assets=assets,
        seo_snapshot=seo_snapshot,
        mode=_mode(context),
        actor_type="agent",
        request_id=context.request_id if context else None,
    )


@service_tool
def content_patch_section(
    content_id: str,
    section_id: str,
    instructions: str,
    temperature: Optional[float] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    return patch_section(
        content_id,
        section_id,
        instructions,
        organization_id=resolve_organization_id(context),
        user_id=_user_id(context),
        mode=_mode(context),
        temperature=temperature,
        actor_type="agent",
        request_id=context.request_id if context else None,
    )


@service_tool
def content_list_versions(
    content_id: str,
    limit: int = 20,
    context: Optional[RequestContext] = None,
) -> dict:
    return list_versions(content_id, organization_id=resolve_organization_id(context), limit=limit)


__all__ = [
    "references_resolve",
    "workspace_get",
    "content_create_version",
    "content_patch_section",
    "content_list_versions",
]
