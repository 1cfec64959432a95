"""
Content, source and version endpoints.

Write routes act as the editor (``agent`` mode) unless the body asks for
``chat``, which is read-only and rejected with 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from core.context import Mode, RequestContext, coerce_mode
from core.services.content_records import (
    create_content,
    create_source_content,
    get_content,
    get_source_content,
    update_ingest_status,
)
from core.services.content_versions import (
    create_version,
    get_version,
    list_versions,
    patch_section,
    revert_to_version,
)
from app.deps import get_organization_id, get_request_context
from app.schemas import (
    ContentCreateRequest,
    IngestStatusRequest,
    RevertRequest,
    SectionPatchRequest,
    SourceContentCreateRequest,
    VersionCreateRequest,
)


router = APIRouter(prefix="/api")


@router.post("/content")
def create_content_route(
    body: ContentCreateRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    return create_content(
        organization_id=organization_id,
        title=body.title,
        slug=body.slug,
        content_type=body.content_type,
        status=body.status,
        source_content_id=body.source_content_id,
        created_by_user_id=context.auth.user_id,
    )


@router.get("/content/version/{version_id}")
def get_version_route(version_id: str, organization_id: str = Depends(get_organization_id)):
    return get_version(version_id, organization_id=organization_id)


@router.get("/content/{content_id}")
def get_content_route(content_id: str, organization_id: str = Depends(get_organization_id)):
    return get_content(content_id, organization_id=organization_id)


@router.post("/source-content")
def create_source_content_route(
    body: SourceContentCreateRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    return create_source_content(
        organization_id=organization_id,
        source_type=body.source_type,
        title=body.title,
        external_id=body.external_id,
        source_text=body.source_text,
        metadata=body.metadata,
        created_by_user_id=context.auth.user_id,
    )


@router.get("/source-content/{source_id}")
def get_source_content_route(source_id: str, organization_id: str = Depends(get_organization_id)):
    return get_source_content(source_id, organization_id=organization_id)


@router.post("/source-content/{source_id}/ingest-status")
def update_ingest_status_route(
    source_id: str,
    body: IngestStatusRequest,
    organization_id: str = Depends(get_organization_id),
):
    return update_ingest_status(
        source_id,
        body.status,
        organization_id=organization_id,
        source_text=body.source_text,
        error=body.error,
    )


@router.post("/content/{content_id}/versions")
def create_version_route(
    content_id: str,
    body: VersionCreateRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    return create_version(
        content_id,
        organization_id=organization_id,
        created_by_user_id=context.auth.user_id,
        frontmatter=body.frontmatter,
        body_markdown=body.body_markdown,
        sections=body.sections,
        assets=body.assets,
        seo_snapshot=body.seo_snapshot,
        mode=coerce_mode(body.mode, default=Mode.agent),
        request_id=context.request_id,
    )


@router.get("/content/{content_id}/versions")
def list_versions_route(
    content_id: str,
    limit: int = Query(50),
    organization_id: str = Depends(get_organization_id),
):
    return list_versions(content_id, organization_id=organization_id, limit=limit)


@router.post("/content/{content_id}/sections/{section_id}")
def patch_section_route(
    content_id: str,
    section_id: str,
    body: SectionPatchRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    return patch_section(
        content_id,
        section_id,
        body.instructions,
        organization_id=organization_id,
        user_id=context.auth.user_id,
        mode=coerce_mode(body.mode, default=Mode.agent),
        temperature=body.temperature,
        request_id=context.request_id,
    )


@router.post("/content/{content_id}/revert")
def revert_route(
    content_id: str,
    body: RevertRequest,
    organization_id: str = Depends(get_organization_id),
    context: RequestContext = Depends(get_request_context),
):
    return revert_to_version(
        content_id,
        body.version_id,
        organization_id=organization_id,
        user_id=context.auth.user_id,
        mode=coerce_mode(body.mode, default=Mode.agent),
        request_id=context.request_id,
    )
