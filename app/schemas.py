"""
Request bodies for the HTTP routes.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class ResolveReferencesRequest(BaseModel):
    message: str
    content_id: Optional[str] = None
    mode: Optional[str] = None
    include_current: bool = False


class ContentCreateRequest(BaseModel):
    title: str
    slug: Optional[str] = None
    content_type: str = "blog_post"
    status: str = "draft"
    source_content_id: Optional[str] = None


class SourceContentCreateRequest(BaseModel):
    source_type: str
    title: Optional[str] = None
    external_id: Optional[str] = None
    source_text: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class IngestStatusRequest(BaseModel):
    status: str
    source_text: Optional[str] = None
    error: Optional[str] = None


class VersionCreateRequest(BaseModel):
    frontmatter: Optional[dict[str, Any]] = None
    body_markdown: Optional[str] = None
    sections: Optional[list[dict[str, Any]]] = None
    assets: Optional[dict[str, Any]] = None
    seo_snapshot: Optional[dict[str, Any]] = None
    mode: Optional[str] = None


class SectionPatchRequest(BaseModel):
    instructions: str
    temperature: Optional[float] = None
    mode: Optional[str] = None


class RevertRequest(BaseModel):
    version_id: str
    mode: Optional[str] = None


class ChatSessionRequest(BaseModel):
    content_id: str
    source_content_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class ChatMessageRequest(BaseModel):
    role: str
    content: str
    payload: Optional[dict[str, Any]] = None
