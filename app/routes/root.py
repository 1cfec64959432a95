"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "DraftDesk",
        "version": "0.1.0",
        "description": "Content drafting workspace with chat references and versioned sections",
        "generation_model": config.GENERATION_MODEL,
        "endpoints": {
            "health": "/health",
            "health_tools": "/health/tools",
            "mcp": "/mcp",
            "resolve_references": "/api/chat/resolve-references",
            "workspace": "/api/chat/workspace/{content_id}",
            "workspace_header": "/api/chat/workspace-header/{content_id}",
            "content": "/api/content",
            "source_content": "/api/source-content",
            "chat_sessions": "/api/chat/sessions",
        },
    }
