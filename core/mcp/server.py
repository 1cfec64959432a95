"""
MCP server wiring and tool registration.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastmcp import FastMCP

import core.config as config
from core.services import agent_tools
from core.mcp.auth_middleware import get_current_context, MCPAuthMiddleware

READ_ONLY_TOOL_ANNOTATIONS = {"readOnlyHint": True}

mcp = FastMCP("DraftDesk")

_REGISTERED_TOOLS: list[tuple[Callable[..., dict], tuple[Any, ...], dict[str, Any]]] = []


def mcp_tool(*args, **kwargs):
    """Register a tool with FastMCP and keep a local registry for inventory checks."""
    def decorator(fn: Callable[..., dict]):
        _REGISTERED_TOOLS.append((fn, args, kwargs))
        mcp.tool(*args, **kwargs)(fn)
        return fn
    return decorator


def registered_tool_names() -> list[str]:
    return sorted(fn.__name__ for fn, _, _ in _REGISTERED_TOOLS)


async def tool_inventory_status() -> dict:
    """Return the tool names FastMCP currently serves."""
    tools = await mcp.get_tools()
    tool_names = sorted(tools.keys())
    if not tool_names:
        config.logger.warning("tool_inventory_empty", extra={"registered": len(_REGISTERED_TOOLS)})
    return {"tool_count": len(tool_names), "tools": tool_names}


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def references_resolve(
    message: str,
    current_content_id: Optional[str] = None,
    include_current: bool = False,
) -> dict:
    """Resolve @-mentions, UUIDs and URLs in a message to content, sections and sources."""
    return agent_tools.references_resolve(
        message=message,
        current_content_id=current_content_id,
        include_current=include_current,
        context=get_current_context(),
    )


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def workspace_get(
    content_id: str,
    include_chat: bool = False,
) -> dict:
    """Return the compiled workspace for a content item."""
    return agent_tools.workspace_get(
        content_id=content_id,
        include_chat=include_chat,
        context=get_current_context(),
    )


@mcp_tool()
def content_create_version(
    content_id: str,
    body_markdown: Optional[str] = None,
    sections: Optional[list[dict]] = None,
    frontmatter: Optional[dict] = None,
    assets: Optional[dict] = None,
    seo_snapshot: Optional[dict] = None,
) -> dict:
    """Store a new immutable version and make it current."""
    return agent_tools.content_create_version(
        content_id=content_id,
        body_markdown=body_markdown,
        sections=sections,
        frontmatter=frontmatter,
        assets=assets,
        seo_snapshot=seo_snapshot,
        context=get_current_context(),
    )


@mcp_tool()
def content_patch_section(
    content_id: str,
    section_id: str,
    instructions: str,
    temperature: Optional[float] = None,
) -> dict:
    """Rewrite one section with the content generator and save it as a new version."""
    return agent_tools.content_patch_section(
        content_id=content_id,
        section_id=section_id,
        instructions=instructions,
        temperature=temperature,
        context=get_current_context(),
    )


@mcp_tool(annotations=READ_ONLY_TOOL_ANNOTATIONS)
def content_list_versions(
    content_id: str,
    limit: int = 20,
) -> dict:
    return agent_tools.content_list_versions(
        content_id=content_id,
        limit=limit,
        context=get_current_context(),
    )


mcp_stream_app = MCPAuthMiddleware(mcp.http_app(
    path="/",
    transport="streamable-http",
    stateless_http=True,
    json_response=True,
))


class MCPRouteNormalizerASGI:
    """Pure ASGI middleware - no response buffering, SSE-safe."""
    def __init__(self, wrapped_app):
        self.wrapped_app = wrapped_app

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope.get("path") == "/mcp":
            scope = dict(scope)
            scope["path"] = "/mcp/"
        await self.wrapped_app(scope, receive, send)
