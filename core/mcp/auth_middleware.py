"""
MCP identity middleware.

Reads the trusted identity headers set by the upstream auth layer and
stores an agent-mode RequestContext for the duration of the request using
contextvars (async-safe).
"""

from __future__ import annotations

import json
from typing import Optional
from uuid import uuid4

import core.config as config
from core.context import (
    AuthContext,
    Mode,
    RequestContext,
    get_current_request_context,
    reset_current_request_context,
    set_current_request_context,
)


def get_current_context() -> RequestContext:
    """Get current request context, or an anonymous agent context if not set."""
    ctx = get_current_request_context()
    if ctx is not None:
        return ctx
    return RequestContext(auth=AuthContext(actor="anonymous"), source="mcp", mode=Mode.agent)


def _header(headers: dict, name: str) -> Optional[str]:
    value = headers.get(name, "").strip()
    return value or None


class MCPAuthMiddleware:
    """
    ASGI middleware that turns identity headers into a request context.

    Wraps the MCP app; when ``require_auth`` is set, requests without an
    organization header are rejected with 401.
    """

    def __init__(self, app, require_auth: Optional[bool] = None):
        self.app = app
        self.require_auth = config.REQUIRE_MCP_AUTH if require_auth is None else require_auth

    def __getattr__(self, name):
        return getattr(self.app, name)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        # ASGI headers are bytes tuples
        headers = {}
        for header_name, header_value in scope.get("headers", []):
            headers[header_name.decode("latin1").lower()] = header_value.decode("latin1")

        user_id = _header(headers, "x-user-id")
        organization_id = _header(headers, "x-organization-id")
        if self.require_auth and not organization_id:
            config.logger.info("mcp_auth_missing_identity", extra={"path": scope.get("path")})
            await self._send_error(send, 401, "Organization identity required")
            return

        req_ctx = RequestContext(
            auth=AuthContext(user_id=user_id, organization_id=organization_id, actor=user_id or "agent"),
            request_id=_header(headers, "x-request-id") or str(uuid4()),
            source="mcp",
            mode=Mode.agent,
        )
        token = set_current_request_context(req_ctx)
        try:
            await self.app(scope, receive, send)
        finally:
            reset_current_request_context(token)

    async def _send_error(self, send, status_code: int, detail: str):
        """Send JSON error response."""
        body = json.dumps({"error": detail}).encode("utf-8")

        await send({
            "type": "http.response.start",
            "status": status_code,
            "headers": [
                [b"content-type", b"application/json"],
                [b"content-length", str(len(body)).encode("latin1")],
            ],
        })

        await send({
            "type": "http.response.body",
            "body": body,
        })
