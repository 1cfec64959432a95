"""
Standalone FastAPI app wiring for DraftDesk.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

import core.config as config
from core.db import dispose_db, init_db
from core.mcp import mcp_stream_app, MCPRouteNormalizerASGI
from core.services.content_generation import close_content_generator, get_content_generator
from app.errors import register_exception_handlers
from app.middleware import configure_middleware
from app.routes.chat import router as chat_router
from app.routes.content import router as content_router
from app.routes.health import router as health_router
from app.routes.references import router as references_router
from app.routes.root import router as root_router
from app.routes.workspace import router as workspace_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    init_db()
    get_content_generator()
    try:
        async with mcp_stream_app.lifespan(mcp_stream_app):
            yield
    finally:
        close_content_generator()
        dispose_db()
        config.logger.info("app_shutdown")


app = FastAPI(title="DraftDesk", redirect_slashes=False, lifespan=lifespan)
configure_middleware(app)
register_exception_handlers(app)

# Health and root endpoints
app.include_router(health_router)
app.include_router(root_router)

app.include_router(references_router)
app.include_router(workspace_router)
app.include_router(content_router)
app.include_router(chat_router)

# Agent tools over streamable HTTP
app.mount("/mcp/", mcp_stream_app)


# =============================================================================
# ASGI Application (module-level for production deployment)
# =============================================================================

asgi_app = MCPRouteNormalizerASGI(app)
