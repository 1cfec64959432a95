"""
Middleware configuration for the standalone FastAPI app.
"""

from __future__ import annotations

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

import core.config as config


def configure_middleware(app) -> None:
    """Install the optional host allowlist and CORS for the editor frontend."""
    if config.TRUSTED_HOSTS:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=config.TRUSTED_HOSTS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-User-Id", "X-Organization-Id", "X-Request-Id"],
    )
