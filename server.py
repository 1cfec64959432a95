"""
DraftDesk server entrypoint.
"""

import os

import uvicorn

from app.main import asgi_app


if __name__ == "__main__":
    uvicorn.run(
        asgi_app,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8080")),
    )
