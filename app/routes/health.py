"""
Health and dependency endpoints.
"""

from __future__ import annotations

import os

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

import core.config as config
from core.db import DB, _get_schema_revisions
from core.mcp import tool_inventory_status
from core.services.content_generation import generation_circuit_breaker


router = APIRouter()


def _check_db_health() -> dict:
    if DB.engine is None:
        return {"ok": False, "error": "db_not_initialized"}

    try:
        with DB.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        return {"ok": False, "error": str(exc)}

    current_rev, head_rev = _get_schema_revisions(DB.engine)
    schema_ok = head_rev is None or current_rev == head_rev
    return {
        "ok": schema_ok,
        "backend": config.DB_BACKEND_EFFECTIVE,
        "schema_revision": current_rev,
        "schema_expected": head_rev,
        "schema_up_to_date": schema_ok,
    }


def _generation_status() -> dict:
    breaker_status = generation_circuit_breaker.status()
    if config.GENERATION_PROVIDER == "none":
        status = "disabled"
    elif breaker_status.get("open"):
        status = "cooldown"
    else:
        status = "ready"
    return {
        "status": status,
        "provider": config.GENERATION_PROVIDER,
        "model": config.GENERATION_MODEL,
        "circuit_breaker": breaker_status,
    }


@router.get("/health")
async def health():
    """Health check endpoint."""
    db_health = _check_db_health()
    generation_status = _generation_status()
    if not db_health.get("ok"):
        raise HTTPException(
            status_code=503,
            detail={"database": db_health, "generation_provider": generation_status},
        )

    return {
        "status": "healthy",
        "service": "DraftDesk",
        "version": "0.1.0",
        "instance_id": os.environ.get("DRAFTDESK_INSTANCE_ID", "draftdesk-1"),
        "database": db_health,
        "generation_provider": generation_status,
        "workspace_cache": config.WORKSPACE_CACHE_BACKEND,
    }


@router.get("/health/tools")
async def health_tools():
    """Tool inventory health check."""
    tool_inventory = await tool_inventory_status()
    if tool_inventory.get("tool_count", 0) == 0:
        raise HTTPException(status_code=503, detail={"tool_inventory": tool_inventory})

    return {
        "status": "healthy",
        "service": "DraftDesk",
        "tool_inventory": tool_inventory,
    }
