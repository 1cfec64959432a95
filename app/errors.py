"""
Map core exceptions onto HTTP responses.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import core.config as config
from core.errors import GenerationFailure, NotFoundError, ValidationIssue, WriteNotAllowed


def _error_response(status_code: int, error_type: str, message: str, **extra) -> JSONResponse:
    body = {"status": "error", "error_type": error_type, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def _handle_validation_issue(request: Request, exc: ValidationIssue) -> JSONResponse:
    config.logger.info(
        "validation_error",
        extra={"path": request.url.path, "field": exc.field, "error_type": exc.error_type},
    )
    return _error_response(400, "validation_error", str(exc), field=exc.field, reason=exc.error_type)


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(404, "not_found", str(exc), resource=exc.resource)


async def _handle_write_not_allowed(request: Request, exc: WriteNotAllowed) -> JSONResponse:
    return _error_response(403, "forbidden", str(exc))


async def _handle_generation_failure(request: Request, exc: GenerationFailure) -> JSONResponse:
    config.logger.warning("generation_failure_response", extra={"path": request.url.path})
    return _error_response(502, "generation_failed", str(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationIssue, _handle_validation_issue)
    app.add_exception_handler(NotFoundError, _handle_not_found)
    app.add_exception_handler(WriteNotAllowed, _handle_write_not_allowed)
    app.add_exception_handler(GenerationFailure, _handle_generation_failure)
