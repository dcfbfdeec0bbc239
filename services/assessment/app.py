"""FastAPI app for the SafeSchool Assessment Service:
- /attempts/...: start, submit, fetch and list quiz attempts
- /quizzes, /modules: the quiz catalog attempts are taken against
- /health: liveness probe

Every failure is rendered as ``{"error": {"kind": ..., "message": ...}}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from packages.common.config import get_settings
from packages.common.logging import configure_logging
from packages.common.tracing import trace_middleware
from .errors import AssessmentError, Internal, InvalidInput
from .repo import init_db
from .routes import attempts as attempts_router, catalog as catalog_router

configure_logging(get_settings().LOG_LEVEL)
log = logging.getLogger(__name__)

HTTP_KINDS = {400: "InvalidInput", 401: "Unauthorized", 403: "Forbidden", 404: "NotFound", 405: "MethodNotAllowed"}

app = FastAPI(title="SafeSchool Assessment Service", version="1.0.0")
app.middleware("http")(trace_middleware)
app.include_router(attempts_router)
app.include_router(catalog_router)


def _error(status_code: int, kind: str, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"kind": kind, "message": message}},
        headers=headers,
    )


@app.exception_handler(AssessmentError)
async def _assessment_error(request: Request, exc: AssessmentError) -> JSONResponse:
    return _error(exc.status_code, exc.kind, exc.message)


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg', 'invalid')}" for e in errors
    )
    log.info("request.invalid", extra={"ctx": {"path": request.url.path, "errors": len(errors)}})
    return _error(InvalidInput.status_code, InvalidInput.kind, detail or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    kind = HTTP_KINDS.get(exc.status_code, "Error")
    return _error(exc.status_code, kind, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(SQLAlchemyError)
async def _storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.error("storage.failure", exc_info=exc, extra={"ctx": {"path": request.url.path}})
    return _error(Internal.status_code, Internal.kind, "Internal server error")


@app.get("/health", tags=["ops"])
def health() -> dict:
    return {"status": "ok"}


@app.on_event("startup")
async def _init() -> None:
    """Initialize service dependencies at application startup."""
    await init_db()
