from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from academy_auth.core.config import settings
from academy_auth.core.errors import (
    AccountConflictError,
    AuthError,
    AuthErrorKind,
    ConcurrentUpdateError,
)
from academy_auth.api.routes.auth import router as auth_router
from academy_auth.api.routes.health import router as health_router
from academy_auth.api.routes.oauth import router as oauth_router
from academy_auth.db.session import init_db
from academy_auth.schemas.common import ErrorOut


logging.basicConfig(
    level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("academy_auth")


def envelope(request_id: str, data: Any = None, error: Optional[ErrorOut] = None) -> Dict[str, Any]:
    return {
        "request_id": request_id,
        "data": data,
        "error": error.model_dump(exclude_none=True) if error is not None else None,
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_response(request: Request, status_code: int, error: ErrorOut, req_id: Optional[str] = None) -> JSONResponse:
    req_id = req_id or _request_id(request)
    # Set here as well: 500s are rendered outside the request-id middleware.
    return JSONResponse(
        status_code=status_code,
        content=envelope(request_id=req_id, error=error),
        headers={"X-Request-ID": req_id},
    )


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = req_id
    return response


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    return _error_response(request, exc.status_code, ErrorOut(**exc.to_error()))


@app.exception_handler(AccountConflictError)
@app.exception_handler(ConcurrentUpdateError)
async def conflict_handler(request: Request, exc: Exception):
    # Lost a race on the same account; the caller retries the whole operation.
    return _error_response(
        request,
        409,
        ErrorOut(code="CONFLICT", message="The account was modified by another request. Please retry."),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(request, exc.status_code, ErrorOut(code="HTTP_ERROR", message=str(exc.detail)))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        request,
        400,
        ErrorOut(
            code=AuthErrorKind.validation_failed.value,
            message="Invalid request",
            details={"errors": jsonable_encoder(exc.errors())},
        ),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    req_id = _request_id(request)
    logger.error("Unhandled error (request_id=%s)", req_id, exc_info=exc)
    return _error_response(request, 500, ErrorOut(code="INTERNAL_ERROR", message="Internal server error"), req_id)


@app.on_event("startup")
def create_tables():
    if settings.AUTO_CREATE_TABLES:
        init_db()


app.include_router(health_router, prefix="/api")
app.include_router(auth_router, prefix="/api")
app.include_router(oauth_router, prefix="/api")
