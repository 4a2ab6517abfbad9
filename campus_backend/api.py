"""
Campus Desk Service API
=======================

FastAPI application for the campus lost-and-found board and facility issue
tracker.

Endpoints (all under /api):
- /auth        - register, login, current user, profile
- /lost-found  - item reports, claim / verify / close
- /issues      - issue reports, upvote / assign / status
- /users       - admin user management, stats, activity
- GET /health  - Health check

Every error is returned as {"error": {"code", "message", "details"}}.

Run with:
    uvicorn campus_backend.api:app --host 0.0.0.0 --port 8000
"""

import logging
from datetime import datetime
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api_issues import router as issues_router
from .api_items import router as items_router
from .api_users import auth_router, router as users_router
from .config import get_settings
from .db.session import init_db
from .errors import AppError
from .middleware import SecurityHeadersMiddleware
from .schemas import HealthResponse

settings = get_settings()

# Configure logging
logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


# =============================================================================
# FastAPI App
# =============================================================================

app = FastAPI(
    title="Campus Desk Service",
    description="Campus lost-and-found board and facility issue tracker",
    version=settings.service_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

logger.info(f"CORS allow origins: {settings.cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(auth_router, prefix="/api")
app.include_router(items_router, prefix="/api")
app.include_router(issues_router, prefix="/api")
app.include_router(users_router, prefix="/api")


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        version=get_settings().service_version,
        timestamp=datetime.now(),
    )


@app.on_event("startup")
async def startup_event():
    """Initialize on startup"""
    current = get_settings()
    logger.info(f"Starting Campus Desk Service v{current.service_version}")
    for warning in current.validate_security_config():
        logger.warning(f"Config: {warning}")
    init_db()


# =============================================================================
# Error Handlers
# =============================================================================

def _sanitize_error_detail(detail: Any) -> Any:
    if detail is None:
        return None
    if isinstance(detail, str):
        compact = " ".join(detail.split())
        return compact[:300]
    return detail


def _error_code_for_status(status_code: int) -> str:
    return {
        400: "bad_request",
        401: "unauthenticated",
        403: "forbidden",
        404: "not_found",
        405: "method_not_allowed",
        409: "conflict",
        422: "validation_error",
        500: "internal_error",
    }.get(status_code, "error")


def _build_error_payload(code: str, message: str, details: Any = None) -> Dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
        }
    }


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Business-rule failures raised by the managers."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(StarletteHTTPException)
async def api_http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Routing-level errors (unknown path, wrong method) in the same shape."""
    detail = _sanitize_error_detail(exc.detail)
    message = detail if isinstance(detail, str) and detail else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_build_error_payload(_error_code_for_status(exc.status_code), message),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def api_validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies (e.g. not a JSON object). Inputs are not echoed back."""
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if not isinstance(p, int)]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=400,
        content=_build_error_payload("validation_error", "Validation failed", {"errors": errors}),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler - always return valid JSON"""
    logger.exception(f"Unhandled exception on {request.url.path}: {exc.__class__.__name__}")
    return JSONResponse(
        status_code=500,
        content=_build_error_payload("internal_error", "Server error"),
    )
