"""FastAPI application entry point for DocForge."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from docforge import __version__
from docforge.config import settings
from docforge.database import close_db, init_db
from docforge.services.cleanup import purge_expired_sessions
from docforge.services.errors import DocforgeError

logger = logging.getLogger(__name__)

# Background cleanup task handle
_cleanup_task: asyncio.Task | None = None


# Rate limiter configuration; the global limit applies per client IP
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Permitted-Cross-Domain-Policies"] = "none"

        # Rendered previews are returned as JSON strings, never served as pages
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none';"
        )
        return response


async def docforge_error_handler(request: Request, exc: DocforgeError) -> JSONResponse:
    """Render pipeline errors as ``{"kind", "detail"}`` with the error's status."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def install_error_handlers(target: FastAPI) -> None:
    target.add_exception_handler(DocforgeError, docforge_error_handler)


async def _run_session_cleanup() -> None:
    """Background task that purges expired, never-completed batch sessions."""
    while True:
        try:
            await asyncio.sleep(settings.cleanup_interval_seconds)

            purged = await purge_expired_sessions()
            if purged > 0:
                logger.info("Session cleanup: removed %d expired sessions", purged)

        except asyncio.CancelledError:
            logger.debug("Session cleanup task cancelled")
            break
        except Exception as e:
            logger.error("Session cleanup task error: %s", str(e))
            # Continue running despite errors


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    global _cleanup_task

    # Ensure data directories exist
    settings.documents_dir.mkdir(parents=True, exist_ok=True)

    await init_db()

    _cleanup_task = asyncio.create_task(_run_session_cleanup())
    logger.info("Started session cleanup background task")

    yield

    if _cleanup_task:
        _cleanup_task.cancel()
        try:
            await _cleanup_task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped session cleanup background task")

    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Batch document generation from templates and spreadsheets",
    version=__version__,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

install_error_handlers(app)

# Only allow origins from the whitelist; empty list means same-origin only
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
        expose_headers=["Content-Disposition", "X-Row-Count"],
        max_age=600,  # Cache preflight for 10 minutes
    )

app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", tags=["Health"])
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        content={
            "status": "healthy",
            "version": __version__,
            "app_name": settings.app_name,
        }
    )


# Import and include routers
from docforge.routers import batch, documents, export, templates  # noqa: E402

app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])
app.include_router(batch.router, prefix="/api/batch", tags=["Batch"])
app.include_router(documents.router, prefix="/api/documents", tags=["Documents"])
app.include_router(export.router, prefix="/api/export", tags=["Export"])
