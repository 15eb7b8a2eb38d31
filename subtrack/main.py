"""
FastAPI application factory
"""
import logging
import traceback
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from subtrack.config import get_settings
from subtrack.application.errors import SubscriptionError, SubscriptionValidationError
from subtrack.infrastructure.db.session import check_db_connection, dispose_engine
from subtrack.api.v1 import subscriptions

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run_migrations() -> None:
    """Apply alembic migrations up to head"""
    from alembic import command
    from alembic.config import Config

    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    command.upgrade(cfg, "head")
    logger.info("Database migrations applied")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.RUN_MIGRATIONS:
        run_migrations()
    yield
    # uvicorn stops accepting connections and drains in-flight requests
    # before the lifespan shutdown runs
    dispose_engine()


def _error_body(kind: str, message: str) -> dict:
    return {"error": message, "kind": kind}


class ErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Catches anything the routers did not turn into an HTTP error"""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception:
            tb_str = traceback.format_exc()
            logger.error(f"\n{'='*60}\nERROR on {request.method} {request.url.path}\n{tb_str}{'='*60}")
            return JSONResponse(
                status_code=500,
                content=_error_body("internal_error", "Internal Server Error"),
            )


def create_app() -> FastAPI:
    """
    Application factory - builds and configures the FastAPI app

    Returns:
        Configured FastAPI app
    """
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.API_VERSION,
        description="REST service aggregating users' online subscriptions",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    app.add_middleware(ErrorLoggingMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origin_list,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Origin", "Content-Type"],
        expose_headers=["Content-Length"],
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    )

    @app.exception_handler(SubscriptionError)
    async def subscription_error_handler(request: Request, exc: SubscriptionError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.kind, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning("Invalid request on %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(
            status_code=SubscriptionValidationError.status_code,
            content=_error_body(SubscriptionValidationError.kind, "Invalid request body"),
        )

    # Routers
    app.include_router(subscriptions.router)

    # Health checks
    @app.get("/health", response_class=PlainTextResponse, tags=["system"])
    def health():
        """Health check endpoint"""
        return "ok"

    @app.get("/ready", response_class=PlainTextResponse, tags=["system"])
    def ready():
        """Readiness check endpoint (database reachable)"""
        check_db_connection()
        return "ok"

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "subtrack.main:app",
        host=settings.HOST,
        port=settings.PORT,
    )
