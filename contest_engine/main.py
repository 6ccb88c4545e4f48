import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from contest_engine import __version__
from contest_engine.config import Settings, feature_flags, load_settings
from contest_engine.database import Store
from contest_engine.errors import EngineError, ErrorCode, get_error_summary
from contest_engine.routes import all_routers
from contest_engine.routes.limits import limiter

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    """
    Build the API application.

    Tests pass their own Settings and an already-opened Store; otherwise
    settings come from the environment and the Store is opened and
    closed by the lifespan.
    """
    settings = settings or load_settings()
    logging.getLogger().setLevel(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting application...")
        owns_store = app.state.store is None
        try:
            if owns_store:
                app.state.store = Store.from_settings(settings).open()
            await app.state.store.init_schema()
            logger.info("Database connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect to database: {str(e)}")
            raise

        yield

        logger.info("Shutting down application...")
        if owns_store:
            try:
                await app.state.store.close()
                app.state.store = None
                logger.info("Database connection closed")
            except Exception as e:
                logger.error(f"Error closing database connection: {str(e)}")

    app = FastAPI(
        title="Contest Engine API",
        description="Competition lifecycle, registration, teams, submissions and judging",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store

    # Attach rate limiter to the app
    app.state.limiter = limiter
    if feature_flags.FEATURE_RATE_LIMITING:
        logger.info("✓ Rate limiter configured")
    else:
        logger.info("⏸️ Rate limiting disabled (set FEATURE_RATE_LIMITING=True to enable)")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded on {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "error": "RateLimited",
                "message": f"Rate limit exceeded: {exc.detail}",
                "code": ErrorCode.RATE_LIMITED,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

        error_details = []
        for error in exc.errors():
            error_details.append({
                "loc": error.get("loc"),
                "msg": error.get("msg"),
                "type": error.get("type"),
            })

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "error": "ValidationError",
                "message": "Request body or parameters failed validation",
                "code": ErrorCode.VALIDATION_ERROR,
                "details": {"errors": error_details},
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")

        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content=exc.detail)

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": "Error",
                "message": str(exc.detail),
                "code": ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.VALIDATION_ERROR,
            },
        )

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError):
        logger.warning(f"{exc.kind} on {request.url.path}: {exc.code} - {exc.message}")
        return exc.to_response()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log_id = str(uuid.uuid4())[:8]
        logger.error(f"[{log_id}] Unhandled exception on {request.url.path}: {type(exc).__name__}: {str(exc)}")

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Internal Error",
                "message": "An unexpected error occurred. Please try again later.",
                "code": ErrorCode.INTERNAL_ERROR,
                "details": {"log_id": log_id},
            },
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "environment": settings.environment,
            "database": app.state.store.engine.dialect.name if app.state.store is not None and app.state.store.is_open else None,
            "version": __version__,
        }

    @app.get("/api/errors/health", tags=["Health"])
    async def error_handling_health():
        return get_error_summary()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": "Contest Engine API",
            "version": __version__,
            "docs": "/docs" if settings.is_development else None,
        }

    for router in all_routers:
        app.include_router(router, prefix="/api")

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("ENVIRONMENT", "development") == "development"

    logger.info(f"Starting server on {host}:{port}")
    logger.info(f"Auto-reload: {reload}")

    uvicorn.run(
        "contest_engine.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info"
    )
