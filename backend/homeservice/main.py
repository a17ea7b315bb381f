# backend/homeservice/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .database import init_db
from .routes import bookings, health, providers, reviews

API_TITLE = "HomeService API"
API_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    configure_logging()
    logger.info(f"{API_TITLE} starting up...")
    logger.info(f"Environment: {settings.environment}")
    if settings.is_testing:
        logger.info("Running under pytest (test mode active)")
    if settings.auto_create_tables:
        init_db()
    yield
    logger.info(f"{API_TITLE} shutting down...")


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Render domain errors that escape a route as the standard error envelope."""
    if exc.status_code >= 500:
        logger.error(
            "Unhandled domain error",
            extra={"path": request.url.path, "code": exc.code, "error": exc.message},
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    app.add_exception_handler(DomainException, domain_exception_handler)  # type: ignore[arg-type]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(bookings.router)
    app.include_router(reviews.router)
    app.include_router(providers.router)
    return app


app = create_app()
