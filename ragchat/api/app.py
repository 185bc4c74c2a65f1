"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
and router registration.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ragchat.api.chat import router as chat_router
from ragchat.config import get_settings
from ragchat.services import Services

logger = logging.getLogger(__name__)


async def _ingest_on_startup(services: Services) -> None:
    from ragchat.ingest.cli import build_pipeline

    path = services.settings.ingest_on_startup
    logger.info(f"Ingesting {path} before accepting requests")
    result = await build_pipeline(services).ingest_path(path)
    logger.info(f"Startup ingestion finished: {result.chunks} chunks, {result.upserted} vectors")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application startup and shutdown lifecycle.

    Builds the provider clients once unless they were injected through
    `create_app`, runs the optional startup ingestion, and closes owned
    clients on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    logger.info("Starting ragchat API...")
    owned = app.state.services is None
    if owned:
        app.state.services = Services.from_settings(get_settings())
    services: Services = app.state.services
    if app.state.relay is None:
        app.state.relay = services.build_relay()

    if services.settings.ingest_on_startup:
        await _ingest_on_startup(services)

    yield

    logger.info("Shutting down ragchat API...")
    if owned:
        await services.aclose()
        app.state.services = None
        app.state.relay = None


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Pre-built provider handles. When given, the relay is built
            immediately and the lifespan leaves them open on shutdown.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="ragchat API",
        description=(
            "Retrieval-augmented chat assistant. Embeds a PDF corpus into a "
            "vector index, retrieves matching passages for each question and "
            "streams the model's answer back as plain UTF-8 text."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.services = services
    application.state.relay = services.build_relay() if services is not None else None

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "ragchat"}

    return application


app = create_app()
