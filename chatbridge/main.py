"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatbridge.api import messages_router, passthrough_router
from chatbridge.config import Settings, get_settings
from chatbridge.core import ConversionError, UpstreamClient, UpstreamError, error_payload

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request body"


def create_app(
    settings: Optional[Settings] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()
    logging.basicConfig(level="DEBUG" if settings.debug else settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Using provider: {settings.provider} ({settings.upstream_base_url()})")
        configured = "Yes" if settings.upstream_api_key() else "No"
        logger.info(f"{settings.provider} API key configured: {configured}")

        app.state.upstream = UpstreamClient(settings, transport=upstream_transport)
        try:
            yield
        finally:
            await app.state.upstream.aclose()
            logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Anthropic Messages API proxy for OpenAI-compatible providers",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_payload(_describe_validation_error(exc), "invalid_request_error"),
        )

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        logger.error(f"Upstream error: {exc.message}")
        return JSONResponse(status_code=500, content=error_payload(exc.message))

    @app.exception_handler(ConversionError)
    async def conversion_error_handler(request: Request, exc: ConversionError):
        logger.error(f"Conversion error: {exc.message}")
        return JSONResponse(status_code=500, content=error_payload(exc.message))

    # Health check
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": settings.app_version, "provider": settings.provider}

    # Translated Anthropic -> OpenAI route, only for OpenAI-compatible providers
    if settings.provider == "groq":
        app.include_router(messages_router, tags=["messages"])

    # Everything else is forwarded (moonshot) or rejected (groq)
    app.include_router(passthrough_router, tags=["passthrough"])

    return app


app = create_app()
