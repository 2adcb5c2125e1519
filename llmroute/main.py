"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Build the provider registry, then the catalog over its providers
3. Build router, account store, quota guard and chat pipeline
4. Register middleware (CORS, request id)
5. Include all routers

Components are built in the factory rather than in the lifespan so that an
app created for tests is fully wired without running startup events.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from llmroute.accounts.identity import InMemoryAccountStore, build_account_store
from llmroute.accounts.quota import QuotaGuard
from llmroute.api.router import api_v1_router, public_router
from llmroute.config import Settings, get_settings
from llmroute.errors import AdmissionError, AdmissionKind
from llmroute.pipeline import ChatPipeline
from llmroute.providers.registry import ProviderRegistry, build_registry
from llmroute.routing.catalog import ModelCatalog
from llmroute.routing.router import ModelRouter
from llmroute.streaming.orchestrator import StreamOrchestrator
from llmroute.telemetry.logging import RequestIdMiddleware, configure_logging
from llmroute.transcripts import TranscriptSink

log = structlog.get_logger(__name__)

_STATUS_BY_KIND = {
    AdmissionKind.UNAUTHORIZED: 401,
    AdmissionKind.FORBIDDEN: 403,
    AdmissionKind.BAD_REQUEST: 400,
    AdmissionKind.NOT_FOUND: 404,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings

    # Configure structured logging first (before any log calls)
    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    log.info(
        "app.starting",
        environment=settings.environment,
        provider_mode=settings.provider_mode,
        providers=app.state.registry.providers(),
        models=len(app.state.catalog),
    )
    log.info("app.ready")
    yield
    log.info("app.shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    registry: ProviderRegistry | None = None,
    accounts: InMemoryAccountStore | None = None,
    transcripts: TranscriptSink | None = None,
) -> FastAPI:
    """Application factory.

    Args:
        settings: Defaults to the cached environment settings
        registry: Provider adapters; built from settings when omitted
        accounts: Identity and quota store; seeded from settings when omitted
        transcripts: Where completed transcripts go; logged when omitted
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="LLM Route",
        description="Routes chat prompts to language models and streams the answers as SSE.",
        version="0.1.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------------ #
    # Components
    # ------------------------------------------------------------------ #
    if registry is None:
        registry = build_registry(settings)
    catalog = ModelCatalog(enabled_providers=registry.providers())
    if accounts is None:
        accounts = build_account_store(settings)

    app.state.settings = settings
    app.state.registry = registry
    app.state.catalog = catalog
    app.state.identity_provider = accounts
    app.state.pipeline = ChatPipeline(
        settings=settings,
        router=ModelRouter(catalog, settings),
        quota=QuotaGuard(accounts),
        registry=registry,
        orchestrator=StreamOrchestrator(segment_timeout_seconds=settings.segment_timeout_seconds),
        transcripts=transcripts,
    )

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #
    cors_origins = ["*"] if settings.is_dev else settings.cors_allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.is_prod,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type"],
        expose_headers=["x-request-id"],
    )
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(public_router)
    app.include_router(api_v1_router)

    # ------------------------------------------------------------------ #
    # Exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(AdmissionError)
    async def admission_error_handler(request: Request, exc: AdmissionError) -> JSONResponse:
        log.info(
            "app.request_rejected",
            path=request.url.path,
            kind=exc.kind.value,
            reason=exc.message,
        )
        return JSONResponse(
            status_code=_STATUS_BY_KIND[exc.kind],
            content={"detail": exc.message, "kind": exc.kind.value},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"Invalid request. {field}: {first.get('msg', 'malformed body')}" if field else "Invalid request."
        return JSONResponse(
            status_code=400,
            content={"detail": detail, "kind": AdmissionKind.BAD_REQUEST.value},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


# Module-level app instance for uvicorn
app = create_app()
