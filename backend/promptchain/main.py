"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from promptchain import __version__
from promptchain.api.flows import router as flows_router
from promptchain.api.providers import router as providers_router
from promptchain.config import Settings, settings
from promptchain.providers.registry import default_registry
from promptchain.runtime.orchestrator import sleep_pacer
from promptchain.services.flow_service import FlowService
from promptchain.services.settings_store import SettingsStore, default_settings
from promptchain.utils.logger import setup_logger
from promptchain.utils.metrics import get_metrics_summary, to_prometheus_text

logger = logging.getLogger("promptchain.main")


def build_flow_service(cfg: Settings) -> FlowService:
    """Wire registry, settings store and orchestrator from configuration."""
    registry = default_registry(
        timeout=cfg.PROVIDER_TIMEOUT_SECONDS,
        fallback_provider=cfg.DEFAULT_PROVIDER,
    )
    store = SettingsStore(
        initial=default_settings(
            registry.provider_ids(),
            default_provider=cfg.DEFAULT_PROVIDER,
            default_model=cfg.DEFAULT_MODEL,
        ),
        path=cfg.SETTINGS_PATH,
        env_prefix=cfg.SECRET_ENV_PREFIX,
    )
    return FlowService(
        registry,
        store,
        default_temperature=cfg.DEFAULT_TEMPERATURE,
        default_max_tokens=cfg.DEFAULT_MAX_TOKENS,
        pacer=sleep_pacer(cfg.NODE_PACING_SECONDS),
    )


def create_app(flow_service: FlowService | None = None, cfg: Settings | None = None) -> FastAPI:
    cfg = cfg or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "PromptChain API starting (providers=%s)",
            ",".join(app.state.flow_service.registry.provider_ids()),
        )
        yield
        # Let an in-flight run end at its next node boundary
        service: FlowService = app.state.flow_service
        if service.stop():
            await service.orchestrator.wait()
        logger.info("PromptChain API stopped")

    app = FastAPI(
        title="PromptChain",
        description="Prompt-chain flow executor",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.flow_service = flow_service or build_flow_service(cfg)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routers
    app.include_router(flows_router, prefix="/api/flows", tags=["flows"])
    app.include_router(providers_router, prefix="/api", tags=["providers"])

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/metrics", response_class=PlainTextResponse, tags=["observability"])
    async def prometheus_metrics():
        """Prometheus text exposition of in-process metrics."""
        return to_prometheus_text()

    @app.get("/api/metrics/summary", tags=["observability"])
    async def metrics_summary():
        return get_metrics_summary()

    return app


setup_logger(log_format=settings.LOG_FORMAT, log_level=settings.LOG_LEVEL or "INFO")
app = create_app()
