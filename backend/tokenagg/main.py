from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from tokenagg.api.error_handlers import register_exception_handlers
from tokenagg.api.middleware import payment_gate_middleware
from tokenagg.api.routes import router
from tokenagg.config.settings import PaymentSettings, settings
from tokenagg.logger import get_logger
from tokenagg.payments.gate import PaymentGate
from tokenagg.payments.replay_cache import ReplayCache
from tokenagg.payments.verifier import PaymentVerifier

logger = get_logger(__name__)


def create_app(
    payment_settings: PaymentSettings | None = None,
    verifier: PaymentVerifier | None = None,
) -> FastAPI:
    config = payment_settings or settings.payments

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # The replay cache and HTTP client live exactly as long as the app.
        replay_cache = ReplayCache(config.replay_window_seconds)
        app.state.payment_gate = PaymentGate(config, replay_cache, verifier)
        app.state.http_client = httpx.AsyncClient(timeout=settings.providers.timeout_seconds)
        logger.info(
            "service_started",
            service=settings.service_name,
            version=settings.service_version,
            require_payment=config.require_payment,
        )
        try:
            yield
        finally:
            await app.state.http_client.aclose()
            replay_cache.clear()
            logger.info("service_stopped", service=settings.service_name)

    app = FastAPI(
        title="Token Data Aggregator",
        version=settings.service_version,
        lifespan=lifespan,
    )
    app.middleware("http")(payment_gate_middleware)
    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()
