# bulkfulfill/main.py
from __future__ import annotations

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Logging unificado (JSON/UTC, mask de segredos, correlation id)
from bulkfulfill.common.logging_setup import get_logger, setup_logging

# Middleware de correlação (garante X-Request-Id de entrada/saída)
from bulkfulfill.common.middlewares import CorrelationIdMiddleware
from bulkfulfill.common.settings import settings
from bulkfulfill.routers.shopify_fulfillment import router as shopify_fulfillment_router


# -----------------------------------------------------------------------------
# Inicialização de logging
# -----------------------------------------------------------------------------
def _init_logging() -> None:
    # Lê envs: LOG_LEVEL, LOG_FILE, LOG_MASK_SECRETS, APP_NAME, APP_VERSION, APP_ENV
    setup_logging()

    logger = get_logger(__name__)
    logger.info(
        "app_startup",
        extra={
            "app": os.getenv("APP_NAME", "bulk-fulfillment"),
            "version": os.getenv("APP_VERSION", "0.0.0"),
            "shop_configured": bool(settings.SHOP_URL and settings.SHOPIFY_TOKEN),
        },
    )


# -----------------------------------------------------------------------------
# Criação do app
# -----------------------------------------------------------------------------
def create_app() -> FastAPI:
    _init_logging()

    app = FastAPI(title="Bulk Fulfillment API")

    app.add_middleware(CorrelationIdMiddleware)

    # CORS — em produção, restrinja as origens
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(shopify_fulfillment_router)

    @app.get("/health", tags=["Health"])
    def health() -> dict[str, bool]:
        return {"ok": True}

    return app


# Instância utilizada pelo servidor (uvicorn/gunicorn)
app = create_app()
