"""
FastAPI API Server.

HTTP surface around the Lead Reasoning Engine: per-turn reasoning, lead
and appointment records, manager summaries, and the voice transport
webhook. The engine itself knows nothing about HTTP; routers call it and
persist what it returns.

Start with:
    uvicorn lead_reasoner.api_server:app --reload --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv
load_dotenv(".env.local")

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lead_reasoner.api import appointments, leads, reason, webhooks
from lead_reasoner.api.middleware import RequestContextMiddleware
from lead_reasoner.config import get_settings
from lead_reasoner.logging_config import get_logger, setup_logging

setup_logging()
logger = get_logger(__name__)

SERVICE_NAME = "lead-reasoner"
VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    if not settings.llm_api_key:
        logger.warning("llm_api_key_missing", detail="every reasoning turn will fall back")
    logger.info(
        "api_server_starting",
        environment=settings.environment.value,
        model=settings.llm_model,
        market_region=settings.market_region,
        rule_engine_authoritative=settings.rule_engine_authoritative,
    )
    yield
    logger.info("api_server_stopping")


def create_app() -> FastAPI:
    """Build the application with middleware and routers attached."""
    settings = get_settings()

    app = FastAPI(
        title="Lead Reasoning Engine API",
        description="Qualifies real-estate leads from conversation with auditable, confidence-aware decisions",
        version=VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for module in (reason, leads, appointments, webhooks):
        app.include_router(module.router)

    @app.get("/health", tags=["System"])
    async def health_check() -> dict[str, str]:
        return {"status": "ok", "service": SERVICE_NAME}

    @app.get("/", tags=["System"])
    async def root() -> dict[str, str]:
        return {
            "service": "Lead Reasoning Engine",
            "version": VERSION,
            "market_region": settings.market_region,
            "docs": "/docs",
        }

    return app


app = create_app()
