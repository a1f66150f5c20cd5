# api/server.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from api.routes.webhook import router as webhook_router
from core.orchestrator import DeploymentOrchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to serve webhooks without a working engine connection
    engine = app.state.orchestrator.engine
    images = await engine.list_images()
    logger.debug("Listing images currently present on host:")
    for idx, tags in enumerate(images):
        logger.debug(f"  - Image #{idx} - {tags}")
    logger.info("Deploy webhook server ready")

    yield


def create_app(orchestrator: DeploymentOrchestrator) -> FastAPI:
    app = FastAPI(title="Deploy Webhook", lifespan=lifespan, openapi_url=None)
    app.state.orchestrator = orchestrator
    app.include_router(webhook_router)
    return app
