# evalhub/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from evalhub.core.config import settings
from evalhub.core.healthcheck import is_healthy
from evalhub.core.logging import setup_logging
from evalhub.db.engine import dispose_engine
from evalhub.routes import register_routes

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager.
    """
    logger.info("Starting %s (%s mode)", settings.app_name, settings.env)

    if not await is_healthy():
        raise RuntimeError("System failed health check at startup")

    yield

    await dispose_engine()
    logger.info("Shutting down %s", settings.app_name)


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None,
    )

    register_routes(app)

    return app


app = create_app()
