from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from dotenv import load_dotenv

# Load environment variables from .env at project root
# before the app (and settings) are created.
load_dotenv()

from fastapi import FastAPI

from gassafe.config import settings
from gassafe.db import init_db
from gassafe.routers import admin as admin_router
from gassafe.routers import api as api_router
from gassafe.routers import public as public_router

logger = logging.getLogger("gassafe.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Starting %s...", settings.app_name)
    init_db()
    logger.info("%s started.", settings.app_name)
    yield
    logger.info("%s shutting down.", settings.app_name)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

    # Public intake + booking completion pages
    app.include_router(public_router.router)

    # Admin workspace (cookie-gated)
    app.include_router(admin_router.router)

    # JSON API for the same operations
    app.include_router(api_router.router)

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok", "app": settings.app_name}

    return app


app = create_app()
