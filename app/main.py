"""FastAPI application entrypoint. No business logic; only wiring, middleware and lifecycle."""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from app.api.v1 import router as v1_router
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.logging_config import configure_logging
from app.services.scan_orchestrator import get_orchestrator, recover_interrupted_scans

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Fail scans orphaned by a previous process on startup; stop running scans on shutdown."""
    try:
        with SessionLocal() as db:
            recover_interrupted_scans(db)
    except SQLAlchemyError as e:
        logger.error("Could not recover interrupted scans at startup: %s", e)
    yield
    await get_orchestrator().shutdown()


app = FastAPI(
    title="Codeward API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Codeward API"}
