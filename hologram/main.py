"""Hologram - photo library indexing engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hologram.api import photos, scan
from hologram.config import settings
from hologram.engine import engine

logger = logging.getLogger("hologram")


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    configure_logging()

    logger.info("Starting Hologram photo engine")
    logger.info("Scan workers: %d", settings.worker_count)

    yield

    # Shutdown
    logger.info("Shutting down Hologram")
    engine.cancel_scan()


app = FastAPI(
    title="Hologram",
    description="Photo library indexing engine",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for the desktop webview
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(scan.router)
app.include_router(photos.router)


@app.get("/api/health")
async def health_check():
    return {"status": "ok", "app": "hologram", "version": "0.1.0"}
