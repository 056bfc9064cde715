"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api import positions
from database import Base, get_engine
from logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup; close provider clients on shutdown."""
    try:
        Base.metadata.create_all(bind=get_engine())
    except Exception:
        logger.warning("Table creation failed on startup", exc_info=True)
    yield
    positions.close_position_service()


app = FastAPI(
    title="Wallet Positions",
    description="FIFO lot matching and position analytics for tracked wallets",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(positions.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
