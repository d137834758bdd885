"""Main FastAPI application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from app.core.logging import setup_logging
from app.db.database import init_db
from app.api import health, calls, stream
from app.api.webhooks import voice


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    setup_logging()
    await init_db()
    yield


app = FastAPI(
    title="Call Fraud Guard",
    description="Real-time fraud monitoring for Twilio call media streams",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])
app.include_router(voice.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(stream.router, tags=["stream"])
app.include_router(calls.router, tags=["calls"])


@app.get("/")
async def root():
    """Service info."""
    return {
        "message": "Call Fraud Guard API",
        "version": "0.1.0",
    }
