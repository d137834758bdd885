"""Health check endpoint."""
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.database import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """Health check endpoint, including database reachability."""
    logger.debug(
        f"[HEALTH] Health check requested - Client: {request.client.host if request.client else 'unknown'}"
    )
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error(f"[HEALTH] Database check failed: {type(e).__name__}: {str(e)}")
        database = "unavailable"
    return {"status": "healthy" if database == "ok" else "degraded", "database": database}
