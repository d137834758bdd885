"""Call artifact API endpoints."""
import json
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from app.core.config import settings
from app.core.dependencies import get_object_storage
from app.services.call_session.finalizer import audio_object_name, log_object_name
from app.services.persistence.storage import ObjectStorage

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/calls/{call_sid}/log")
async def get_call_log(
    call_sid: str,
    storage: ObjectStorage = Depends(get_object_storage),
):
    """Get the persisted log for a call."""
    logger.info(f"[CALLS API] Log requested - CallSid: {call_sid}")
    try:
        obj = await storage.read(settings.log_container, log_object_name(call_sid))
    except Exception as e:
        logger.error(
            f"[CALLS API] Error reading call log - CallSid: {call_sid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Error reading call log: {str(e)}")

    if obj is None:
        raise HTTPException(status_code=404, detail="Call log not found")
    return json.loads(obj.data)


@router.get("/api/calls/{call_sid}/audio")
async def get_call_audio(
    call_sid: str,
    storage: ObjectStorage = Depends(get_object_storage),
):
    """Download the call recording as WAV."""
    logger.info(f"[CALLS API] Audio requested - CallSid: {call_sid}")
    try:
        obj = await storage.read(settings.audio_container, audio_object_name(call_sid))
    except Exception as e:
        logger.error(
            f"[CALLS API] Error reading call audio - CallSid: {call_sid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        raise HTTPException(status_code=500, detail=f"Error reading call audio: {str(e)}")

    if obj is None:
        raise HTTPException(status_code=404, detail="Call recording not found")
    return Response(content=obj.data, media_type=obj.content_type or "audio/wav")
