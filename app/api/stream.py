"""Twilio media stream WebSocket endpoint."""
import logging
from fastapi import APIRouter, Depends, WebSocket

from app.core.dependencies import get_call_stream_processor
from app.services.call_session.processor import CallStreamProcessor

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/stream")
async def media_stream(
    websocket: WebSocket,
    processor: CallStreamProcessor = Depends(get_call_stream_processor),
):
    """Accept Twilio's media stream and process it until the call ends."""
    await websocket.accept()
    logger.info(
        f"[MEDIA STREAM] WebSocket accepted - "
        f"Client: {websocket.client.host if websocket.client else 'unknown'}"
    )
    await processor.process(websocket)
    logger.info(f"[MEDIA STREAM] Stream processing finished - CallSid: {processor.session.call_sid}")
