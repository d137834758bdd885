"""Twilio voice webhook endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Request, Form
from fastapi.responses import Response
from twilio.twiml.voice_response import Connect, VoiceResponse

from app.core.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


def get_base_url(request: Request) -> str:
    """
    Get the base URL for constructing absolute URLs.

    Uses BASE_URL environment variable if set, otherwise constructs from request.
    """
    if settings.base_url:
        return settings.base_url.rstrip('/')
    return str(request.base_url).rstrip('/')


def get_stream_url(request: Request) -> str:
    """WebSocket URL Twilio should stream call audio to."""
    base_url = get_base_url(request)
    host = base_url.split("://", 1)[-1]
    return f"wss://{host}/stream"


def generate_stream_twiml(stream_url: str, from_number: Optional[str], to_number: Optional[str]) -> str:
    """TwiML that connects the call audio to our media stream."""
    response = VoiceResponse()
    connect = Connect()
    stream = connect.stream(url=stream_url)
    # Twilio's start event carries these back as customParameters
    if from_number:
        stream.parameter(name="from", value=from_number)
    if to_number:
        stream.parameter(name="to", value=to_number)
    response.append(connect)
    return str(response)


@router.post("/voice/incoming")
async def handle_incoming_call(
    request: Request,
    CallSid: str = Form(...),
    From: Optional[str] = Form(None),
    To: Optional[str] = Form(None),
):
    """
    Handle incoming call from Twilio.

    Responds with TwiML that streams the call's audio to /stream.
    """
    logger.info(
        f"[INCOMING CALL] Received incoming call webhook - CallSid: {CallSid}, "
        f"From: {From}, To: {To}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        stream_url = get_stream_url(request)
        twiml = generate_stream_twiml(stream_url, From, To)
        logger.info(
            f"[INCOMING CALL] Connecting call to media stream {stream_url} - CallSid: {CallSid}"
        )
        return Response(content=twiml, media_type="application/xml")

    except Exception as e:
        logger.error(
            f"[INCOMING CALL] Error processing incoming call - CallSid: {CallSid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True
        )
        # Keep the caller from hearing a Twilio application error
        response = VoiceResponse()
        response.say("We are unable to take your call right now. Goodbye.", voice="alice")
        response.hangup()
        return Response(content=str(response), media_type="application/xml")
