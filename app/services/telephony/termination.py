"""Live call termination through the Twilio REST API."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from twilio.rest import Client
from twilio.twiml.voice_response import VoiceResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


class CallTerminator(ABC):
    """Capability that plays a message on a live call and hangs it up."""

    @abstractmethod
    async def terminate(self, call_sid: str, message: str) -> None:
        pass


def build_warning_twiml(message: str) -> str:
    """TwiML that speaks the warning then hangs up."""
    response = VoiceResponse()
    response.say(message, voice="alice")
    response.hangup()
    return str(response)


class TwilioCallTerminator(CallTerminator):
    """Redirects a live call to warning + hangup TwiML."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or Client(settings.twilio_account_sid, settings.twilio_auth_token)

    async def terminate(self, call_sid: str, message: str) -> None:
        if not call_sid:
            logger.warning("[TERMINATION] No CallSid, cannot terminate call")
            return

        twiml = build_warning_twiml(message)
        logger.info(f"[TERMINATION] Updating live call with warning + hangup - CallSid: {call_sid}")
        # The Twilio helper library is synchronous
        await asyncio.to_thread(self._update_call, call_sid, twiml)

    def _update_call(self, call_sid: str, twiml: str) -> None:
        self.client.calls(call_sid).update(twiml=twiml)
