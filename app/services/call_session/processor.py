"""Twilio media stream processor for a single call."""
import asyncio
import base64
import binascii
import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

from app.core.config import Settings, settings as default_settings
from app.services.audio.codec import decode_to_pcm
from app.services.call_session.finalizer import SessionFinalizer
from app.services.call_session.models import CallLog, CallSession
from app.services.fraud.classifier import FraudClassifier
from app.services.fraud.monitor import FraudMonitor
from app.services.persistence.storage import ObjectStorage
from app.services.speech.stt import Transcriber
from app.services.telephony.termination import CallTerminator

logger = logging.getLogger(__name__)

MULAW_BYTES_PER_SECOND = 8000


def _text_field(container: Any, key: str) -> Optional[str]:
    """Non-empty string value of a frame field, else None."""
    if not isinstance(container, dict):
        return None
    value = container.get(key)
    if isinstance(value, str) and value:
        return value
    return None


class StreamState(str, Enum):
    """Media stream lifecycle."""

    AWAITING_START = "awaiting_start"
    STREAMING = "streaming"
    ENDED = "ended"


class MediaStream(Protocol):
    """The part of a WebSocket the processor needs."""

    def iter_text(self) -> AsyncIterator[str]: ...

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None: ...


class CallStreamProcessor:
    """
    Consumes one call's media stream frame by frame.

    Audio is buffered and forwarded to transcription inline, while a
    FraudMonitor task evaluates the transcript in the background.
    Finalization runs exactly once when the stream ends, whether by a
    "stop" event, socket closure, a framing error or fraud termination.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        classifier: FraudClassifier,
        terminator: CallTerminator,
        storage: ObjectStorage,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.transcriber = transcriber
        self.session = CallSession(max_transcript_chars=self.settings.max_transcript_chars)
        self.monitor = FraudMonitor(
            classifier,
            terminator,
            interval_seconds=self.settings.fraud_check_interval_seconds,
            warning_message=self.settings.fraud_warning_message,
            timeout_seconds=self.settings.capability_timeout_seconds,
        )
        self.finalizer = SessionFinalizer(storage, self.settings)
        self.state = StreamState.AWAITING_START
        self.max_audio_bytes = self.settings.max_audio_seconds * MULAW_BYTES_PER_SECOND
        self._pending_media: List[bytes] = []
        self._pending_dropped = 0
        self._transcribing = False

    async def process(self, websocket: MediaStream) -> Optional[CallLog]:
        """Run the receive loop until the stream ends, then finalize."""
        try:
            await self._receive_loop(websocket)
        except Exception as e:
            logger.error(
                f"[STREAM] Receive loop failed - CallSid: {self.session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        finally:
            self.state = StreamState.ENDED
            self.session.mark_ended()
            await self.monitor.stop()
            await self._flush_transcription()
            call_log = await self.finalizer.finalize(self.session)
            self._pending_media = []
        return call_log

    async def _receive_loop(self, websocket: MediaStream) -> None:
        async for message in websocket.iter_text():
            try:
                frame = json.loads(message)
            except json.JSONDecodeError as e:
                logger.error(
                    f"[STREAM] Unparsable frame, ending stream - CallSid: {self.session.call_sid}, "
                    f"Error: {str(e)}"
                )
                return
            if not isinstance(frame, dict):
                logger.error(
                    f"[STREAM] Frame is not a JSON object, ending stream - CallSid: {self.session.call_sid}"
                )
                return

            if not await self.handle_event(frame):
                await self._close(websocket)
                return

        logger.info(f"[STREAM] Socket closed by remote - CallSid: {self.session.call_sid}")

    async def handle_event(self, frame: Dict[str, Any]) -> bool:
        """
        Dispatch one protocol event.

        Returns:
            False when the stream should end, True to keep reading
        """
        event = frame.get("event")
        if event == "connected":
            logger.debug("[STREAM] Connected event received")
        elif event == "start":
            await self._handle_start(frame)
        elif event == "media":
            await self._handle_media(frame)
        elif event == "stop":
            await self._handle_stop()
            return False
        else:
            logger.debug(f"[STREAM] Ignoring event {event!r} - CallSid: {self.session.call_sid}")
        return True

    async def _handle_start(self, frame: Dict[str, Any]) -> None:
        if self.state is not StreamState.AWAITING_START:
            logger.warning(f"[STREAM] Duplicate start event ignored - CallSid: {self.session.call_sid}")
            return

        start = frame.get("start")
        call_sid = _text_field(start, "callSid")
        if call_sid is None:
            logger.warning(f"[STREAM] Start event without callSid ignored: {frame}")
            return

        # Twilio puts caller details in customParameters when set by our TwiML
        params = start.get("customParameters")
        self.session.start(
            call_sid=call_sid,
            from_number=_text_field(start, "from") or _text_field(params, "from"),
            to_number=_text_field(start, "to") or _text_field(params, "to"),
            stream_sid=_text_field(start, "streamSid") or _text_field(frame, "streamSid"),
        )
        self.state = StreamState.STREAMING
        logger.info(
            f"[STREAM] Call started - CallSid: {self.session.call_sid}, "
            f"From: {self.session.from_number}, To: {self.session.to_number}"
        )

        try:
            await asyncio.wait_for(
                self.transcriber.start(), timeout=self.settings.capability_timeout_seconds
            )
            self._transcribing = True
        except Exception as e:
            logger.warning(
                f"[STREAM] Transcription stream failed to start, continuing without it - "
                f"CallSid: {self.session.call_sid}, Error: {type(e).__name__}: {str(e)}"
            )

        self.monitor.start(self.session)

        if self._pending_dropped:
            logger.warning(
                f"[STREAM] {self._pending_dropped} media frame(s) before start were dropped - "
                f"CallSid: {self.session.call_sid}"
            )
        if self._pending_media:
            pending, self._pending_media = self._pending_media, []
            logger.info(
                f"[STREAM] Replaying {len(pending)} media frame(s) received before start - "
                f"CallSid: {self.session.call_sid}"
            )
            for chunk in pending:
                await self._ingest(chunk)

    async def _handle_media(self, frame: Dict[str, Any]) -> None:
        media = frame.get("media")
        payload = media.get("payload") if isinstance(media, dict) else None
        if not isinstance(payload, str):
            logger.warning(f"[STREAM] Media event without payload ignored - CallSid: {self.session.call_sid}")
            return
        try:
            chunk = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            logger.warning(f"[STREAM] Media payload is not valid base64 - CallSid: {self.session.call_sid}")
            return

        if self.state is StreamState.AWAITING_START:
            if len(self._pending_media) < self.settings.pre_start_media_limit:
                self._pending_media.append(chunk)
            else:
                if not self._pending_dropped:
                    logger.warning(
                        f"[STREAM] Pre-start media limit of {self.settings.pre_start_media_limit} "
                        f"frames reached, dropping frames"
                    )
                self._pending_dropped += 1
            return

        if self.state is not StreamState.STREAMING:
            return
        if self.session.fraud.is_flagged:
            # Call is being torn down
            return
        await self._ingest(chunk)

    async def _ingest(self, chunk: bytes) -> None:
        """Buffer one mu-law chunk and forward it to transcription."""
        raw_audio = self.session.raw_audio
        room = self.max_audio_bytes - len(raw_audio)
        if room >= len(chunk):
            raw_audio.extend(chunk)
        else:
            if room > 0:
                raw_audio.extend(chunk[:room])
            if not self.session.audio_truncated:
                logger.warning(
                    f"[STREAM] Recording cap of {self.settings.max_audio_seconds}s reached - "
                    f"CallSid: {self.session.call_sid}"
                )
            self.session.audio_truncated = True

        text = await self._push_transcription(decode_to_pcm(chunk))
        if text:
            self.session.transcript.append(text, offset=self.session.elapsed_seconds())

    async def _push_transcription(self, pcm: bytes) -> str:
        if not self._transcribing:
            return ""
        try:
            return await asyncio.wait_for(
                self.transcriber.push(pcm), timeout=self.settings.capability_timeout_seconds
            ) or ""
        except Exception as e:
            logger.warning(
                f"[STREAM] Transcription push failed, skipping chunk - CallSid: {self.session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return ""

    async def _handle_stop(self) -> None:
        if self.state is StreamState.AWAITING_START:
            logger.warning("[STREAM] Stop event received before start")
        else:
            logger.info(f"[STREAM] Stop event received - CallSid: {self.session.call_sid}")
        self.session.mark_ended()
        self.state = StreamState.ENDED
        await self.monitor.stop()
        await self._flush_transcription()

    async def _flush_transcription(self) -> None:
        """Close the transcription stream once and keep its trailing text."""
        if not self._transcribing:
            return
        self._transcribing = False
        try:
            text = await asyncio.wait_for(
                self.transcriber.stop(), timeout=self.settings.capability_timeout_seconds
            )
        except Exception as e:
            logger.warning(
                f"[STREAM] Transcription stop failed - CallSid: {self.session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return
        if text:
            self.session.transcript.append(text, offset=self.session.elapsed_seconds())

    async def _close(self, websocket: MediaStream) -> None:
        try:
            await websocket.close(code=1000)
        except Exception as e:
            logger.debug(f"[STREAM] Socket already closed: {type(e).__name__}: {str(e)}")
