"""End-of-call persistence: recording, call log, buffer release."""
import asyncio
import logging
from typing import Optional

from app.core.config import Settings, settings as default_settings
from app.services.audio.codec import build_audio_container, decode_to_pcm
from app.services.call_session.models import CallLog, CallSession, TranscriptSegment
from app.services.persistence.storage import ObjectStorage

logger = logging.getLogger(__name__)


def audio_object_name(call_sid: str) -> str:
    return f"{call_sid}.wav"


def log_object_name(call_sid: str) -> str:
    return f"{call_sid}.json"


class SessionFinalizer:
    """Runs once per session, whichever way the stream ended."""

    def __init__(self, storage: ObjectStorage, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or default_settings

    async def finalize(self, session: CallSession) -> Optional[CallLog]:
        """
        Persist the recording and call log, then release buffers.

        A second call for the same session does nothing. Each step is
        independent: a failed audio upload still lets the log be written.

        Returns:
            The call log that was assembled, or None if nothing was persisted
        """
        if session.finalized:
            logger.debug(f"[FINALIZER] Already finalized - CallSid: {session.call_sid}")
            return None
        session.finalized = True
        session.mark_ended()
        # Terminal fraud state: anything not flagged by now is clear
        session.fraud.clear()

        try:
            if not session.is_started:
                logger.warning(
                    f"[FINALIZER] Stream ended before a start event, nothing to persist "
                    f"({len(session.raw_audio)} audio bytes dropped)"
                )
                return None

            audio_location = await self._persist_audio(session)
            call_log = await self._persist_log(session, audio_location)
            if call_log is None:
                return None

            logger.info(
                f"[FINALIZER] Call finalized - CallSid: {session.call_sid}, "
                f"Audio: {audio_location}, Transcript chars: {len(call_log.transcript)}, "
                f"Fraud: {call_log.fraud_detected}"
            )
            return call_log
        finally:
            session.release()

    def build_call_log(self, session: CallSession, audio_location: Optional[str]) -> CallLog:
        segments = [
            TranscriptSegment(offset_seconds=offset or 0.0, text=text)
            for offset, text in session.transcript.segments()
        ]
        return CallLog(
            call_sid=session.call_sid,
            from_number=session.from_number,
            to_number=session.to_number,
            start_time=session.started_at,
            end_time=session.ended_at,
            transcript=session.transcript.snapshot(),
            segments=segments,
            transcript_truncated=session.transcript.truncated,
            fraud_detected=session.fraud.is_flagged,
            fraud_reason=session.fraud.reason,
            audio_location=audio_location,
        )

    async def _persist_audio(self, session: CallSession) -> Optional[str]:
        if not session.raw_audio:
            logger.info(f"[FINALIZER] No audio received - CallSid: {session.call_sid}")
            return None

        try:
            wav = build_audio_container(decode_to_pcm(bytes(session.raw_audio)))
            return await asyncio.wait_for(
                self.storage.write(
                    self.settings.audio_container,
                    audio_object_name(session.call_sid),
                    wav,
                    content_type="audio/wav",
                ),
                timeout=self.settings.capability_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                f"[FINALIZER] Audio upload failed - CallSid: {session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return None

    async def _persist_log(self, session: CallSession, audio_location: Optional[str]) -> Optional[CallLog]:
        """Assemble and write the call log; returns it even if the write failed."""
        call_log = None
        try:
            call_log = self.build_call_log(session, audio_location)
            data = call_log.model_dump_json(by_alias=True).encode("utf-8")
            await asyncio.wait_for(
                self.storage.write(
                    self.settings.log_container,
                    log_object_name(session.call_sid),
                    data,
                    content_type="application/json",
                ),
                timeout=self.settings.capability_timeout_seconds,
            )
        except Exception as e:
            logger.error(
                f"[FINALIZER] Call log write failed - CallSid: {session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        return call_log
