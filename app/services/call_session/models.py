"""Call session models."""
import threading
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.services.call_session.transcript import TranscriptAccumulator


class FraudStatus(str, Enum):
    """Fraud evaluation outcome for a call."""

    UNKNOWN = "unknown"
    CLEAR = "clear"
    FLAGGED = "flagged"


class FraudVerdict(BaseModel):
    """Result of a single classifier evaluation."""

    is_fraud: bool
    reason: Optional[str] = None


class VerdictCell:
    """Single-assignment fraud state shared by the receive loop and the monitor."""

    def __init__(self):
        self._lock = threading.Lock()
        self._status = FraudStatus.UNKNOWN
        self._reason: Optional[str] = None

    @property
    def status(self) -> FraudStatus:
        return self._status

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    @property
    def is_flagged(self) -> bool:
        return self._status is FraudStatus.FLAGGED

    def flag(self, reason: Optional[str]) -> bool:
        """Move to FLAGGED. Returns False if a terminal value was already set."""
        with self._lock:
            if self._status is not FraudStatus.UNKNOWN:
                return False
            self._status = FraudStatus.FLAGGED
            self._reason = reason
            return True

    def clear(self) -> bool:
        """Move to CLEAR. Returns False if a terminal value was already set."""
        with self._lock:
            if self._status is not FraudStatus.UNKNOWN:
                return False
            self._status = FraudStatus.CLEAR
            return True


class TranscriptSegment(BaseModel):
    """Piece of transcribed text and when it arrived."""

    offset_seconds: float
    text: str


class CallSession:
    """State for one live media stream."""

    def __init__(self, max_transcript_chars: Optional[int] = None):
        self.call_sid: Optional[str] = None
        self.stream_sid: Optional[str] = None
        self.from_number: Optional[str] = None
        self.to_number: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.ended_at: Optional[datetime] = None
        self.raw_audio = bytearray()  # mu-law, written only by the receive loop
        self.audio_truncated = False
        self.transcript = TranscriptAccumulator(max_chars=max_transcript_chars)
        self.fraud = VerdictCell()
        self.finalized = False

    def start(
        self,
        call_sid: str,
        from_number: Optional[str],
        to_number: Optional[str],
        stream_sid: Optional[str] = None,
    ) -> None:
        """Populate identity fields from the "start" event."""
        if self.call_sid:
            raise RuntimeError(f"Session already started for {self.call_sid}")
        self.call_sid = call_sid
        self.stream_sid = stream_sid
        self.from_number = from_number
        self.to_number = to_number
        self.started_at = datetime.utcnow()
        self.raw_audio = bytearray()

    @property
    def is_started(self) -> bool:
        return bool(self.call_sid)

    def mark_ended(self) -> None:
        """Record the end time once."""
        if self.ended_at is None:
            self.ended_at = datetime.utcnow()

    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return (datetime.utcnow() - self.started_at).total_seconds()

    def release(self) -> None:
        """Drop per-call buffers."""
        self.raw_audio = bytearray()
        self.transcript.clear()


class CallLog(BaseModel):
    """Persisted call log record."""

    model_config = ConfigDict(populate_by_name=True)

    call_sid: str = Field(alias="callSid")
    from_number: Optional[str] = Field(default=None, alias="from")
    to_number: Optional[str] = Field(default=None, alias="to")
    start_time: Optional[datetime] = Field(default=None, alias="startTime")
    end_time: Optional[datetime] = Field(default=None, alias="endTime")
    transcript: str = ""
    segments: List[TranscriptSegment] = []
    transcript_truncated: bool = Field(default=False, alias="transcriptTruncated")
    fraud_detected: bool = Field(default=False, alias="fraudDetected")
    fraud_reason: Optional[str] = Field(default=None, alias="fraudReason")
    audio_location: Optional[str] = Field(default=None, alias="audioLocation")
