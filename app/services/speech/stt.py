"""Speech-to-text service."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import AsyncOpenAI

from app.core.config import settings
from app.services.audio.codec import build_audio_container

logger = logging.getLogger(__name__)

# 8 kHz, 16-bit mono
PCM_BYTES_PER_SECOND = 8000 * 2


class Transcriber(ABC):
    """Streaming transcription capability for a single call."""

    @abstractmethod
    async def start(self) -> None:
        """Open the transcription stream."""
        pass

    @abstractmethod
    async def push(self, pcm: bytes) -> str:
        """Feed linear PCM audio, returning any text that became available."""
        pass

    @abstractmethod
    async def stop(self) -> str:
        """Close the stream and return trailing text."""
        pass


class WhisperTranscriber(Transcriber):
    """
    Pseudo-streaming transcription on top of OpenAI Whisper.

    Decoded audio is buffered and sent to Whisper as a WAV file every
    ``chunk_seconds`` of speech; ``stop`` transcribes whatever is left.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        chunk_seconds: Optional[float] = None,
    ):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.transcription_model
        seconds = chunk_seconds if chunk_seconds is not None else settings.transcription_chunk_seconds
        self.chunk_bytes = max(2, int(seconds * PCM_BYTES_PER_SECOND))
        self._buffer = bytearray()
        self._open = False

    async def start(self) -> None:
        self._buffer = bytearray()
        self._open = True

    async def push(self, pcm: bytes) -> str:
        if not self._open:
            return ""
        self._buffer.extend(pcm)
        if len(self._buffer) < self.chunk_bytes:
            return ""
        chunk = bytes(self._buffer)
        self._buffer = bytearray()
        return await self._transcribe(chunk)

    async def stop(self) -> str:
        if not self._open:
            return ""
        self._open = False
        chunk = bytes(self._buffer)
        self._buffer = bytearray()
        if not chunk:
            return ""
        return await self._transcribe(chunk)

    async def _transcribe(self, pcm: bytes) -> str:
        wav = build_audio_container(pcm)
        try:
            transcript = await self.client.audio.transcriptions.create(
                model=self.model,
                file=("audio.wav", wav, "audio/wav"),
            )
        except Exception as e:
            raise Exception(f"Transcription failed: {str(e)}") from e

        text = (transcript.text or "").strip()
        logger.debug(f"[STT] Transcribed {len(pcm)} PCM bytes -> {len(text)} chars")
        return f"{text} " if text else ""
