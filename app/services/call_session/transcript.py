"""Append-only transcript buffer shared between the receive loop and the fraud monitor."""
import logging
import threading
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class TranscriptAccumulator:
    """
    Ordered, append-only text buffer.

    Appends and snapshots take a short lock so a reader never sees a
    half-applied append. When ``max_chars`` is set, text past the cap is
    dropped; the earliest text is kept so every snapshot remains a prefix of
    the full transcript.
    """

    def __init__(self, max_chars: Optional[int] = None):
        self._lock = threading.Lock()
        self._parts: List[str] = []
        self._offsets: List[Optional[float]] = []
        self._length = 0
        self.max_chars = max_chars
        self.truncated = False

    def append(self, text: str, offset: Optional[float] = None) -> int:
        """
        Append text in arrival order.

        Returns:
            Number of characters actually stored
        """
        if not text:
            return 0
        with self._lock:
            if self.max_chars is not None:
                room = self.max_chars - self._length
                if room <= 0:
                    if not self.truncated:
                        logger.warning(
                            f"[TRANSCRIPT] Cap of {self.max_chars} chars reached, dropping further text"
                        )
                    self.truncated = True
                    return 0
                if len(text) > room:
                    text = text[:room]
                    self.truncated = True
            self._parts.append(text)
            self._offsets.append(offset)
            self._length += len(text)
            return len(text)

    def snapshot(self) -> str:
        """Return the full transcript so far."""
        with self._lock:
            parts = list(self._parts)
        return "".join(parts)

    def segments(self) -> List[Tuple[Optional[float], str]]:
        """Return (offset, text) pairs in arrival order."""
        with self._lock:
            return list(zip(self._offsets, self._parts))

    def clear(self) -> None:
        with self._lock:
            self._parts = []
            self._offsets = []
            self._length = 0

    def __len__(self) -> int:
        return self._length
