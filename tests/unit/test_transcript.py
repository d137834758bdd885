"""Unit tests for the transcript accumulator."""
import asyncio
import threading

import pytest

from app.services.call_session.transcript import TranscriptAccumulator


class TestTranscriptAccumulator:
    """Test ordered append and snapshot."""

    def test_append_in_order(self):
        transcript = TranscriptAccumulator()
        for text in ["a", "b", "c"]:
            transcript.append(text)
        assert transcript.snapshot() == "abc"

    def test_empty_text_ignored(self):
        transcript = TranscriptAccumulator()
        assert transcript.append("") == 0
        assert transcript.snapshot() == ""
        assert transcript.segments() == []

    def test_segments_keep_offsets(self):
        transcript = TranscriptAccumulator()
        transcript.append("hello ", offset=1.5)
        transcript.append("world", offset=3.0)
        assert transcript.segments() == [(1.5, "hello "), (3.0, "world")]

    def test_cap_keeps_prefix(self):
        transcript = TranscriptAccumulator(max_chars=5)
        assert transcript.append("abc") == 3
        assert transcript.append("defg") == 2
        assert transcript.append("h") == 0
        assert transcript.snapshot() == "abcde"
        assert transcript.truncated is True

    def test_unbounded_by_default(self):
        transcript = TranscriptAccumulator()
        transcript.append("x" * 100_000)
        assert len(transcript) == 100_000
        assert transcript.truncated is False

    def test_clear(self):
        transcript = TranscriptAccumulator()
        transcript.append("something")
        transcript.clear()
        assert transcript.snapshot() == ""
        assert len(transcript) == 0

    def test_concurrent_threads_never_tear(self):
        """Snapshots taken during appends are always whole-segment prefixes."""
        transcript = TranscriptAccumulator()
        words = [f"word{i:04d} " for i in range(2000)]
        expected = "".join(words)
        bad = []

        def writer():
            for word in words:
                transcript.append(word)

        def reader():
            for _ in range(500):
                snap = transcript.snapshot()
                if not expected.startswith(snap) or len(snap) % len(words[0]) != 0:
                    bad.append(snap)

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert bad == []
        assert transcript.snapshot() == expected

    @pytest.mark.asyncio
    async def test_concurrent_tasks_never_tear(self):
        transcript = TranscriptAccumulator()
        chunks = ["alpha ", "beta ", "gamma ", "delta "] * 50
        expected = "".join(chunks)
        snapshots = []

        async def writer():
            for chunk in chunks:
                transcript.append(chunk)
                await asyncio.sleep(0)

        async def reader():
            for _ in range(100):
                snapshots.append(transcript.snapshot())
                await asyncio.sleep(0)

        await asyncio.gather(writer(), reader())

        assert all(expected.startswith(snap) for snap in snapshots)
        assert transcript.snapshot() == expected
