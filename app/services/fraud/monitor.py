"""Periodic fraud evaluation of a live call transcript."""
import asyncio
import logging
from enum import Enum
from typing import Optional

from app.core.config import settings
from app.services.call_session.models import CallSession
from app.services.fraud.classifier import FraudClassifier
from app.services.telephony.termination import CallTerminator

logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    """Fraud monitor lifecycle."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class FraudMonitor:
    """
    Background task that re-evaluates the transcript every interval.

    A positive verdict flags the session (first writer wins), asks the
    carrier to play a warning and disconnect, and ends the monitor. Classifier
    errors and timeouts count as a clear verdict for that cycle only.
    """

    def __init__(
        self,
        classifier: FraudClassifier,
        terminator: CallTerminator,
        interval_seconds: Optional[float] = None,
        warning_message: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.classifier = classifier
        self.terminator = terminator
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.fraud_check_interval_seconds
        )
        self.warning_message = warning_message or settings.fraud_warning_message
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.capability_timeout_seconds
        )
        self.state = MonitorState.IDLE
        self.cycles = 0
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._terminating = False

    def start(self, session: CallSession) -> None:
        """Begin periodic checks. Only valid from IDLE."""
        if self.state is not MonitorState.IDLE:
            logger.warning(
                f"[FRAUD MONITOR] start() ignored in state {self.state.value} - CallSid: {session.call_sid}"
            )
            return
        self.state = MonitorState.RUNNING
        self._task = asyncio.create_task(
            self._run(session), name=f"fraud-monitor-{session.call_sid}"
        )
        logger.info(
            f"[FRAUD MONITOR] Started, interval {self.interval_seconds}s - CallSid: {session.call_sid}"
        )

    async def stop(self) -> None:
        """Stop the monitor from any state. Safe to call more than once."""
        self._stop_event.set()
        task = self._task
        if task is not None and not task.done():
            # Let an in-flight termination request finish; it is bounded by the timeout
            if not self._terminating:
                task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self.state = MonitorState.STOPPED

    async def _run(self, session: CallSession) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                    break
                except asyncio.TimeoutError:
                    pass
                if await self.run_cycle(session):
                    break
        finally:
            self.state = MonitorState.STOPPED
            logger.info(
                f"[FRAUD MONITOR] Stopped after {self.cycles} cycle(s) - CallSid: {session.call_sid}"
            )

    async def run_cycle(self, session: CallSession) -> bool:
        """
        Run one evaluation.

        Returns:
            True if the monitor should end (fraud flagged), False otherwise
        """
        self.cycles += 1
        transcript = session.transcript.snapshot()
        if not transcript.strip():
            logger.debug(f"[FRAUD MONITOR] Empty transcript, skipping - CallSid: {session.call_sid}")
            return False

        try:
            verdict = await asyncio.wait_for(
                self.classifier.evaluate(transcript), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[FRAUD MONITOR] Classifier timed out after {self.timeout_seconds}s, "
                f"treating as clear - CallSid: {session.call_sid}"
            )
            return False
        except Exception as e:
            logger.warning(
                f"[FRAUD MONITOR] Classifier failed, treating as clear - CallSid: {session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return False

        logger.info(
            f"[FRAUD MONITOR] Cycle {self.cycles} verdict: fraud={verdict.is_fraud} - "
            f"CallSid: {session.call_sid}"
        )
        if not verdict.is_fraud:
            return False

        if self._stop_event.is_set():
            logger.info(
                f"[FRAUD MONITOR] Positive verdict arrived after stop, ignoring - CallSid: {session.call_sid}"
            )
            return True

        if not session.fraud.flag(verdict.reason):
            return True

        logger.warning(
            f"[FRAUD MONITOR] Fraud detected, terminating call - CallSid: {session.call_sid}, "
            f"Reason: {verdict.reason}"
        )
        self._terminating = True
        try:
            await asyncio.wait_for(
                self.terminator.terminate(session.call_sid, self.warning_message),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"[FRAUD MONITOR] Call termination timed out - CallSid: {session.call_sid}"
            )
        except Exception as e:
            logger.error(
                f"[FRAUD MONITOR] Call termination failed - CallSid: {session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
        finally:
            self._terminating = False
        return True
