"""FastAPI dependencies."""
from app.core.config import settings
from app.db.database import AsyncSessionLocal
from app.services.call_session.processor import CallStreamProcessor
from app.services.fraud.classifier import OpenAIFraudClassifier
from app.services.persistence.storage import DatabaseObjectStorage, ObjectStorage
from app.services.speech.stt import WhisperTranscriber
from app.services.telephony.termination import TwilioCallTerminator


def get_object_storage() -> ObjectStorage:
    """Get object storage instance."""
    return DatabaseObjectStorage(AsyncSessionLocal)


def get_call_stream_processor() -> CallStreamProcessor:
    """Build a processor with fresh per-call capabilities."""
    return CallStreamProcessor(
        transcriber=WhisperTranscriber(),
        classifier=OpenAIFraudClassifier(),
        terminator=TwilioCallTerminator(),
        storage=get_object_storage(),
        settings=settings,
    )
