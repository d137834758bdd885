"""LLM fraud classifier."""
import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from openai import AsyncOpenAI

from app.core.config import settings
from app.services.call_session.models import FraudVerdict

logger = logging.getLogger(__name__)

FRAUD_SYSTEM_PROMPT = (
    "You are a fraud detection AI monitoring a live phone call. "
    "Analyze the call transcript and decide whether the caller is attempting a scam "
    "(impersonation, requests for credentials or payment, pressure tactics, etc.). "
    'Respond only with JSON: {"fraud": true/false, "reason": "..."}. '
    "Leave reason empty when fraud is false."
)


class FraudClassificationError(Exception):
    """Raised when the classifier returns something we cannot interpret."""


class FraudClassifier(ABC):
    """Abstract base class for transcript fraud classifiers."""

    @abstractmethod
    async def evaluate(self, transcript: str) -> FraudVerdict:
        """Judge a transcript snapshot."""
        pass


def parse_verdict(content: Optional[str]) -> FraudVerdict:
    """
    Parse the model's JSON answer into a FraudVerdict.

    Raises:
        FraudClassificationError: If the content is not the expected JSON
    """
    try:
        data = json.loads(content or "")
    except json.JSONDecodeError as e:
        raise FraudClassificationError(f"Classifier returned invalid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("fraud"), bool):
        raise FraudClassificationError(f"Classifier returned unexpected payload: {content!r}")

    if not data["fraud"]:
        return FraudVerdict(is_fraud=False)

    reason = data.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = "Unspecified fraud indicators"
    return FraudVerdict(is_fraud=True, reason=reason.strip())


class OpenAIFraudClassifier(FraudClassifier):
    """Fraud classifier backed by OpenAI chat completions."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self.client = client or AsyncOpenAI(api_key=settings.openai_api_key)
        self.model = model or settings.fraud_model

    async def evaluate(self, transcript: str) -> FraudVerdict:
        if not transcript.strip():
            return FraudVerdict(is_fraud=False)

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": FRAUD_SYSTEM_PROMPT},
                {"role": "user", "content": f"Call transcript:\n{transcript}"},
            ],
            temperature=0.2,
            max_tokens=100,
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content
        logger.debug(f"[FRAUD CLASSIFIER] Raw response: {content}")
        return parse_verdict(content)
