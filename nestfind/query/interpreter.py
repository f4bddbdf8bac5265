from typing import Protocol

from nestfind.constants import (
    PARSE_FAILURE_CONFIDENCE,
    SERVICE_FAILURE_CONFIDENCE,
    UNCONFIGURED_CONFIDENCE,
    UNEXPECTED_FAILURE_CONFIDENCE,
)
from nestfind.errors import InterpretationError
from nestfind.logging import get_logger
from nestfind.models import Interpretation, RetrievalContext
from nestfind.query.fallback import parse_locally
from nestfind.query.parsing import compute_confidence, parse_criteria
from nestfind.query.prompts import build_prompt

_logger = get_logger(__name__)


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class QueryInterpreter:
    """Free text -> (criteria, confidence). Never raises; degrades to the local parser."""

    def __init__(self, service: TextGenerator | None = None):
        self.service = service

    @property
    def configured(self) -> bool:
        return self.service is not None

    def fallback(self, text: str, confidence: float) -> Interpretation:
        return Interpretation(criteria=parse_locally(text), confidence=confidence)

    async def interpret(self, text: str, context: RetrievalContext | None = None) -> Interpretation:
        if self.service is None:
            _logger.debug("Language service not configured, parsing locally")
            return self.fallback(text, UNCONFIGURED_CONFIDENCE)

        try:
            prompt = build_prompt(text, context)
        except Exception:
            _logger.warning("Prompt construction failed", exc_info=True)
            return self.fallback(text, UNEXPECTED_FAILURE_CONFIDENCE)

        try:
            raw = await self.service.generate(prompt)
        except Exception as e:
            _logger.warning("Language service call failed: %s", e)
            return self.fallback(text, SERVICE_FAILURE_CONFIDENCE)

        try:
            criteria = parse_criteria(raw)
            confidence = compute_confidence(criteria, text)
        except InterpretationError as e:
            _logger.warning("Could not parse interpreter reply: %s", e)
            return self.fallback(text, PARSE_FAILURE_CONFIDENCE)
        except Exception:
            _logger.exception("Unexpected error handling interpreter reply")
            return self.fallback(text, UNEXPECTED_FAILURE_CONFIDENCE)

        return Interpretation(criteria=criteria, confidence=max(0.0, min(1.0, confidence)))
