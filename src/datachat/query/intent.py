"""Rule-based intent classification. No model calls, no I/O."""

from __future__ import annotations

import re

from datachat.config.constants import (
    DATA_KEYWORDS,
    GREETING_PATTERNS,
    IMAGE_WORDS,
    QUESTION_WORDS,
    SQL_PATTERNS,
)
from datachat.models.domain import Intent, IntentResult
from datachat.observability.logger import get_logger

logger = get_logger("intent")

_GREETING_MAX_LEN = 50
_SHORT_MESSAGE_LEN = 20
_DIGIT = re.compile(r"\d")


class IntentClassifier:
    """Deterministic greeting/question/keyword rules.

    Rules are evaluated in order and the first match wins. Confidence is a
    fixed value per rule and is only reported, never used for branching.
    """

    def __init__(self, extra_keywords: list[str] | None = None) -> None:
        self._keywords = tuple(DATA_KEYWORDS) + tuple(extra_keywords or ())
        self._greetings = [re.compile(p) for p in GREETING_PATTERNS]
        self._question = re.compile(
            r"^(" + "|".join(re.escape(w) for w in QUESTION_WORDS) + r")\s"
        )
        self._sql_patterns = [re.compile(p) for p in SQL_PATTERNS]

    def classify(self, message: str) -> IntentResult:
        text = (message or "").strip().lower()
        result = self._classify(text)
        logger.debug(
            "intent_classified",
            intent=result.intent.value,
            rule=result.rule,
            confidence=result.confidence,
        )
        return result

    def _classify(self, text: str) -> IntentResult:
        if not text:
            return IntentResult(Intent.GENERAL_CONVERSATION, 0.95, "empty")

        if len(text) < _GREETING_MAX_LEN:
            for pattern in self._greetings:
                match = pattern.search(text)
                if match and not self._has_keyword(text[match.end():]):
                    return IntentResult(Intent.GENERAL_CONVERSATION, 0.95, "greeting")

        if self._question.search(text):
            return IntentResult(Intent.DATA_QUERY, 0.98, "question_word")

        if self._has_keyword(text):
            return IntentResult(Intent.DATA_QUERY, 0.90, "domain_keyword")

        if any(p.search(text) for p in self._sql_patterns):
            return IntentResult(Intent.DATA_QUERY, 0.85, "sql_pattern")

        if any(w in text for w in IMAGE_WORDS):
            return IntentResult(Intent.DATA_QUERY, 0.80, "image_reference")

        if len(text) < _SHORT_MESSAGE_LEN and not _DIGIT.search(text):
            return IntentResult(Intent.GENERAL_CONVERSATION, 0.95, "short_message")

        return IntentResult(Intent.DATA_QUERY, 0.75, "default")

    def _has_keyword(self, text: str) -> bool:
        return any(k in text for k in self._keywords)
