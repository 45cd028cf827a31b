"""Per-turn message analysis combining entities, intent and coarse signals."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .entities import EntityExtractor, ExtractedEntities
from .intents import Intent, IntentClassifier

_INTENT_WEIGHTS = {
    Intent.SELF_SERVICE: 1,
    Intent.POLICY_LOOKUP: 2,
    Intent.GUIDANCE_REQUEST: 3,
    Intent.PRECEDENT_SEARCH: 3,
    Intent.CASE_CREATION: 4,
    Intent.ESCALATION_NEEDED: 5,
}

_COMPETITIVE_PATTERN = re.compile(r"competitor|competitive|threat", re.IGNORECASE)
_CUSTOMER_PATTERN = re.compile(r"customer|client|account", re.IGNORECASE)

_FRUSTRATION_WORDS = ("frustrated", "angry", "broken", "terrible", "awful", "hate")
_POSITIVE_WORDS = ("thank", "great", "perfect", "awesome", "helpful")
_HIGH_URGENCY_WORDS = ("urgent", "asap", "immediately", "emergency", "critical", "deadline")
_MEDIUM_URGENCY_WORDS = ("soon", "quickly")


@dataclass(frozen=True)
class BusinessContext:
    has_deal_details: bool = False
    has_financial_info: bool = False
    has_time_constraints: bool = False
    has_competitive_element: bool = False
    has_customer_info: bool = False

    def flag_count(self) -> int:
        return sum(
            (
                self.has_deal_details,
                self.has_financial_info,
                self.has_time_constraints,
                self.has_competitive_element,
                self.has_customer_info,
            )
        )


@dataclass(frozen=True)
class MessageAnalysis:
    text: str
    intent: Intent
    entities: ExtractedEntities
    complexity: str
    business_context: BusinessContext
    confidence: float
    suggests_case_creation: bool
    sentiment: str = "neutral"
    urgency: str = "normal"
    word_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.value,
            "entities": self.entities.as_dict(),
            "complexity": self.complexity,
            "businessContext": {
                "hasDealDetails": self.business_context.has_deal_details,
                "hasFinancialInfo": self.business_context.has_financial_info,
                "hasTimeConstraints": self.business_context.has_time_constraints,
                "hasCompetitiveElement": self.business_context.has_competitive_element,
                "hasCustomerInfo": self.business_context.has_customer_info,
            },
            "confidence": self.confidence,
            "suggestsCaseCreation": self.suggests_case_creation,
            "sentiment": self.sentiment,
            "urgency": self.urgency,
        }


@dataclass
class MessageAnalyser:
    """Deterministic analysis pipeline used by the assistant service."""

    extractor: EntityExtractor = field(default_factory=EntityExtractor)
    classifier: IntentClassifier = field(default_factory=IntentClassifier)

    def analyse(self, text: str | None) -> MessageAnalysis:
        text = text if isinstance(text, str) else ""
        entities = self.extractor.extract(text)
        intent = self.classifier.classify(text)
        word_count = len(text.split())
        context = self._business_context(text, entities)
        return MessageAnalysis(
            text=text,
            intent=intent,
            entities=entities,
            complexity=self._complexity(word_count, entities, intent),
            business_context=context,
            confidence=self._confidence(intent, entities, context),
            suggests_case_creation=self._suggests_case(intent, entities, context),
            sentiment=self._sentiment(text.lower()),
            urgency=self._urgency(text.lower()),
            word_count=word_count,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _complexity(
        self, word_count: int, entities: ExtractedEntities, intent: Intent
    ) -> str:
        score = 0
        if word_count > 20:
            score += 2
        elif word_count > 10:
            score += 1
        score += len(entities)
        score += _INTENT_WEIGHTS.get(intent, 1)
        if score <= 3:
            return "simple"
        if score <= 6:
            return "moderate"
        return "complex"

    def _business_context(self, text: str, entities: ExtractedEntities) -> BusinessContext:
        return BusinessContext(
            has_deal_details=bool(
                entities.segment or entities.deal_type or entities.region
            ),
            has_financial_info=bool(entities.percentage or entities.currency),
            has_time_constraints=bool(entities.timeframe or entities.urgency),
            has_competitive_element=bool(_COMPETITIVE_PATTERN.search(text)),
            has_customer_info=bool(_CUSTOMER_PATTERN.search(text)),
        )

    def _confidence(
        self, intent: Intent, entities: ExtractedEntities, context: BusinessContext
    ) -> float:
        confidence = 0.5
        if intent is not Intent.POLICY_LOOKUP:
            confidence += 0.2
        confidence += min(0.1 * len(entities), 0.3)
        confidence += min(0.05 * context.flag_count(), 0.2)
        return round(min(confidence, 1.0), 2)

    def _suggests_case(
        self, intent: Intent, entities: ExtractedEntities, context: BusinessContext
    ) -> bool:
        if intent in (Intent.CASE_CREATION, Intent.ESCALATION_NEEDED):
            return True
        if any(value > 25 for value in entities.percentage):
            return True
        if context.has_competitive_element and context.has_financial_info:
            return True
        return "critical" in entities.urgency and context.has_deal_details

    def _sentiment(self, lowered: str) -> str:
        if any(word in lowered for word in _FRUSTRATION_WORDS):
            return "frustrated"
        if any(word in lowered for word in _POSITIVE_WORDS):
            return "positive"
        return "neutral"

    def _urgency(self, lowered: str) -> str:
        if any(word in lowered for word in _HIGH_URGENCY_WORDS):
            return "high"
        if any(word in lowered for word in _MEDIUM_URGENCY_WORDS):
            return "medium"
        return "normal"
