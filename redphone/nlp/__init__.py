"""Rule-based message understanding: entities, intents and turn analysis."""

from .analysis import BusinessContext, MessageAnalyser, MessageAnalysis
from .entities import EntityExtractor, ExtractedEntities, Timeframe
from .intents import Intent, IntentClassifier, IntentTable, load_intent_table

__all__ = [
    "BusinessContext",
    "EntityExtractor",
    "ExtractedEntities",
    "Intent",
    "IntentClassifier",
    "IntentTable",
    "MessageAnalyser",
    "MessageAnalysis",
    "Timeframe",
    "load_intent_table",
]
