"""Ordered pattern tables mapping utterances to a closed set of intents."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_PATTERNS_PATH = Path(__file__).resolve().parents[1] / "data" / "intent_patterns.json"


class Intent(str, Enum):
    SELF_SERVICE = "self_service"
    POLICY_LOOKUP = "policy_lookup"
    CASE_CREATION = "case_creation"
    GUIDANCE_REQUEST = "guidance_request"
    PRECEDENT_SEARCH = "precedent_search"
    ESCALATION_NEEDED = "escalation_needed"


@dataclass(frozen=True)
class IntentBucket:
    intent: Intent
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.patterns)


@dataclass(frozen=True)
class KeywordFallback:
    keywords: tuple[str, ...]
    intent: Intent


@dataclass(frozen=True)
class IntentTable:
    """Buckets are tried in order; the first bucket with any match wins."""

    buckets: tuple[IntentBucket, ...]
    fallback: tuple[KeywordFallback, ...] = ()
    default: Intent = Intent.POLICY_LOOKUP

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "IntentTable":
        try:
            buckets = tuple(
                IntentBucket(
                    intent=Intent(entry["intent"]),
                    patterns=tuple(
                        re.compile(pattern, re.IGNORECASE)
                        for pattern in entry.get("patterns", ())
                    ),
                )
                for entry in data.get("buckets", ())
            )
            fallback = tuple(
                KeywordFallback(
                    keywords=tuple(str(word).lower() for word in entry["keywords"]),
                    intent=Intent(entry["intent"]),
                )
                for entry in data.get("fallback", ())
            )
            default = Intent(data.get("default", Intent.POLICY_LOOKUP.value))
        except (KeyError, re.error) as exc:
            raise ValueError(f"Invalid intent table: {exc}") from exc
        return cls(buckets=buckets, fallback=fallback, default=default)


def load_intent_table(path: str | Path | None = None) -> IntentTable:
    """Load the table from ``path`` or from the bundled pattern file."""

    source = Path(path) if path is not None else DEFAULT_PATTERNS_PATH
    raw = source.read_text(encoding="utf-8")
    return IntentTable.from_mapping(json.loads(raw))


class IntentClassifier:
    """Pure function of the utterance text; no conversation state is consulted."""

    def __init__(self, table: IntentTable | None = None):
        self._table = table or load_intent_table()

    @property
    def table(self) -> IntentTable:
        return self._table

    def classify(self, text: str | None) -> Intent:
        if not isinstance(text, str) or not text.strip():
            return self._table.default
        for bucket in self._table.buckets:
            if bucket.matches(text):
                return bucket.intent
        lowered = text.lower()
        for rule in self._table.fallback:
            if any(keyword in lowered for keyword in rule.keywords):
                return rule.intent
        return self._table.default

    def classify_many(self, texts: Sequence[str]) -> list[Intent]:
        return [self.classify(text) for text in texts]
