"""Per-session conversation memory: history, entities, deal and follow-up state."""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..nlp import ExtractedEntities, MessageAnalysis
from ..policies.rules import format_amount, format_number
from .cache import ExpiringCache

logger = logging.getLogger(__name__)

_REFERENCE_PATTERN = re.compile(
    r"\b(that|the|this)\s+(deal|customer|discount)\b", re.IGNORECASE
)
_FOLLOW_UP_WORDS = frozenset({"that", "this", "it", "also", "and", "but", "however"})
_FOLLOW_UP_WINDOW_SECONDS = 120
_ENTITY_HISTORY_LIMIT = 10
_MENTIONED_DEALS_LIMIT = 5
_PENDING_ACTIONS_LIMIT = 3
_RECENT_QUERIES_LIMIT = 5


class SessionNotFoundError(RuntimeError):
    """Raised when a session id has no live conversation context."""


@dataclass
class Message:
    role: str
    content: str
    timestamp: float
    analysis: MessageAnalysis | None = None
    message_id: str = field(default_factory=lambda: f"msg_{uuid.uuid4().hex[:12]}")


@dataclass(frozen=True)
class DealSnapshot:
    """The deal currently under discussion, as last described by the user."""

    segment: str | None = None
    deal_type: str | None = None
    region: str | None = None
    deal_value: float | None = None
    discount_percent: float | None = None
    timeframe: str | None = None
    urgency: str | None = None

    def describe(self) -> str:
        parts = [part for part in (self.segment, self.deal_type) if part]
        if self.deal_value:
            parts.append(f"${format_amount(self.deal_value)}")
        return " ".join(parts + ["deal"])

    def as_dict(self) -> dict[str, Any]:
        return {
            "segment": self.segment,
            "dealType": self.deal_type,
            "region": self.region,
            "dealValue": self.deal_value,
            "discountPercent": self.discount_percent,
            "timeframe": self.timeframe,
            "urgency": self.urgency,
        }


@dataclass
class PendingAction:
    id: str
    type: str
    description: str
    data: dict[str, Any] = field(default_factory=dict)
    status: str = "pending"
    created_at: float = 0.0
    completed_at: float | None = None
    result: Any = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "description": self.description,
            "data": self.data,
            "status": self.status,
            "result": self.result,
        }


@dataclass
class UserProfile:
    experience_level: str = "intermediate"
    recent_queries: list[str] = field(default_factory=list)
    common_segments: list[str] = field(default_factory=list)
    common_deal_types: list[str] = field(default_factory=list)


@dataclass
class ConversationContext:
    session_id: str
    created_at: float
    messages: list[Message] = field(default_factory=list)
    entity_history: dict[str, list[Any]] = field(default_factory=dict)
    contextual_entities: dict[str, Any] = field(default_factory=dict)
    current_deal: DealSnapshot | None = None
    mentioned_deals: list[DealSnapshot] = field(default_factory=list)
    pending_actions: list[PendingAction] = field(default_factory=list)
    follow_up_expected: bool = False
    current_intent: str | None = None
    profile: UserProfile = field(default_factory=UserProfile)

    def recent_messages(self, limit: int = 5, role: str | None = None) -> list[Message]:
        messages = [m for m in self.messages if role is None or m.role == role]
        return messages[-limit:] if limit else []

    def open_actions(self) -> list[PendingAction]:
        return [action for action in self.pending_actions if action.status == "pending"]


class ConversationContextStore:
    """Session id -> :class:`ConversationContext`, expiring idle sessions lazily."""

    def __init__(
        self,
        max_messages: int = 20,
        ttl_seconds: float = 30 * 60,
        sweep_interval_seconds: float = 5 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_messages = max_messages
        self._clock = clock
        self._sessions: ExpiringCache[str, ConversationContext] = ExpiringCache(
            ttl_seconds, sweep_interval_seconds, clock=clock
        )

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> ConversationContext | None:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> ConversationContext:
        context = self._sessions.get(session_id)
        if context is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return context

    def get_or_create(self, session_id: str) -> ConversationContext:
        return self._sessions.get_or_create(
            session_id,
            lambda: ConversationContext(session_id=session_id, created_at=self._clock()),
        )

    def clear(self, session_id: str) -> bool:
        return self._sessions.pop(session_id) is not None

    # ------------------------------------------------------------------
    # Messages and entities
    # ------------------------------------------------------------------
    def add_message(
        self,
        session_id: str,
        role: str,
        content: str,
        analysis: MessageAnalysis | None = None,
    ) -> Message:
        context = self.get_or_create(session_id)
        message = Message(role=role, content=content, timestamp=self._clock(), analysis=analysis)
        context.messages.append(message)
        if len(context.messages) > self.max_messages:
            del context.messages[: len(context.messages) - self.max_messages]
        if role == "user" and analysis is not None:
            self._update_state(context, analysis)
        return message

    def merge_entities(self, session_id: str, entities: ExtractedEntities) -> ConversationContext:
        """Fold one turn's entities into the session.

        ``contextual_entities`` keeps the latest value of each kind;
        ``entity_history`` keeps every value, most recent first.
        """

        context = self.get_or_create(session_id)
        for kind in entities.kinds():
            values = list(entities.get(kind))
            context.contextual_entities[kind] = values[-1]
            history = list(reversed(values)) + context.entity_history.get(kind, [])
            context.entity_history[kind] = history[:_ENTITY_HISTORY_LIMIT]
        return context

    def resolve_reference(self, session_id: str, text: str) -> str:
        """Replace "that deal", "the customer" and similar with what they refer to.

        Returns ``text`` unchanged when there is no session or nothing to resolve.
        """

        if not isinstance(text, str) or not text:
            return text
        try:
            context = self._sessions.get(session_id)
            if context is None or context.current_deal is None:
                return text
            deal = context.current_deal
            return _REFERENCE_PATTERN.sub(lambda match: _resolve(match, deal), text)
        except Exception as exc:  # reference resolution must not break a turn
            logger.warning("Reference resolution failed for %s: %s", session_id, exc)
            return text

    def is_follow_up(self, session_id: str, text: str) -> bool:
        context = self._sessions.get(session_id)
        if context is None or not isinstance(text, str):
            return False
        words = set(text.lower().split())
        if words & _FOLLOW_UP_WORDS:
            return True
        if not context.follow_up_expected or not context.messages:
            return False
        elapsed = self._clock() - context.messages[-1].timestamp
        return elapsed < _FOLLOW_UP_WINDOW_SECONDS

    # ------------------------------------------------------------------
    # Pending actions
    # ------------------------------------------------------------------
    def add_pending_action(
        self,
        session_id: str,
        action_type: str,
        description: str,
        data: dict[str, Any] | None = None,
    ) -> str:
        context = self.get_or_create(session_id)
        action = PendingAction(
            id=f"action_{uuid.uuid4().hex[:12]}",
            type=action_type,
            description=description,
            data=dict(data or {}),
            created_at=self._clock(),
        )
        context.pending_actions.append(action)
        if len(context.pending_actions) > _PENDING_ACTIONS_LIMIT:
            del context.pending_actions[: len(context.pending_actions) - _PENDING_ACTIONS_LIMIT]
        return action.id

    def update_pending_action(
        self, session_id: str, action_id: str, status: str, result: Any = None
    ) -> bool:
        context = self._sessions.get(session_id)
        if context is None:
            return False
        for action in context.pending_actions:
            if action.id == action_id:
                action.status = status
                action.completed_at = self._clock()
                if result is not None:
                    action.result = result
                return True
        return False

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------
    def summary(self, session_id: str) -> dict[str, Any]:
        context = self.require(session_id)
        recent = []
        for message in context.messages[-5:]:
            content = message.content
            if len(content) > 100:
                content = content[:100] + "..."
            recent.append({"role": message.role, "content": content})
        return {
            "sessionId": session_id,
            "durationSeconds": round(self._clock() - context.created_at, 3),
            "messageCount": len(context.messages),
            "currentIntent": context.current_intent,
            "dealContext": context.current_deal.as_dict() if context.current_deal else None,
            "keyEntities": _jsonable(context.contextual_entities),
            "pendingActions": [action.as_dict() for action in context.pending_actions],
            "followUpExpected": context.follow_up_expected,
            "recentMessages": recent,
            "userProfile": {
                "experienceLevel": context.profile.experience_level,
                "commonQueries": list(context.profile.recent_queries),
                "commonSegments": list(context.profile.common_segments),
                "commonDealTypes": list(context.profile.common_deal_types),
            },
        }

    def stats(self) -> dict[str, Any]:
        contexts = list(self._sessions.values())
        levels = Counter({"beginner": 0, "intermediate": 0, "expert": 0})
        intents: Counter[str] = Counter()
        for context in contexts:
            levels[context.profile.experience_level] += 1
            if context.current_intent:
                intents[context.current_intent] += 1
        total = len(contexts)
        now = self._clock()
        return {
            "totalContexts": total,
            "averageMessages": round(sum(len(c.messages) for c in contexts) / total) if total else 0,
            "averageAgeSeconds": round(sum(now - c.created_at for c in contexts) / total)
            if total
            else 0,
            "experienceLevels": dict(levels),
            "commonIntents": dict(intents),
        }

    def sweep(self) -> int:
        return self._sessions.sweep()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _update_state(self, context: ConversationContext, analysis: MessageAnalysis) -> None:
        intent = analysis.intent.value
        entities = analysis.entities
        context.current_intent = intent
        self.merge_entities(context.session_id, entities)
        if analysis.business_context.has_deal_details:
            self._update_deal(context, entities)

        profile = context.profile
        profile.recent_queries.append(intent)
        del profile.recent_queries[:-_RECENT_QUERIES_LIMIT]
        if analysis.complexity == "complex" and profile.experience_level == "beginner":
            profile.experience_level = "intermediate"
        for segment in entities.segment:
            if segment not in profile.common_segments:
                profile.common_segments.append(segment)
        for deal_type in entities.deal_type:
            if deal_type not in profile.common_deal_types:
                profile.common_deal_types.append(deal_type)

        context.follow_up_expected = (
            analysis.suggests_case_creation
            or analysis.complexity == "complex"
            or intent == "guidance_request"
        )

    def _update_deal(self, context: ConversationContext, entities: ExtractedEntities) -> None:
        timeframe = entities.latest("timeframe")
        snapshot = DealSnapshot(
            segment=entities.latest("segment"),
            deal_type=entities.latest("deal_type"),
            region=entities.latest("region"),
            deal_value=entities.latest("currency"),
            discount_percent=entities.latest("percentage"),
            timeframe=timeframe.describe() if timeframe is not None else None,
            urgency=entities.latest("urgency"),
        )
        if not (snapshot.segment or snapshot.deal_type or snapshot.deal_value):
            return
        context.current_deal = snapshot
        context.mentioned_deals.append(snapshot)
        del context.mentioned_deals[:-_MENTIONED_DEALS_LIMIT]


def _resolve(match: re.Match[str], deal: DealSnapshot) -> str:
    noun = match.group(2).lower()
    if noun == "customer":
        return f"{deal.segment} customer" if deal.segment else match.group(0)
    if noun == "discount":
        if deal.discount_percent:
            return f"{format_number(deal.discount_percent)}% discount"
        return match.group(0)
    return deal.describe()


def _jsonable(entities: dict[str, Any]) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for kind, value in entities.items():
        if hasattr(value, "describe"):
            value = value.describe()
        data[kind] = value
    return data
