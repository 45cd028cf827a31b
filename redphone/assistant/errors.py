"""Error taxonomy and degraded-response fallbacks for the assistant pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ErrorType(str, Enum):
    API = "api_error"
    NETWORK = "network_error"
    VALIDATION = "validation_error"
    AUTH = "auth_error"
    RATE_LIMIT = "rate_limit_error"
    PARSING = "parsing_error"
    KNOWLEDGE_BASE = "knowledge_base_error"
    CONTEXT = "context_error"
    FORMATTING = "formatting_error"
    UNKNOWN = "unknown_error"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Fallback:
    kind: str
    message: str
    suggestions: tuple[str, ...]


_SEVERITIES = {
    ErrorType.AUTH: Severity.CRITICAL,
    ErrorType.API: Severity.HIGH,
    ErrorType.KNOWLEDGE_BASE: Severity.HIGH,
    ErrorType.NETWORK: Severity.MEDIUM,
    ErrorType.RATE_LIMIT: Severity.MEDIUM,
    ErrorType.CONTEXT: Severity.MEDIUM,
}

_USER_MESSAGES = {
    ErrorType.API: "I'm experiencing technical difficulties. Let me try to help with my knowledge base instead.",
    ErrorType.NETWORK: "I'm having connectivity issues. Please check your connection and try again.",
    ErrorType.AUTH: "Authentication failed. Please check your configuration or contact support.",
    ErrorType.RATE_LIMIT: "I'm receiving too many requests. Please wait a moment before trying again.",
    ErrorType.VALIDATION: "I couldn't understand your request. Could you please rephrase or provide more details?",
    ErrorType.PARSING: "I had trouble processing your request. Please try rephrasing your question.",
    ErrorType.KNOWLEDGE_BASE: "I'm having trouble accessing policy information. Please contact your sales manager for immediate assistance.",
    ErrorType.CONTEXT: "I lost track of our conversation. Could you please repeat your question?",
    ErrorType.FORMATTING: "I had trouble formatting my response, but I can still help you.",
    ErrorType.UNKNOWN: "Something unexpected happened. Let me try a different approach to help you.",
}

_RETRYABLE = frozenset(
    {ErrorType.NETWORK, ErrorType.API, ErrorType.RATE_LIMIT, ErrorType.PARSING}
)

DEFAULT_FALLBACK = Fallback(
    kind="general_assistance",
    message="I'm experiencing some technical difficulties, but I'm still here to help. You can:",
    suggestions=(
        "Try rephrasing your question",
        "Ask about specific policies",
        "Contact your sales manager",
        "Try again in a few moments",
    ),
)

KNOWLEDGE_BASE_FALLBACK = Fallback(
    kind="knowledge_base_search",
    message=(
        "While my assistant service is unavailable, I can still help you with policy "
        "questions using my knowledge base. What would you like to know?"
    ),
    suggestions=(
        "Ask about discount policies",
        "Check approval requirements",
        "Find minimum seat requirements",
        "Get pilot program information",
    ),
)

_FALLBACKS = {
    ErrorType.API: KNOWLEDGE_BASE_FALLBACK,
    ErrorType.NETWORK: Fallback(
        kind="offline_guidance",
        message="I'm having connectivity issues, but here are some quick guidelines while we reconnect:",
        suggestions=(
            "Enterprise discounts: up to 20%",
            "SMB discounts: up to 10%",
            "Discounts over 20% need director approval",
            "Add-on deals have no minimum requirements",
        ),
    ),
    ErrorType.KNOWLEDGE_BASE: Fallback(
        kind="manual_assistance",
        message="I can't access my knowledge base right now. For immediate help, please:",
        suggestions=(
            "Contact your sales manager",
            "Check the ROE document directly",
            "Submit a case in the CRM",
            "Ask a colleague for guidance",
        ),
    ),
    ErrorType.VALIDATION: Fallback(
        kind="clarification_request",
        message="I need more information to help you effectively. Could you provide:",
        suggestions=(
            "Customer segment (SMB, Enterprise, etc.)",
            "Deal type (New Business, Renewal, etc.)",
            "Specific discount percentage or deal value",
            "Any competitive or urgency factors",
        ),
    ),
    ErrorType.RATE_LIMIT: Fallback(
        kind="patience_request",
        message="I'm processing a lot of requests right now. While you wait, you can:",
        suggestions=(
            "Review your question for clarity",
            "Check if it's a simple policy lookup",
            "Prepare any additional context",
            "Try again in 30 seconds",
        ),
    ),
}

# Message keywords consulted when the exception class is not conclusive.
_KEYWORDS: tuple[tuple[ErrorType, tuple[str, ...]], ...] = (
    (ErrorType.NETWORK, ("network", "fetch", "connection")),
    (ErrorType.AUTH, ("unauthorized", "authentication")),
    (ErrorType.RATE_LIMIT, ("rate limit", "too many requests")),
    (ErrorType.API, ("server error", "internal error")),
    (ErrorType.VALIDATION, ("validation", "invalid")),
    (ErrorType.PARSING, ("parse", "json")),
    (ErrorType.KNOWLEDGE_BASE, ("knowledge", "search", "database")),
    (ErrorType.CONTEXT, ("context", "session", "conversation")),
    (ErrorType.FORMATTING, ("format", "render", "display")),
)


@dataclass(frozen=True)
class ErrorInfo:
    id: str
    type: ErrorType
    severity: Severity
    user_message: str
    can_retry: bool
    original_message: str
    timestamp: float
    context: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.user_message,
            "canRetry": self.can_retry,
        }


class ErrorHandler:
    """Classify failures, keep a bounded log and pick the fallback to show."""

    def __init__(self, max_log_size: int = 100):
        self._log: deque[ErrorInfo] = deque(maxlen=max_log_size)

    def classify(self, exc: BaseException | None) -> ErrorType:
        if exc is None:
            return ErrorType.UNKNOWN
        if isinstance(exc, json.JSONDecodeError):
            return ErrorType.PARSING
        if isinstance(exc, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
            return ErrorType.NETWORK
        if isinstance(exc, PermissionError):
            return ErrorType.AUTH
        if isinstance(exc, LookupError):
            return ErrorType.KNOWLEDGE_BASE
        if isinstance(exc, ValueError):
            return ErrorType.VALIDATION
        message = str(exc).lower()
        for error_type, keywords in _KEYWORDS:
            if any(keyword in message for keyword in keywords):
                return error_type
        return ErrorType.UNKNOWN

    def severity(self, error_type: ErrorType) -> Severity:
        return _SEVERITIES.get(error_type, Severity.LOW)

    def can_retry(self, error_type: ErrorType, exc: BaseException | None = None) -> bool:
        return error_type in _RETRYABLE and "permanent" not in str(exc or "")

    def fallback(self, error_type: ErrorType) -> Fallback:
        return _FALLBACKS.get(error_type, DEFAULT_FALLBACK)

    def handle(self, exc: BaseException | None, context: dict[str, Any] | None = None) -> ErrorInfo:
        """Record ``exc`` and describe how the caller should degrade."""

        error_type = self.classify(exc)
        info = ErrorInfo(
            id=f"err_{uuid.uuid4().hex[:12]}",
            type=error_type,
            severity=self.severity(error_type),
            user_message=_USER_MESSAGES[error_type],
            can_retry=self.can_retry(error_type, exc),
            original_message=str(exc) if exc is not None else "Unknown error",
            timestamp=time.time(),
            context=dict(context or {}),
        )
        self._log.append(info)
        logger.warning(
            "Assistant error %s (%s/%s): %s",
            info.id,
            info.type.value,
            info.severity.value,
            info.original_message,
        )
        return info

    def stats(self) -> dict[str, Any]:
        by_type = Counter(info.type.value for info in self._log)
        by_severity = Counter(info.severity.value for info in self._log)
        hour_ago = time.time() - 3600
        return {
            "totalErrors": len(self._log),
            "errorsByType": dict(by_type),
            "errorsBySeverity": dict(by_severity),
            "errorRate": sum(1 for info in self._log if info.timestamp > hour_ago),
            "recentErrors": [info.as_dict() for info in list(self._log)[-10:]],
        }

    def is_healthy(self) -> bool:
        return self.stats()["errorRate"] < 10

    def clear(self) -> None:
        self._log.clear()
