"""Chat-turn pipeline tying analysis, scenarios, policies and cases together."""

from .errors import ErrorHandler, ErrorInfo, ErrorType, Severity
from .schemas import Action, AssistantResponse
from .service import AssistantService, build_assistant

__all__ = [
    "Action",
    "AssistantResponse",
    "AssistantService",
    "ErrorHandler",
    "ErrorInfo",
    "ErrorType",
    "Severity",
    "build_assistant",
]
