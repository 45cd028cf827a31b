"""Session-scoped conversation state."""

from .cache import ExpiringCache
from .context import (
    ConversationContext,
    ConversationContextStore,
    DealSnapshot,
    Message,
    PendingAction,
    SessionNotFoundError,
    UserProfile,
)

__all__ = [
    "ConversationContext",
    "ConversationContextStore",
    "DealSnapshot",
    "ExpiringCache",
    "Message",
    "PendingAction",
    "SessionNotFoundError",
    "UserProfile",
]
