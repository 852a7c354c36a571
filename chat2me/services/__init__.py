"""Services layer for chat2me application logic."""

from .conversation_session import ConversationSession
from .session_publisher import SessionPublisher

__all__ = [
    "ConversationSession",
    "SessionPublisher",
]
