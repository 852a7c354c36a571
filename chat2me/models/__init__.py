"""Data models for the chat2me application."""

from .chat import Author, Message
from .session import SessionState
from .languages import (
    DEFAULT_LANGUAGE,
    SUPPORTED_LANGUAGES,
    is_supported_language,
    get_language_name,
    get_system_instruction,
    list_languages,
)

__all__ = [
    "Author",
    "Message",
    "SessionState",
    "DEFAULT_LANGUAGE",
    "SUPPORTED_LANGUAGES",
    "is_supported_language",
    "get_language_name",
    "get_system_instruction",
    "list_languages",
]
