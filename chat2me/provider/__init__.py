"""Completion providers for chat2me."""

from .base import CompletionProvider
from .openai_provider import OpenAIChatProvider

__all__ = [
    "CompletionProvider",
    "OpenAIChatProvider",
]
