"""Conversation session state models."""

from dataclasses import dataclass, field, replace
from typing import List

from .chat import Message
from .languages import DEFAULT_LANGUAGE


@dataclass
class SessionState:
    """Mutable state owned by a conversation session."""
    transcript: List[Message] = field(default_factory=list)
    draft: str = ""
    pending: bool = False           # Completion request outstanding
    listening: bool = False         # Transcription source capturing
    speech_available: bool = False  # Set once from the transcription probe
    tts_enabled: bool = True
    language: str = DEFAULT_LANGUAGE

    def snapshot(self) -> "SessionState":
        """Copy safe to hand to observers."""
        return replace(self, transcript=list(self.transcript))
