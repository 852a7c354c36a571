"""Chat message data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Author(Enum):
    """Who wrote a message."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single transcript entry. Never mutated after it is appended."""
    text: str
    author: Author
    timestamp: datetime = field(default_factory=datetime.now)
    is_error: bool = False  # Assistant entry produced from a provider failure

    @property
    def is_user(self) -> bool:
        return self.author is Author.USER
