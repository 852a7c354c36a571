"""Speech recognition and synthesis adapters."""

from .stream import PartialResultStream
from .transcription import (
    AbstractTranscriptionSource,
    GoogleSpeechTranscriptionSource,
    NullTranscriptionSource,
)
from .synthesis import (
    AbstractSpeechOutput,
    NullSpeechOutput,
    Pyttsx3SpeechOutput,
    create_speech_output,
)

__all__ = [
    "PartialResultStream",
    "AbstractTranscriptionSource",
    "GoogleSpeechTranscriptionSource",
    "NullTranscriptionSource",
    "AbstractSpeechOutput",
    "NullSpeechOutput",
    "Pyttsx3SpeechOutput",
    "create_speech_output",
]
