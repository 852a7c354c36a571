"""Audio-related data models."""

from dataclasses import dataclass, field


@dataclass
class AudioEvent:
    """Audio chunk captured from the microphone."""
    chunk_id: str
    audio_data: bytes
    timestamp: float  # Unix timestamp when chunk was captured
    sequence_number: int
    sample_rate: int = 16000
    channels: int = 1
    level: float = 0.0  # Normalised RMS level, 0.0 to 1.0
    final: bool = False  # True if this is the last chunk of the capture
    chunk_duration_ms: int = field(init=False, default=0)

    def __post_init__(self):
        if self.audio_data:
            # 16-bit audio (2 bytes per sample)
            bytes_per_second = self.sample_rate * self.channels * 2
            self.chunk_duration_ms = int(len(self.audio_data) / bytes_per_second * 1000)
