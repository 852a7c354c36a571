"""Audio capture module."""

from .capture import AudioCapture, rms_level, has_input_device

__all__ = [
    'AudioCapture',
    'rms_level',
    'has_input_device',
]
