"""Unit tests for AudioCapture class."""

import threading
from unittest.mock import MagicMock, patch

import pytest

from chat2me.audio.capture import AudioCapture, has_input_device


@pytest.fixture
def mock_pyaudio():
    """Patch PyAudio so no real device is opened."""
    with patch("chat2me.audio.capture.pyaudio.PyAudio") as mock_class:
        instance = MagicMock()
        stream = MagicMock()
        stream.read.return_value = b"\x00\x10" * 1024
        instance.open.return_value = stream
        mock_class.return_value = instance
        yield mock_class, instance, stream


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self):
        capture = AudioCapture(callback=lambda event: None)

        assert capture.sample_rate == 16000
        assert capture.chunk_size == 1024
        assert capture.channels == 1
        assert capture.is_recording is False
        assert capture.total_chunks == 0

    def test_chunks_reach_callback_then_final_event(self, mock_pyaudio):
        """Chunks are delivered in order and stopping sends one final empty event."""
        _, instance, stream = mock_pyaudio
        events = []
        three_chunks = threading.Event()

        def on_event(event):
            events.append(event)
            if len(events) == 3:
                three_chunks.set()

        capture = AudioCapture(callback=on_event)
        capture.start_recording()
        assert three_chunks.wait(timeout=2.0)
        capture.stop_recording()

        assert capture.is_recording is False
        assert not capture.recording_thread.is_alive()
        assert events[0].sequence_number == 1
        assert events[0].level > 0.0
        assert events[-1].final is True
        assert events[-1].audio_data == b""
        assert all(not e.final for e in events[:-1])
        stream.close.assert_called_once()
        instance.terminate.assert_called_once()

    def test_start_recording_already_recording(self, mock_pyaudio):
        capture = AudioCapture(callback=lambda event: None)
        capture.is_recording = True

        with patch.object(capture, '_record_continuously') as mock_record:
            capture.start_recording()

            mock_record.assert_not_called()
        capture.is_recording = False

    def test_stop_recording_not_recording(self):
        capture = AudioCapture(callback=lambda event: None)

        capture.stop_recording()
        assert capture.is_recording is False

    def test_open_failure_still_sends_final_event(self, mock_pyaudio):
        _, instance, _ = mock_pyaudio
        instance.open.side_effect = OSError("Invalid input device")
        events = []

        capture = AudioCapture(callback=events.append)
        capture.start_recording()
        capture.recording_thread.join(timeout=2.0)

        assert capture.is_recording is False
        assert len(events) == 1
        assert events[0].final is True


@pytest.mark.unit
class TestInputDevice:

    def test_input_device_found(self, mock_pyaudio):
        _, instance, _ = mock_pyaudio
        instance.get_device_count.return_value = 2
        instance.get_device_info_by_index.side_effect = [
            {"name": "HDMI", "maxInputChannels": 0},
            {"name": "USB Mic", "maxInputChannels": 1},
        ]

        assert has_input_device() is True
        instance.terminate.assert_called_once()

    def test_no_input_device(self, mock_pyaudio):
        _, instance, _ = mock_pyaudio
        instance.get_device_count.return_value = 1
        instance.get_device_info_by_index.return_value = {"name": "HDMI", "maxInputChannels": 0}

        assert has_input_device() is False
