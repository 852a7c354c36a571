"""Pytest configuration and fixtures for chat2me tests."""

import asyncio
import os
import logging
import tempfile
from typing import Callable, List, Optional, Tuple

import pytest
import numpy as np
from pubsub import pub

from chat2me.speech.synthesis import AbstractSpeechOutput
from chat2me.speech.transcription import AbstractTranscriptionSource


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O")
    config.addinivalue_line("markers", "integration: tests wiring several components")
    config.addinivalue_line("markers", "hardware: tests needing a real microphone/speaker")


def pytest_collection_modifyitems(config, items):
    if os.environ.get("CHAT2ME_HARDWARE_TESTS") == "1":
        return
    skip_hardware = pytest.mark.skip(reason="set CHAT2ME_HARDWARE_TESTS=1 to run hardware tests")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


class FakeProvider:
    """Completion provider returning a canned reply or raising a canned error."""

    def __init__(self, reply: str = "Hello there!", error: Optional[BaseException] = None):
        self.reply = reply
        self.error = error
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.on_call: Optional[Callable[[], None]] = None
        self.gate: Optional[asyncio.Event] = None
        self.closed = False

    def block(self) -> None:
        """Hold replies until release(). Call from inside the event loop."""
        self.gate = asyncio.Event()

    def release(self) -> None:
        self.gate.set()

    async def complete(self, text: str, system_instruction: Optional[str] = None) -> str:
        self.calls.append((text, system_instruction))
        if self.on_call is not None:
            self.on_call()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply

    async def close(self) -> None:
        self.closed = True


class FakeSpeechOutput(AbstractSpeechOutput):
    """Speech sink recording what it was asked to do."""

    def __init__(self, error: Optional[Exception] = None):
        super().__init__()
        self.error = error
        self.spoken: List[str] = []
        self.events: List[str] = []
        self.closed = False

    async def stop(self) -> None:
        self.events.append("stop")

    async def speak(self, text: str) -> None:
        self.events.append(f"speak:{text}")
        if self.error is not None:
            raise self.error
        self.spoken.append(text)

    async def close(self) -> None:
        self.closed = True


class FakeTranscriptionSource(AbstractTranscriptionSource):
    """Transcription source driven by the test instead of a microphone."""

    def __init__(self, available: bool = True):
        super().__init__()
        self.available = available
        self.start_error: Optional[Exception] = None
        self.probe_count = 0
        self.start_count = 0
        self.stop_count = 0
        self.on_partial_result = None
        self.on_done = None

    def probe(self) -> bool:
        self.probe_count += 1
        return self.available

    def start(self, on_partial_result, on_done=None) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.start_count += 1
        self.on_partial_result = on_partial_result
        self.on_done = on_done

    def stop(self) -> None:
        self.stop_count += 1

    def emit(self, text: str) -> None:
        self.on_partial_result(text)

    def end_utterance(self) -> None:
        self.on_done()


async def settle(rounds: int = 5) -> None:
    """Let queued callbacks and tasks on the running loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def reset_pubsub():
    """Drop every pub/sub listener between tests."""
    yield
    pub.unsubAll()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def fake_speech_output():
    return FakeSpeechOutput()


@pytest.fixture
def fake_transcription_source():
    return FakeTranscriptionSource()


@pytest.fixture
def audio_test_data():
    """Generate 16-bit PCM test audio."""
    def generate_audio(pattern="sine", duration_seconds=0.064, sample_rate=16000):
        samples = int(duration_seconds * sample_rate)

        if pattern == "sine":
            t = np.linspace(0, duration_seconds, samples, False)
            wave_data = 0.5 * np.sin(2 * np.pi * 440 * t)
        elif pattern == "silence":
            wave_data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        audio_data = (wave_data * 32767).astype(np.int16)
        return audio_data.tobytes()

    return generate_audio
