"""Transcription sources: speech-to-text producing incremental draft text."""

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..audio.capture import AudioCapture, has_input_device
from ..models.audio import AudioEvent
from .google_backend import GoogleSpeechBackend

logger = logging.getLogger(__name__)

PartialResultCallback = Callable[[str], None]
DoneCallback = Callable[[], None]

# Longer than the backend request timeout
STOP_TIMEOUT_SECONDS = 15.0


class AbstractTranscriptionSource(ABC):
    """Abstract base class for transcription sources."""

    def __init__(self, language: str = "en-US"):
        """Initialize source with language preference."""
        self.language = language

    @abstractmethod
    def probe(self) -> bool:
        """Check whether speech recognition is available. Never raises."""
        pass

    @abstractmethod
    def start(self, on_partial_result: PartialResultCallback,
              on_done: Optional[DoneCallback] = None) -> None:
        """Start capturing the current utterance.

        Args:
            on_partial_result: Called with the full text recognized so far,
                               each call replacing the previous one
            on_done: Called once when recognition ends on its own (end of
                     utterance or engine error), not after ``stop``

        Raises:
            RuntimeError: If capture cannot start, including while a previous
                          run is still winding down
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop capturing and wait for recognition to wind down. No callbacks fire afterwards."""
        pass

    def set_language(self, language: str) -> None:
        """Recognition language for the next capture."""
        self.language = language


class NullTranscriptionSource(AbstractTranscriptionSource):
    """Source used when no microphone should be touched."""

    def probe(self) -> bool:
        return False

    def start(self, on_partial_result: PartialResultCallback,
              on_done: Optional[DoneCallback] = None) -> None:
        logger.warning("Speech recognition is disabled")

    def stop(self) -> None:
        pass


class GoogleSpeechTranscriptionSource(AbstractTranscriptionSource):
    """Microphone capture recognized by Google Cloud Speech.

    The utterance so far is re-recognized every ``partial_interval_seconds`` and
    delivered as a partial result. Silence after speech, the maximum utterance
    length, or a recognition error ends the utterance.
    """

    def __init__(self,
                 credentials_path: Optional[str],
                 language: str = "en-US",
                 sample_rate: int = 16000,
                 chunk_size: int = 1024,
                 partial_interval_seconds: float = 1.0,
                 silence_timeout_seconds: float = 1.5,
                 max_utterance_seconds: float = 30.0,
                 silence_threshold: float = 0.01,
                 backend: Optional[GoogleSpeechBackend] = None,
                 capture_factory: Callable[..., AudioCapture] = AudioCapture):
        super().__init__(language)
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.partial_interval_seconds = partial_interval_seconds
        self.silence_timeout_seconds = silence_timeout_seconds
        self.max_utterance_seconds = max_utterance_seconds
        self.silence_threshold = silence_threshold
        self.backend = backend
        self.capture_factory = capture_factory

        self.capture: Optional[AudioCapture] = None
        self.worker: Optional[threading.Thread] = None
        self.lock = threading.Lock()
        self.utterance_done = threading.Event()
        self.cancelled = threading.Event()

        self._audio = bytearray()
        self._recognized_size = 0
        self._heard_speech = False
        self._last_voice_time = 0.0
        self._start_time = 0.0
        self._last_text = ""

    def probe(self) -> bool:
        try:
            if self.backend is None:
                if not self.credentials_path:
                    logger.info("Speech recognition unavailable: no Google credentials configured")
                    return False
                self.backend = GoogleSpeechBackend(
                    credentials_path=self.credentials_path,
                    sample_rate=self.sample_rate,
                    language=self.language,
                )
                self.backend.initialize()
            if not has_input_device():
                logger.info("Speech recognition unavailable: no audio input device")
                return False
        except Exception as e:
            logger.warning(f"Speech recognition unavailable: {e}")
            return False
        return True

    def set_language(self, language: str) -> None:
        super().set_language(language)
        if self.backend is not None:
            self.backend.set_language(language)

    def start(self, on_partial_result: PartialResultCallback,
              on_done: Optional[DoneCallback] = None) -> None:
        if self.worker is not None and self.worker.is_alive():
            raise RuntimeError("Transcription already in progress")
        if self.backend is None:
            raise RuntimeError("Transcription source was not probed successfully")

        with self.lock:
            self._audio = bytearray()
            self._recognized_size = 0
            self._heard_speech = False
            self._start_time = time.time()
            self._last_voice_time = self._start_time
            self._last_text = ""
        self.utterance_done.clear()
        self.cancelled.clear()

        self.capture = self.capture_factory(
            callback=self._on_audio_event,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
        )
        self.worker = threading.Thread(
            target=self._recognition_loop,
            args=(on_partial_result, on_done),
            name="TranscriptionWorker",
            daemon=True,
        )
        self.worker.start()
        self.capture.start_recording()
        logger.info(f"Transcription started ({self.language})")

    def stop(self) -> None:
        self.cancelled.set()
        self.utterance_done.set()
        if self.capture is not None:
            self.capture.stop_recording()
        # The worker may still be inside a recognize call
        worker = self.worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout=STOP_TIMEOUT_SECONDS)
            if worker.is_alive():
                logger.warning("Recognition worker did not stop in time")
        logger.info("Transcription stopped")

    def _on_audio_event(self, event: AudioEvent) -> None:
        """Runs on the capture thread."""
        if event.final:
            self.utterance_done.set()
            return

        with self.lock:
            self._audio.extend(event.audio_data)
            now = event.timestamp
            if event.level >= self.silence_threshold:
                self._heard_speech = True
                self._last_voice_time = now
            silent_for = now - self._last_voice_time
            elapsed = now - self._start_time

        if self._heard_speech and silent_for >= self.silence_timeout_seconds:
            logger.debug(f"End of utterance after {silent_for:.1f}s of silence")
            self._end_utterance()
        elif elapsed >= self.max_utterance_seconds:
            logger.debug("Maximum utterance length reached")
            self._end_utterance()

    def _end_utterance(self) -> None:
        self.utterance_done.set()
        if self.capture is not None:
            self.capture.stop_recording(wait=False)

    def _recognize_pending(self, on_partial_result: PartialResultCallback) -> None:
        with self.lock:
            if not self._heard_speech or len(self._audio) == self._recognized_size:
                return
            audio = bytes(self._audio)
            self._recognized_size = len(audio)

        text = self.backend.recognize(audio)
        if text and text != self._last_text and not self.cancelled.is_set():
            self._last_text = text
            logger.debug(f"Partial result: '{text}'")
            on_partial_result(text)

    def _recognition_loop(self, on_partial_result: PartialResultCallback,
                          on_done: Optional[DoneCallback]) -> None:
        """Runs on the worker thread until the utterance ends or is cancelled."""
        try:
            while not self.cancelled.is_set():
                finished = self.utterance_done.wait(timeout=self.partial_interval_seconds)
                if self.cancelled.is_set():
                    break
                self._recognize_pending(on_partial_result)
                if finished:
                    break
        except Exception as e:
            logger.error(f"Recognition failed: {e}")
            if self.capture is not None:
                self.capture.stop_recording(wait=False)
        finally:
            if not self.cancelled.is_set() and on_done is not None:
                on_done()
            logger.debug("Recognition loop ended")
