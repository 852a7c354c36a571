"""Google Speech-to-Text recognition backend."""

import time
import logging
from typing import Optional

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


class GoogleSpeechBackend:
    """Google Speech-to-Text API backend for utterance recognition."""

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 enable_automatic_punctuation: bool = True,
                 request_timeout: float = 10.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the audio in Hz
            language: Language code (e.g., 'en-US', 'es-ES')
            enable_automatic_punctuation: Enable automatic punctuation
            request_timeout: Per-request deadline in seconds
        """
        if not credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.credentials_path = credentials_path
        self.sample_rate = sample_rate
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.request_timeout = request_timeout
        self.client = None
        self.project_id = None
        self.service_name = "Google Speech-to-Text"
        self.set_language(language)

    def set_language(self, language: str) -> None:
        """Switch the recognition language for subsequent requests."""
        self.language = language
        self.config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=self.language,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            model="latest_short",
        )
        logger.debug(f"Recognition language set to {language}")

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)

        self.client = speech.SpeechClient(credentials=credentials)

        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")
        logger.info("Google Speech-to-Text backend initialized successfully")
        return True

    def recognize(self, audio: bytes) -> str:
        """Recognize an utterance and return the best transcript ("" for no speech).

        Raises:
            RuntimeError: If the API call fails
        """
        if self.client is None:
            raise RuntimeError("Google Speech backend is not initialized")

        start_time = time.time()
        logger.debug(f"Recognizing {len(audio)} bytes; Language: {self.language}")

        try:
            response = self.client.recognize(
                config=self.config,
                audio=speech.RecognitionAudio(content=audio),
                timeout=self.request_timeout,
            )
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT recognize deadline exceeded")
            raise RuntimeError(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error("Google STT service unavailable")
            raise RuntimeError(f"Google Speech service unavailable: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            raise RuntimeError(f"Google Speech API error: {e}") from e

        processing_time = time.time() - start_time
        if not response.results:
            logger.debug("--- NO SPEECH DETECTED ---")
            return ""

        # Long utterances come back split into consecutive results
        transcript = " ".join(
            result.alternatives[0].transcript.strip()
            for result in response.results
            if result.alternatives
        ).strip()
        logger.debug(f"Transcript='{transcript}' (processing_time: {processing_time:.3f}s)")
        return transcript

    def cleanup(self) -> None:
        """Clean up Google Speech client resources."""
        self.client = None
