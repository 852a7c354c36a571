"""Conversation session: transcript, request/response orchestration and voice I/O."""

import asyncio
import html
import logging
from typing import Optional, Tuple

from ..errors import (
    InvalidLanguageError,
    ProviderError,
    RequestCancelledError,
    RequestInProgressError,
)
from ..models.chat import Author, Message
from ..models.languages import DEFAULT_LANGUAGE, get_system_instruction, is_supported_language
from ..models.session import SessionState
from ..provider.base import CompletionProvider
from ..speech.stream import PartialResultStream
from ..speech.synthesis import AbstractSpeechOutput, DEFAULT_PITCH, DEFAULT_RATE, DEFAULT_VOLUME
from ..speech.transcription import AbstractTranscriptionSource
from .session_publisher import SessionPublisher

logger = logging.getLogger(__name__)


class ConversationSession:
    """Owns the chat transcript and drives provider requests, dictation and speech.

    All methods must be called from the event loop the session runs on.
    Recognition results and provider replies are applied on that loop, so state
    changes never interleave.

    Observable state is published through ``publisher`` (if given) whenever it
    changes: new messages, state snapshots and draft updates.
    """

    def __init__(self,
                 provider: CompletionProvider,
                 speech_output: AbstractSpeechOutput,
                 transcription_source: AbstractTranscriptionSource,
                 publisher: Optional[SessionPublisher] = None,
                 language: str = DEFAULT_LANGUAGE,
                 tts_enabled: bool = True):
        """Initialize conversation session.

        Args:
            provider: Completion provider used for every send
            speech_output: Text-to-speech sink for replies and manual speak
            transcription_source: Speech-to-text source for dictation
            publisher: Optional pub/sub publisher for observers
            language: Initial language code
            tts_enabled: Whether replies are read aloud

        Raises:
            InvalidLanguageError: If language is not supported
        """
        if not is_supported_language(language):
            raise InvalidLanguageError(language)

        self.provider = provider
        self.speech_output = speech_output
        self.transcription_source = transcription_source
        self.publisher = publisher
        self.state = SessionState(language=language, tts_enabled=tts_enabled)

        self._initialized = False
        self._sending = False
        self._request_task: Optional[asyncio.Future] = None
        self._listen_stream: Optional[PartialResultStream] = None
        self._listen_task: Optional[asyncio.Task] = None
        self._speech_task: Optional[asyncio.Future] = None

        logger.info(f"ConversationSession created (language={language}, tts={tts_enabled})")

    # Observable state

    @property
    def transcript(self) -> Tuple[Message, ...]:
        return tuple(self.state.transcript)

    @property
    def draft(self) -> str:
        return self.state.draft

    @property
    def pending(self) -> bool:
        return self.state.pending

    @property
    def listening(self) -> bool:
        return self.state.listening

    @property
    def speech_available(self) -> bool:
        return self.state.speech_available

    @property
    def tts_enabled(self) -> bool:
        return self.state.tts_enabled

    @property
    def language(self) -> str:
        return self.state.language

    def _publish_state(self) -> None:
        if self.publisher is not None:
            self.publisher.publish_state(self.state.snapshot())

    def _append(self, message: Message) -> Message:
        self.state.transcript.append(message)
        if self.publisher is not None:
            self.publisher.publish_message(message)
        return message

    def _set_draft(self, text: str) -> None:
        if text == self.state.draft:
            return
        self.state.draft = text
        if self.publisher is not None:
            self.publisher.publish_draft(text)

    # Lifecycle

    async def initialize(self) -> None:
        """Probe speech recognition once and configure the speech output."""
        if self._initialized:
            return

        loop = asyncio.get_running_loop()
        available = await loop.run_in_executor(None, self.transcription_source.probe)
        self.state.speech_available = bool(available)
        self.transcription_source.set_language(self.state.language)

        self.speech_output.set_language(self.state.language)
        self.speech_output.set_rate(DEFAULT_RATE)
        self.speech_output.set_volume(DEFAULT_VOLUME)
        self.speech_output.set_pitch(DEFAULT_PITCH)

        self._initialized = True
        logger.info(f"Session initialized (speech recognition available: {self.state.speech_available})")
        self._publish_state()

    async def close(self) -> None:
        """Best-effort teardown of listening, speech and any outstanding request."""
        logger.info("Closing conversation session")
        self.cancel_request()

        try:
            await self.stop_listening()
        except Exception as e:
            logger.warning(f"Error stopping transcription: {e}")

        if self._speech_task is not None and not self._speech_task.done():
            self._speech_task.cancel()
        try:
            await self.speech_output.close()
        except Exception as e:
            logger.warning(f"Error closing speech output: {e}")

        try:
            await self.provider.close()
        except Exception as e:
            logger.warning(f"Error closing provider: {e}")

    # Sending

    async def send_message(self, text: str) -> Optional[Message]:
        """Send user text to the provider and append the reply.

        Empty or whitespace-only text is ignored. Provider failures never
        raise; they become an assistant message describing the failure.

        Args:
            text: Message to send

        Returns:
            The assistant message appended for this send, or None if ignored

        Raises:
            RequestInProgressError: If a previous send has not resolved yet
        """
        if not text or not text.strip():
            logger.debug("Ignoring empty message")
            return None
        if self._sending:
            raise RequestInProgressError("Wait for the current reply before sending another message")
        self._sending = True

        try:
            return await self._send(text)
        finally:
            self._sending = False

    async def _send(self, text: str) -> Message:
        self._append(Message(text=text, author=Author.USER))
        self._set_draft("")
        if self.state.listening:
            await self.stop_listening()

        self.state.pending = True
        self._publish_state()

        try:
            reply = await self._request_completion(text, get_system_instruction(self.state.language))
        except ProviderError as e:
            logger.warning(f"Completion request failed: {e.describe()}")
            message = self._append(Message(text=e.describe(), author=Author.ASSISTANT, is_error=True))
        except Exception as e:
            logger.exception("Unexpected error during completion request")
            message = self._append(Message(text=f"Error: {e}", author=Author.ASSISTANT, is_error=True))
        else:
            message = self._append(Message(text=html.unescape(reply), author=Author.ASSISTANT))
            if self.state.tts_enabled:
                await self.speak_message(message)
        finally:
            self.state.pending = False
            self._publish_state()

        return message

    async def _request_completion(self, text: str, system_instruction: str) -> str:
        task = asyncio.ensure_future(self.provider.complete(text, system_instruction))
        self._request_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._request_task = None

        if task.cancelled():
            raise RequestCancelledError()
        return task.result()

    def cancel_request(self) -> bool:
        """Cancel the in-flight provider request.

        Returns:
            True if a request was cancelled
        """
        task = self._request_task
        if task is None or task.done():
            return False
        logger.info("Cancelling in-flight completion request")
        task.cancel()
        return True

    # Dictation

    def set_draft(self, text: str) -> None:
        """Replace the draft, e.g. after the user edits dictated text."""
        self._set_draft(text)

    async def start_listening(self) -> bool:
        """Start dictation into the draft.

        Returns:
            True if listening started
        """
        if not self.state.speech_available or self.state.listening:
            logger.debug(f"start_listening ignored (available={self.state.speech_available}, "
                         f"listening={self.state.listening})")
            return False

        self._set_draft("")
        stream = PartialResultStream()
        try:
            self.transcription_source.start(stream.push, stream.finish)
        except Exception as e:
            logger.error(f"Failed to start transcription: {e}")
            return False

        self.state.listening = True
        self._listen_stream = stream
        self._listen_task = asyncio.ensure_future(self._consume_partial_results(stream))
        logger.info("Listening started")
        self._publish_state()
        return True

    async def _consume_partial_results(self, stream: PartialResultStream) -> None:
        async for text in stream:
            if stream is not self._listen_stream:
                return
            self._set_draft(text)

        # Recognition ended on its own; keep the draft
        if stream is self._listen_stream and self.state.listening:
            logger.info("Recognition ended")
            self.state.listening = False
            self._listen_stream = None
            self._listen_task = None
            self._publish_state()

    async def stop_listening(self) -> bool:
        """Stop dictation, keeping the recognized draft.

        Returns:
            True if listening was stopped
        """
        if not self.state.listening:
            return False

        self.state.listening = False
        task = self._listen_task
        self._listen_stream = None
        self._listen_task = None
        if task is not None and not task.done():
            task.cancel()
        self._publish_state()

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self.transcription_source.stop)
        except Exception as e:
            logger.warning(f"Error stopping transcription source: {e}")

        logger.info("Listening stopped")
        return True

    # Settings

    def toggle_tts(self) -> bool:
        """Flip reply read-aloud. Speech already playing is not affected.

        Returns:
            The new tts_enabled value
        """
        self.state.tts_enabled = not self.state.tts_enabled
        logger.info(f"Text-to-speech {'enabled' if self.state.tts_enabled else 'disabled'}")
        self._publish_state()
        return self.state.tts_enabled

    def set_language(self, code: str) -> None:
        """Switch the conversation language.

        Applies to the next provider request, the next utterance spoken and the
        next dictation. Past messages are unchanged.

        Raises:
            InvalidLanguageError: If code is not a supported language
        """
        if not is_supported_language(code):
            raise InvalidLanguageError(code)

        self.speech_output.set_language(code)
        self.transcription_source.set_language(code)
        self.state.language = code
        logger.info(f"Language set to {code}")
        self._publish_state()

    # Speech output

    async def speak(self, text: str) -> Optional[asyncio.Future]:
        """Read text aloud, interrupting anything currently playing.

        Returns:
            The playback future, or None if there was nothing to say
        """
        return await self._play(html.unescape(text))

    async def speak_message(self, message: Message) -> Optional[asyncio.Future]:
        """Read a transcript message aloud exactly as it is displayed."""
        return await self._play(message.text)

    async def _play(self, text: str) -> Optional[asyncio.Future]:
        if not text.strip():
            return None

        try:
            await self.speech_output.stop()
        except Exception as e:
            logger.warning(f"Error stopping speech output: {e}")

        task = asyncio.ensure_future(self.speech_output.speak(text))
        task.add_done_callback(self._on_speech_done)
        self._speech_task = task
        return task

    async def wait_for_speech(self) -> None:
        """Wait until the current playback, if any, has finished."""
        task = self._speech_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _on_speech_done(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Speech output failed: {error}")
