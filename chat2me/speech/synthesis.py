"""Speech output sinks (text-to-speech)."""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import pyttsx3

logger = logging.getLogger(__name__)

DEFAULT_RATE = 0.5
DEFAULT_VOLUME = 1.0
DEFAULT_PITCH = 1.0

# pyttsx3 rate is words per minute; 0.5 is normal speaking speed
WORDS_PER_MINUTE_AT_FULL_RATE = 400


class AbstractSpeechOutput(ABC):
    """Abstract base class for text-to-speech sinks.

    Rate, volume and pitch use the normalised scale (rate 0.5 is normal speed).
    Starting a new utterance is always preceded by ``stop``; there is no queue.
    """

    def __init__(self):
        self.language = "en-US"
        self.rate = DEFAULT_RATE
        self.volume = DEFAULT_VOLUME
        self.pitch = DEFAULT_PITCH

    def set_language(self, language: str) -> None:
        self.language = language

    def set_rate(self, rate: float) -> None:
        self.rate = rate

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def set_pitch(self, pitch: float) -> None:
        self.pitch = pitch

    @abstractmethod
    async def stop(self) -> None:
        """Interrupt current playback, if any."""
        pass

    @abstractmethod
    async def speak(self, text: str) -> None:
        """Play text; returns when playback finishes or is stopped."""
        pass

    async def close(self) -> None:
        """Release engine resources."""
        await self.stop()


class NullSpeechOutput(AbstractSpeechOutput):
    """Sink that only logs, for running without audio."""

    async def stop(self) -> None:
        pass

    async def speak(self, text: str) -> None:
        logger.debug(f"Speech output disabled, not speaking {len(text)} chars")


class Pyttsx3SpeechOutput(AbstractSpeechOutput):
    """Offline text-to-speech through pyttsx3.

    The engine is created and driven on a single dedicated thread, since
    pyttsx3 drivers are not safe to use from several threads.
    """

    def __init__(self):
        super().__init__()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tts")
        self._engine: Optional[pyttsx3.Engine] = None
        self._applied_language: Optional[str] = None

    def set_pitch(self, pitch: float) -> None:
        if pitch != DEFAULT_PITCH:
            logger.warning(f"pyttsx3 does not support pitch control, ignoring pitch={pitch}")
        super().set_pitch(pitch)

    def _ensure_engine(self) -> "pyttsx3.Engine":
        if self._engine is None:
            self._engine = pyttsx3.init()
            logger.info("pyttsx3 engine initialized")
        return self._engine

    def _select_voice(self, engine: "pyttsx3.Engine") -> None:
        """Pick the first installed voice matching the language, if any."""
        if self._applied_language == self.language:
            return
        self._applied_language = self.language

        wanted = self.language.lower().replace("_", "-")
        prefix = wanted.split("-")[0]
        fallback = None
        for voice in engine.getProperty("voices"):
            languages = []
            for lang in getattr(voice, "languages", None) or []:
                if isinstance(lang, bytes):
                    lang = lang.decode("utf-8", errors="ignore")
                languages.append(str(lang).lower().lstrip("\x05").replace("_", "-"))
            voice_id = str(voice.id).lower()
            if wanted in languages or wanted in voice_id:
                engine.setProperty("voice", voice.id)
                logger.debug(f"Using voice {voice.id} for {self.language}")
                return
            if fallback is None and (any(l.split("-")[0] == prefix for l in languages)
                                     or f".{prefix}" in voice_id or f"/{prefix}" in voice_id):
                fallback = voice.id
        if fallback is not None:
            engine.setProperty("voice", fallback)
            logger.debug(f"Using voice {fallback} for {self.language}")
        else:
            logger.warning(f"No installed voice for {self.language}, keeping the default voice")

    def _speak_blocking(self, text: str) -> None:
        engine = self._ensure_engine()
        self._select_voice(engine)
        engine.setProperty("rate", int(self.rate * WORDS_PER_MINUTE_AT_FULL_RATE))
        engine.setProperty("volume", self.volume)
        engine.say(text)
        engine.runAndWait()

    async def stop(self) -> None:
        if self._engine is not None:
            self._engine.stop()

    async def speak(self, text: str) -> None:
        loop = asyncio.get_running_loop()
        logger.debug(f"Speaking {len(text)} chars ({self.language})")
        await loop.run_in_executor(self._executor, self._speak_blocking, text)

    async def close(self) -> None:
        await self.stop()
        self._executor.shutdown(wait=False)


def create_speech_output(enabled: bool = True) -> AbstractSpeechOutput:
    """Create the pyttsx3 sink, or the null sink when disabled or unavailable."""
    if not enabled:
        return NullSpeechOutput()
    try:
        # Fail early if no driver is installed
        pyttsx3.init()
    except Exception as e:
        logger.warning(f"Text-to-speech unavailable, continuing without it: {e}")
        return NullSpeechOutput()
    return Pyttsx3SpeechOutput()
