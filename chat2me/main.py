"""Main application entry point for chat2me."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from .config import Chat2MeConfig
from .models.languages import SUPPORTED_LANGUAGES
from .provider import OpenAIChatProvider
from .services import ConversationSession, SessionPublisher
from .speech import (
    GoogleSpeechTranscriptionSource,
    NullTranscriptionSource,
    create_speech_output,
)
from .ui import ChatScreen

logger = logging.getLogger(__name__)


class App:
    """Wires configuration, speech adapters, provider, session and screen."""

    def __init__(self, config: Chat2MeConfig, audio_enabled: bool = True):
        self.config = config
        self.audio_enabled = audio_enabled
        self.session: Optional[ConversationSession] = None
        self.screen: Optional[ChatScreen] = None

    def init(self) -> None:
        logger.info("Initializing services...")

        provider = OpenAIChatProvider(self.config.get_provider_settings())

        if self.audio_enabled:
            transcription_source = GoogleSpeechTranscriptionSource(
                credentials_path=self.config.get_google_credentials_path(),
                sample_rate=self.config.get('speech.sample_rate', 16000),
                chunk_size=self.config.get('speech.chunk_size', 1024),
                partial_interval_seconds=self.config.get('speech.partial_interval_seconds', 1.0),
                silence_timeout_seconds=self.config.get('speech.silence_timeout_seconds', 1.5),
                max_utterance_seconds=self.config.get('speech.max_utterance_seconds', 30.0),
                silence_threshold=self.config.get('speech.silence_threshold', 0.01),
            )
        else:
            transcription_source = NullTranscriptionSource()
        speech_output = create_speech_output(enabled=self.audio_enabled)

        publisher = SessionPublisher()
        self.session = ConversationSession(
            provider=provider,
            speech_output=speech_output,
            transcription_source=transcription_source,
            publisher=publisher,
            language=self.config.get('session.language', 'en-US'),
            tts_enabled=bool(self.config.get('session.tts_enabled', True)),
        )
        self.screen = ChatScreen(
            self.session,
            publisher,
            show_language_picker=bool(self.config.get('ui.language_picker', True)),
            show_menu=bool(self.config.get('ui.menu', True)),
        )

    async def run(self) -> None:
        try:
            await self.session.initialize()
            await self.screen.run()
            await self.screen.wait_for_sends()
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        if self.screen is not None:
            self.screen.close()
        if self.session is not None:
            await self.session.close()


def setup_logging(config: Chat2MeConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'logs/chat2me.log')
    console_output = config.get('logging.console_output', False)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("chat2me starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="chat2me - talk to a chat-completion model by text or voice",
        epilog="Type /menu inside the app for commands"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, INFO)"
    )

    parser.add_argument(
        "--language",
        type=str,
        choices=sorted(SUPPORTED_LANGUAGES),
        help="Conversation language (overrides config)"
    )

    parser.add_argument(
        "--no-tts",
        action="store_true",
        help="Start with reading replies aloud turned off"
    )

    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Run without microphone and speech output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="chat2me v0.1.0"
    )

    return parser


def main() -> None:
    """Main entry point for chat2me."""
    args = build_parser().parse_args()

    try:
        config = Chat2MeConfig(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)

    if args.language:
        config.set('session.language', args.language)
    if args.no_tts:
        config.set('session.tts_enabled', False)
    setup_logging(config, args.log_level or config.get('logging.level', 'INFO'))

    app = App(config, audio_enabled=not args.no_audio)
    try:
        app.init()
        asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
