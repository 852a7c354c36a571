"""Terminal chat screen rendering the conversation session."""

import asyncio
import logging
from typing import Optional

from pubsub import pub
from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import InvalidLanguageError, RequestInProgressError
from ..models.chat import Message
from ..models.languages import get_language_name, list_languages
from ..models.session import SessionState
from ..services.conversation_session import ConversationSession
from ..services.session_publisher import SessionPublisher

logger = logging.getLogger(__name__)

COMMANDS = [
    ("<text>", "Send a message"),
    ("<enter>", "Send the dictated draft"),
    ("/listen", "Start dictation"),
    ("/stop", "Stop dictation"),
    ("/tts", "Toggle reading replies aloud"),
    ("/lang [code]", "Change language (lists languages without a code)"),
    ("/speak <n>", "Read message n aloud"),
    ("/cancel", "Cancel the pending reply"),
    ("/menu", "Show this menu"),
    ("/quit", "Leave"),
]


class ChatScreen:
    """Renders the transcript as chat bubbles and turns input lines into session intents."""

    def __init__(self,
                 session: ConversationSession,
                 publisher: SessionPublisher,
                 console: Optional[Console] = None,
                 show_language_picker: bool = True,
                 show_menu: bool = True):
        """Initialize chat screen.

        Args:
            session: Conversation session to drive
            publisher: Publisher the session reports its changes through
            console: Rich console to render to
            show_language_picker: Enable the /lang command
            show_menu: Enable the /menu drawer
        """
        self.session = session
        self.publisher = publisher
        self.console = console or Console()
        self.show_language_picker = show_language_picker
        self.show_menu = show_menu
        self.running = False

        self._message_count = 0
        self._was_pending = False
        self._was_listening = False
        self._send_tasks = set()

        pub.subscribe(self._on_message, publisher.message_topic)
        pub.subscribe(self._on_state, publisher.state_topic)
        pub.subscribe(self._on_draft, publisher.draft_topic)
        logger.info("ChatScreen initialized")

    # Session observers

    def _on_message(self, message: Message) -> None:
        self._message_count += 1
        self.render_message(message, self._message_count)

    def _on_state(self, state: SessionState) -> None:
        if state.pending and not self._was_pending:
            self.console.print("💭 Thinking...", style="dim italic")
        if state.listening != self._was_listening:
            if state.listening:
                self.console.print("🎙️  Listening... (/stop to finish)", style="bold red")
            else:
                self.console.print("⏹️  Stopped listening. Press Enter to send the draft.", style="yellow")
        self._was_pending = state.pending
        self._was_listening = state.listening

    def _on_draft(self, draft: str) -> None:
        if draft:
            self.console.print(Text.assemble(("📝 ", ""), (draft, "italic cyan")))

    # Rendering

    def render_message(self, message: Message, index: int) -> None:
        if message.is_user:
            panel = Panel(message.text, title=f"#{index} You", title_align="right",
                          border_style="grey50", expand=False)
            self.console.print(Align.right(panel))
        else:
            border = "red" if message.is_error else "magenta"
            panel = Panel(message.text, title=f"#{index} Assistant 🔊", title_align="left",
                          border_style=border, expand=False)
            self.console.print(Align.left(panel))

    def render_header(self) -> None:
        state = self.session.state
        mic = "🎤 available" if state.speech_available else "🎤 unavailable"
        tts = "🔊 on" if state.tts_enabled else "🔇 off"
        header = Text.assemble(
            ("💬 chat2me", "bold blue"), "  |  ",
            f"Language: {get_language_name(state.language)} ({state.language})", "  |  ",
            mic, "  |  ", tts,
        )
        self.console.print(Panel(Align.center(header), style="bright_blue"))

    def render_menu(self) -> None:
        table = Table(title="Commands", show_header=False, box=None)
        table.add_column("Command", style="bold cyan")
        table.add_column("Description")
        for command, description in COMMANDS:
            if command.startswith("/lang") and not self.show_language_picker:
                continue
            if command == "/menu" and not self.show_menu:
                continue
            table.add_row(command, description)
        self.console.print(Panel(table, border_style="grey50"))

    def render_languages(self) -> None:
        for code, name in list_languages():
            marker = " ✓" if code == self.session.language else ""
            self.console.print(f"  {code}  {name}{marker}")

    # Input handling

    async def handle_input(self, line: str) -> bool:
        """Handle one input line.

        Returns:
            False when the user asked to quit
        """
        stripped = line.strip()
        if not stripped:
            if self.session.draft.strip():
                self._dispatch_send(self.session.draft)
            return True
        if not stripped.startswith("/"):
            self._dispatch_send(line)
            return True

        command, _, argument = stripped.partition(" ")
        command = command.lower()
        argument = argument.strip()

        if command in ("/quit", "/exit", "/q"):
            return False
        if command == "/listen":
            if not self.session.speech_available:
                self.console.print("⚠️  Speech recognition is not available", style="yellow")
            elif not await self.session.start_listening():
                self.console.print("⚠️  Already listening", style="yellow")
        elif command == "/stop":
            await self.session.stop_listening()
        elif command == "/tts":
            enabled = self.session.toggle_tts()
            self.console.print(f"🔊 Read aloud {'on' if enabled else 'off'}", style="blue")
        elif command == "/lang" and self.show_language_picker:
            self._change_language(argument)
        elif command == "/speak":
            await self._speak_message(argument)
        elif command == "/cancel":
            if not self.session.cancel_request():
                self.console.print("Nothing to cancel", style="dim")
        elif command == "/menu" and self.show_menu:
            self.render_menu()
        else:
            self.console.print(f"Unknown command: {command}", style="red")
        return True

    def _change_language(self, code: str) -> None:
        if not code:
            self.render_languages()
            return
        try:
            self.session.set_language(code)
        except InvalidLanguageError as e:
            self.console.print(f"❌ {e}", style="bold red")
            return
        self.console.print(f"🌐 Language: {get_language_name(code)}", style="blue")

    async def _speak_message(self, argument: str) -> None:
        transcript = self.session.transcript
        try:
            index = int(argument)
        except ValueError:
            self.console.print("Usage: /speak <message number>", style="red")
            return
        if not 1 <= index <= len(transcript):
            self.console.print(f"No message #{index}", style="red")
            return
        await self.session.speak_message(transcript[index - 1])

    def _dispatch_send(self, text: str) -> None:
        task = asyncio.ensure_future(self._send(text))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send(self, text: str) -> None:
        try:
            await self.session.send_message(text)
        except RequestInProgressError as e:
            self.console.print(f"⚠️  {e}", style="yellow")

    async def wait_for_sends(self) -> None:
        """Wait for every dispatched send to resolve."""
        if self._send_tasks:
            await asyncio.wait(set(self._send_tasks))

    async def run(self) -> None:
        """Read input lines until the user quits."""
        self.running = True
        self.render_header()
        if self.show_menu:
            self.render_menu()

        try:
            while self.running:
                try:
                    line = await asyncio.to_thread(self.console.input, "[bold green]> [/bold green]")
                except EOFError:
                    break
                if not await self.handle_input(line):
                    break
        finally:
            self.running = False

    def close(self) -> None:
        """Stop observing the session."""
        for listener, topic in ((self._on_message, self.publisher.message_topic),
                                (self._on_state, self.publisher.state_topic),
                                (self._on_draft, self.publisher.draft_topic)):
            try:
                pub.unsubscribe(listener, topic)
            except Exception as e:
                logger.warning(f"Error during unsubscribe: {e}")
        logger.info("ChatScreen closed")
