"""Unit tests for ConversationSession."""

import asyncio

import pytest
from pubsub import pub

from chat2me.errors import (
    InvalidLanguageError,
    ProviderHTTPError,
    ProviderTimeoutError,
    RequestInProgressError,
    TransportError,
)
from chat2me.models.chat import Author
from chat2me.models.languages import get_system_instruction
from chat2me.services.conversation_session import ConversationSession
from chat2me.services.session_publisher import SessionPublisher

from conftest import FakeProvider, FakeSpeechOutput, FakeTranscriptionSource, settle


def make_session(provider=None, speech_output=None, source=None, **kwargs):
    return ConversationSession(
        provider=provider or FakeProvider(),
        speech_output=speech_output or FakeSpeechOutput(),
        transcription_source=source or FakeTranscriptionSource(),
        **kwargs
    )


@pytest.mark.unit
class TestSendMessage:
    """Request/response orchestration."""

    def test_send_appends_user_then_assistant(self):
        provider = FakeProvider(reply="Bonjour")
        session = make_session(provider=provider)

        async def scenario():
            await session.initialize()
            return await session.send_message("Say hello in French")

        reply = asyncio.run(scenario())

        assert [(m.author, m.text) for m in session.transcript] == [
            (Author.USER, "Say hello in French"),
            (Author.ASSISTANT, "Bonjour"),
        ]
        assert reply is session.transcript[-1]
        assert reply.is_error is False
        assert provider.calls == [("Say hello in French", get_system_instruction("en-US"))]

    def test_user_message_recorded_before_provider_call(self):
        provider = FakeProvider()
        session = make_session(provider=provider)
        seen = []
        provider.on_call = lambda: seen.append([m.text for m in session.transcript])

        asyncio.run(session.send_message("first"))

        assert seen == [["first"]]

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_input_is_ignored(self, text):
        provider = FakeProvider()
        session = make_session(provider=provider)

        result = asyncio.run(session.send_message(text))

        assert result is None
        assert session.transcript == ()
        assert session.pending is False
        assert provider.calls == []

    def test_pending_spans_request(self):
        provider = FakeProvider()
        session = make_session(provider=provider)

        async def scenario():
            provider.block()
            task = asyncio.ensure_future(session.send_message("hi"))
            await settle()
            during = session.pending
            provider.release()
            await task
            return during

        assert asyncio.run(scenario()) is True
        assert session.pending is False

    def test_pending_cleared_after_failure(self):
        session = make_session(provider=FakeProvider(error=TransportError("boom")))

        asyncio.run(session.send_message("hi"))

        assert session.pending is False

    def test_reply_entities_are_decoded(self):
        session = make_session(provider=FakeProvider(reply="Fish &amp; chips &lt;3"))

        reply = asyncio.run(session.send_message("dinner?"))

        assert reply.text == "Fish & chips <3"

    def test_http_error_becomes_assistant_message(self):
        provider = FakeProvider(error=ProviderHTTPError(500, "Internal Server Error"))
        session = make_session(provider=provider)

        reply = asyncio.run(session.send_message("hi"))

        assert len(session.transcript) == 2
        assert reply.author is Author.ASSISTANT
        assert reply.is_error is True
        assert "500" in reply.text
        assert reply.text == "Error: 500: Internal Server Error"

    def test_transport_error_becomes_assistant_message(self):
        session = make_session(provider=FakeProvider(error=TransportError("connection reset")))

        reply = asyncio.run(session.send_message("hi"))

        assert reply.text == "Error: connection reset"
        assert reply.is_error is True

    def test_timeout_becomes_assistant_message(self):
        session = make_session(provider=FakeProvider(error=ProviderTimeoutError(30)))

        reply = asyncio.run(session.send_message("hi"))

        assert reply.text == "Error: request timed out after 30 seconds"

    def test_unexpected_exception_becomes_assistant_message(self):
        session = make_session(provider=FakeProvider(error=RuntimeError("kaboom")))

        reply = asyncio.run(session.send_message("hi"))

        assert reply.text == "Error: kaboom"
        assert session.pending is False

    def test_session_usable_after_error(self):
        provider = FakeProvider(error=TransportError("down"))
        session = make_session(provider=provider)

        async def scenario():
            await session.send_message("one")
            provider.error = None
            provider.reply = "back"
            return await session.send_message("two")

        reply = asyncio.run(scenario())

        assert reply.text == "back"
        assert [m.text for m in session.transcript] == ["one", "Error: down", "two", "back"]

    def test_concurrent_send_is_rejected(self):
        provider = FakeProvider()
        session = make_session(provider=provider)

        async def scenario():
            provider.block()
            first = asyncio.ensure_future(session.send_message("first"))
            await settle()
            with pytest.raises(RequestInProgressError):
                await session.send_message("second")
            provider.release()
            await first

        asyncio.run(scenario())

        assert [m.text for m in session.transcript] == ["first", "Hello there!"]
        assert len(provider.calls) == 1

    def test_back_to_back_sends_while_listening(self):
        provider = FakeProvider()
        source = FakeTranscriptionSource()
        session = make_session(provider=provider, source=source)

        async def scenario():
            await session.initialize()
            await session.start_listening()
            provider.block()
            first = asyncio.ensure_future(session.send_message("first"))
            second = asyncio.ensure_future(session.send_message("second"))
            await settle()
            provider.release()
            return await asyncio.gather(first, second, return_exceptions=True)

        first, second = asyncio.run(scenario())

        assert isinstance(second, RequestInProgressError)
        assert first.text == "Hello there!"
        assert [m.text for m in session.transcript] == ["first", "Hello there!"]
        assert len(provider.calls) == 1
        assert session.pending is False

    def test_cancel_request(self):
        provider = FakeProvider()
        session = make_session(provider=provider)

        async def scenario():
            provider.block()
            task = asyncio.ensure_future(session.send_message("slow"))
            await settle()
            cancelled = session.cancel_request()
            reply = await task
            return cancelled, reply

        cancelled, reply = asyncio.run(scenario())

        assert cancelled is True
        assert reply.text == "Error: request cancelled"
        assert reply.is_error is True
        assert session.pending is False

    def test_cancel_without_request(self):
        session = make_session()

        assert session.cancel_request() is False

    def test_send_clears_draft(self):
        session = make_session()
        session.set_draft("dictated text")

        asyncio.run(session.send_message("dictated text"))

        assert session.draft == ""


@pytest.mark.unit
class TestSpeechOutput:
    """Reply read-aloud and manual speak."""

    def test_reply_is_spoken_when_tts_enabled(self):
        speech = FakeSpeechOutput()
        session = make_session(provider=FakeProvider(reply="Tom &amp; Jerry"), speech_output=speech)

        async def scenario():
            await session.send_message("cartoon?")
            await session.wait_for_speech()

        asyncio.run(scenario())

        assert speech.spoken == ["Tom & Jerry"]

    def test_toggle_tts_twice_restores_and_silences_while_off(self):
        speech = FakeSpeechOutput()
        session = make_session(speech_output=speech)
        original = session.tts_enabled

        async def scenario():
            assert session.toggle_tts() is (not original)
            await session.send_message("quiet please")
            await session.wait_for_speech()
            session.toggle_tts()

        asyncio.run(scenario())

        assert session.tts_enabled is original
        assert speech.spoken == []

    def test_speak_stops_then_plays_decoded_text(self):
        speech = FakeSpeechOutput()
        session = make_session(speech_output=speech)

        async def scenario():
            await session.speak("a &gt; b")
            await session.wait_for_speech()

        asyncio.run(scenario())

        assert speech.events == ["stop", "speak:a > b"]

    def test_reply_is_spoken_as_displayed(self):
        speech = FakeSpeechOutput()
        provider = FakeProvider(reply="Use &amp;lt;br&amp;gt; tags")
        session = make_session(provider=provider, speech_output=speech)

        async def scenario():
            reply = await session.send_message("How do I break a line?")
            await session.wait_for_speech()
            return reply

        reply = asyncio.run(scenario())

        assert reply.text == "Use &lt;br&gt; tags"
        assert speech.spoken == ["Use &lt;br&gt; tags"]

    def test_speak_message_plays_text_unchanged(self):
        speech = FakeSpeechOutput()
        session = make_session(speech_output=speech, tts_enabled=False)

        async def scenario():
            reply = await session.send_message("is a &gt; b?")
            await session.speak_message(session.transcript[0])
            await session.wait_for_speech()
            return reply

        asyncio.run(scenario())

        assert speech.events == ["stop", "speak:is a &gt; b?"]

    def test_speak_blank_text_is_noop(self):
        speech = FakeSpeechOutput()
        session = make_session(speech_output=speech)

        result = asyncio.run(session.speak("   "))

        assert result is None
        assert speech.events == []

    def test_speech_failure_does_not_affect_send(self):
        speech = FakeSpeechOutput(error=RuntimeError("no audio device"))
        session = make_session(speech_output=speech)

        async def scenario():
            reply = await session.send_message("hi")
            await session.wait_for_speech()
            return reply

        reply = asyncio.run(scenario())

        assert reply.text == "Hello there!"
        assert reply.is_error is False
        assert session.pending is False


@pytest.mark.unit
class TestLanguage:
    """Language selection."""

    def test_invalid_language_rejected(self):
        speech = FakeSpeechOutput()
        session = make_session(speech_output=speech)

        with pytest.raises(InvalidLanguageError):
            session.set_language("xx-XX")

        assert session.language == "en-US"
        assert speech.language == "en-US"

    def test_invalid_initial_language_rejected(self):
        with pytest.raises(InvalidLanguageError):
            make_session(language="klingon")

    def test_language_applies_to_next_request_and_speech(self):
        provider = FakeProvider()
        speech = FakeSpeechOutput()
        source = FakeTranscriptionSource()
        session = make_session(provider=provider, speech_output=speech, source=source)

        async def scenario():
            await session.initialize()
            await session.send_message("hello")
            session.set_language("es-ES")
            await session.send_message("hola")

        asyncio.run(scenario())

        assert provider.calls[0][1] == get_system_instruction("en-US")
        assert provider.calls[1][1] == get_system_instruction("es-ES")
        assert speech.language == "es-ES"
        assert source.language == "es-ES"
        assert session.transcript[0].text == "hello"

    def test_initialize_configures_speech_output(self):
        speech = FakeSpeechOutput()
        speech.rate = 0.9
        session = make_session(speech_output=speech, language="fr-FR")

        asyncio.run(session.initialize())

        assert speech.language == "fr-FR"
        assert speech.rate == 0.5
        assert speech.volume == 1.0
        assert speech.pitch == 1.0


@pytest.mark.unit
class TestListening:
    """Dictation into the draft."""

    def test_start_listening_unavailable_is_noop(self):
        source = FakeTranscriptionSource(available=False)
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            return await session.start_listening()

        assert asyncio.run(scenario()) is False
        assert session.listening is False
        assert source.start_count == 0

    def test_probe_happens_once(self):
        source = FakeTranscriptionSource()
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            await session.initialize()

        asyncio.run(scenario())

        assert source.probe_count == 1
        assert session.speech_available is True

    def test_partial_results_overwrite_draft(self):
        source = FakeTranscriptionSource()
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            session.set_draft("old text")
            assert await session.start_listening() is True
            assert session.draft == ""
            source.emit("what")
            await settle()
            first = session.draft
            source.emit("what time is it")
            await settle()
            return first

        first = asyncio.run(scenario())

        assert first == "what"
        assert session.draft == "what time is it"
        assert session.listening is True

    def test_start_while_listening_is_noop(self):
        source = FakeTranscriptionSource()
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            await session.start_listening()
            return await session.start_listening()

        assert asyncio.run(scenario()) is False
        assert source.start_count == 1

    def test_start_failure_leaves_listening_off(self):
        source = FakeTranscriptionSource()
        source.start_error = RuntimeError("Transcription already in progress")
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            return await session.start_listening()

        assert asyncio.run(scenario()) is False
        assert session.listening is False

    def test_stop_listening_keeps_draft(self):
        source = FakeTranscriptionSource()
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            await session.start_listening()
            source.emit("remember the milk")
            await settle()
            stopped = await session.stop_listening()
            source.emit("late result")
            await settle()
            return stopped

        assert asyncio.run(scenario()) is True
        assert session.listening is False
        assert session.draft == "remember the milk"
        assert source.stop_count == 1

    def test_stop_when_not_listening_is_noop(self):
        source = FakeTranscriptionSource()
        session = make_session(source=source)

        assert asyncio.run(session.stop_listening()) is False
        assert source.stop_count == 0

    def test_end_of_utterance_stops_listening(self):
        source = FakeTranscriptionSource()
        session = make_session(source=source)

        async def scenario():
            await session.initialize()
            await session.start_listening()
            source.emit("done talking")
            source.end_utterance()
            await settle()

        asyncio.run(scenario())

        assert session.listening is False
        assert session.draft == "done talking"

    def test_send_stops_listening_before_dispatch(self):
        provider = FakeProvider()
        source = FakeTranscriptionSource()
        session = make_session(provider=provider, source=source)
        listening_at_dispatch = []
        provider.on_call = lambda: listening_at_dispatch.append(session.listening)

        async def scenario():
            await session.initialize()
            await session.start_listening()
            source.emit("turn on the lights")
            await settle()
            await session.send_message(session.draft)

        asyncio.run(scenario())

        assert listening_at_dispatch == [False]
        assert source.stop_count == 1
        assert session.transcript[0].text == "turn on the lights"
        assert session.draft == ""


@pytest.mark.unit
class TestSessionEvents:
    """Published observable state."""

    def test_events_published(self):
        publisher = SessionPublisher()
        messages, states, drafts = [], [], []

        def on_message(message):
            messages.append(message)

        def on_state(state):
            states.append((state.pending, state.listening))

        def on_draft(draft):
            drafts.append(draft)

        pub.subscribe(on_message, publisher.message_topic)
        pub.subscribe(on_state, publisher.state_topic)
        pub.subscribe(on_draft, publisher.draft_topic)

        session = make_session(publisher=publisher)

        async def scenario():
            session.set_draft("typed")
            await session.send_message("typed")

        asyncio.run(scenario())

        assert [m.author for m in messages] == [Author.USER, Author.ASSISTANT]
        assert (True, False) in states
        assert states[-1] == (False, False)
        assert drafts == ["typed", ""]


@pytest.mark.unit
def test_close_releases_resources():
    provider = FakeProvider()
    speech = FakeSpeechOutput()
    source = FakeTranscriptionSource()
    session = make_session(provider=provider, speech_output=speech, source=source)

    async def scenario():
        await session.initialize()
        await session.start_listening()
        await session.close()

    asyncio.run(scenario())

    assert session.listening is False
    assert source.stop_count == 1
    assert speech.closed is True
    assert provider.closed is True
