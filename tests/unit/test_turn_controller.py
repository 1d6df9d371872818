"""Unit tests for the turn controller."""
import asyncio
from unittest.mock import AsyncMock

import pytest

from app.services.agent.agent import AgentService
from app.services.agent.constants import (
    ERROR_MESSAGE,
    FALLBACK_REPLY,
    LISTEN_PROMPT,
    NOT_CONFIGURED_MESSAGE,
    TRANSFER_TRIGGER_PHRASE,
    WELCOME_MESSAGE,
)
from app.services.call_session.controller import TurnController
from app.services.call_session.models import RecordingState, TurnRole, VoiceEvent
from app.services.call_session.stages import TurnKind, classify
from app.services.recording.orchestrator import RecordingOrchestrator
from conftest import completion, parse_twiml


class TestClassify:
    """Test webhook classification precedence."""

    def test_speech_wins(self):
        """Test speech takes precedence over other fields."""
        event = VoiceEvent(call_sid="CA1", speech_result="hello", dial_call_status="busy")
        assert classify(event) is TurnKind.SPEECH

    def test_blank_speech_is_not_speech(self):
        """Test whitespace-only speech is ignored."""
        assert classify(VoiceEvent(call_sid="CA1", speech_result="   ")) is TurnKind.INITIAL

    def test_initial(self):
        """Test a bare webhook is an initial call."""
        assert classify(VoiceEvent(call_sid="CA1", call_status="ringing")) is TurnKind.INITIAL
        assert classify(VoiceEvent(call_sid="CA1", call_status="in-progress")) is TurnKind.INITIAL

    def test_continuation(self):
        """Test digits or dial status mean continuation."""
        assert classify(VoiceEvent(call_sid="CA1", digits="1")) is TurnKind.CONTINUATION
        assert classify(VoiceEvent(call_sid="CA1", dial_call_status="completed")) is TurnKind.CONTINUATION


class TestInitialCall:
    """Test the welcome sequence."""

    @pytest.mark.asyncio
    async def test_new_call_gets_welcome_then_listen(self, controller, store):
        """Test the welcome sequence and welcome flag."""
        root = parse_twiml(await controller.handle(VoiceEvent(call_sid="CA1")))

        assert [child.tag for child in root] == ["Say", "Pause", "Gather", "Say"]
        assert root[0].text == WELCOME_MESSAGE
        assert root.find("Gather/Say").text == LISTEN_PROMPT
        session = await store.get("CA1")
        assert session.welcome_played is True

    @pytest.mark.asyncio
    async def test_welcome_primes_recording(self, controller, call_control, store):
        """Test the welcome starts recording."""
        await controller.handle(VoiceEvent(call_sid="CA1"))

        call_control.start_recording.assert_awaited_once_with("CA1")
        assert await store.recording_state("CA1") == RecordingState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_recording_failure_does_not_change_welcome(self, controller, call_control, composer):
        """Test a recording failure leaves the welcome unchanged."""
        call_control.start_recording.side_effect = RuntimeError("not eligible for recording")

        twiml = await controller.handle(VoiceEvent(call_sid="CA1"))

        assert twiml == composer.welcome()

    @pytest.mark.asyncio
    async def test_stalled_recording_does_not_hold_welcome(
        self, store, knowledge_loader, agent_service, composer, call_control, sleep
    ):
        """Test welcome is answered while a stalled first recording attempt finishes later."""
        release = asyncio.Event()

        async def stalled_start(call_sid):
            await release.wait()
            return "RE123"

        call_control.start_recording.side_effect = stalled_start
        recorder = RecordingOrchestrator(
            call_control, store=store, first_attempt_timeout=0.05, sleep=sleep
        )
        controller = TurnController(store, knowledge_loader, agent_service, composer, recorder)

        twiml = await asyncio.wait_for(controller.handle(VoiceEvent(call_sid="CA1")), timeout=2)

        assert twiml == composer.welcome()
        assert recorder.is_tracking("CA1") is True

        release.set()
        await recorder.drain()

        assert call_control.start_recording.await_count == 1
        assert recorder.is_tracking("CA1") is False
        assert await store.recording_state("CA1") == RecordingState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_recording_skipped_when_not_configured(self, controller, call_control):
        """Test recording is skipped without Twilio credentials."""
        call_control.is_configured = False

        await controller.handle(VoiceEvent(call_sid="CA1"))

        call_control.start_recording.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_works_without_recorder(self, store, knowledge_loader, agent_service, composer):
        """Test the welcome works with no recorder."""
        controller = TurnController(store, knowledge_loader, agent_service, composer)

        assert await controller.handle(VoiceEvent(call_sid="CA1")) == composer.welcome()


class TestContinuation:
    """Test re-prompting without the welcome."""

    @pytest.mark.asyncio
    async def test_continuation_reprompts(self, controller, composer, call_control):
        """Test continuation reprompts without welcome or recording."""
        twiml = await controller.handle(VoiceEvent(call_sid="CA1", dial_call_status="completed"))

        assert twiml == composer.reprompt()
        assert WELCOME_MESSAGE not in twiml
        call_control.start_recording.assert_not_awaited()


class TestSpeechTurn:
    """Test AI replies, history and transfers."""

    @pytest.mark.asyncio
    async def test_reply_spoken_and_listen_again(self, controller, composer):
        """Test the reply is spoken followed by a listen."""
        twiml = await controller.handle(VoiceEvent(call_sid="CA1", speech_result="What are my points?"))

        assert twiml == composer.continue_conversation("You have 120 points on your account.")

    @pytest.mark.asyncio
    async def test_exchange_appended_to_history(self, controller, store):
        """Test the exchange is stored."""
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="What are my points?"))

        history = await store.history("CA1")
        assert [(t.role, t.content) for t in history] == [
            (TurnRole.USER, "What are my points?"),
            (TurnRole.ASSISTANT, "You have 120 points on your account."),
        ]

    @pytest.mark.asyncio
    async def test_prior_turns_sent_to_model(self, controller, mock_openai):
        """Test prior turns reach the model."""
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Hi"))
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="What are my points?"))

        messages = mock_openai.chat.completions.create.await_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[1]["content"] == "Hi"
        assert messages[-1]["content"] == "What are my points?"

    @pytest.mark.asyncio
    async def test_knowledge_loaded_once_across_calls(self, controller, knowledge_loader):
        """Test knowledge loads once across calls."""
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Hi"))
        await controller.handle(VoiceEvent(call_sid="CA2", speech_result="Hello"))
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Points?"))

        knowledge_loader._load.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_history_even_and_capped(self, controller, store):
        """Test history stays even and capped over many turns."""
        for i in range(11):
            await controller.handle(VoiceEvent(call_sid="CA1", speech_result=f"question {i}"))
            assert len(await store.history("CA1")) % 2 == 0

        history = await store.history("CA1")
        assert len(history) == 20
        assert history[0].content == "question 1"

    @pytest.mark.asyncio
    async def test_different_call_starts_fresh(self, controller, store, mock_openai):
        """Test a call switch starts a fresh conversation."""
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Hi"))
        await controller.handle(VoiceEvent(call_sid="CA2", speech_result="Hello"))
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Points?"))

        messages = mock_openai.chat.completions.create.await_args.kwargs["messages"]
        assert [m["role"] for m in messages] == ["system", "user"]
        assert len(await store.history("CA1")) == 2

    @pytest.mark.asyncio
    async def test_ai_failure_speaks_fallback_and_records_turn(self, controller, mock_openai, store, composer):
        """Test an AI failure speaks and stores the fallback."""
        mock_openai.chat.completions.create.side_effect = TimeoutError("upstream timeout")

        twiml = await controller.handle(VoiceEvent(call_sid="CA1", speech_result="What are my points?"))

        assert twiml == composer.continue_conversation(FALLBACK_REPLY)
        history = await store.history("CA1")
        assert [t.content for t in history] == ["What are my points?", FALLBACK_REPLY]

    @pytest.mark.asyncio
    async def test_transfer_phrase_bridges_call(self, controller, mock_openai):
        """Test the transfer phrase dials the service team."""
        mock_openai.chat.completions.create.return_value = completion(
            f"Sure. {TRANSFER_TRIGGER_PHRASE}."
        )

        root = parse_twiml(await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Get me a human")))

        assert root.find("Dial").text == "+18655516860"
        assert root.find("Gather") is None

    @pytest.mark.asyncio
    async def test_speech_turn_does_not_start_recording(self, controller, call_control):
        """Test speech turns never start recording."""
        await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Hi"))

        call_control.start_recording.assert_not_awaited()


class TestErrorHandling:
    """Test configuration and unexpected failures."""

    @pytest.mark.asyncio
    async def test_missing_api_key(self, store, knowledge_loader, composer, recorder):
        """Test a missing API key speaks the not-configured message."""
        controller = TurnController(store, knowledge_loader, AgentService(), composer, recorder)

        twiml = await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Hi"))

        assert twiml == composer.say(NOT_CONFIGURED_MESSAGE)
        assert await store.history("CA1") == []

    @pytest.mark.asyncio
    async def test_unexpected_error_speaks_generic_message(self, controller, store, composer, monkeypatch):
        """Test an unexpected error speaks the generic message."""
        monkeypatch.setattr(store, "append_exchange", AsyncMock(side_effect=KeyError("boom")))

        twiml = await controller.handle(VoiceEvent(call_sid="CA1", speech_result="Hi"))

        assert twiml == composer.say(ERROR_MESSAGE)


class TestStartRecordingAndContinue:
    """Test the delayed-recording entry path."""

    @pytest.mark.asyncio
    async def test_starts_recording_and_listens(self, controller, call_control, composer):
        """Test recording starts and the caller is prompted."""
        twiml = await controller.start_recording_and_continue(VoiceEvent(call_sid="CA1"))

        call_control.start_recording.assert_awaited_once_with("CA1")
        assert twiml == composer.listen_with_prompt()
        assert WELCOME_MESSAGE not in twiml

    @pytest.mark.asyncio
    async def test_already_recording_call_not_restarted(self, controller, call_control):
        """Test a recorded call is not started twice."""
        await controller.handle(VoiceEvent(call_sid="CA1"))
        await controller.start_recording_and_continue(VoiceEvent(call_sid="CA1"))

        assert call_control.start_recording.await_count == 1

    @pytest.mark.asyncio
    async def test_recording_failure_still_listens(self, controller, call_control, composer, recorder):
        """Test retries run out and the caller is still prompted."""
        call_control.start_recording.side_effect = ConnectionError("reset")

        twiml = await controller.start_recording_and_continue(VoiceEvent(call_sid="CA1"))
        await recorder.drain()

        assert twiml == composer.listen_with_prompt()
        assert call_control.start_recording.await_count == 3
