from __future__ import annotations

import pytest

from promptthread import (
    AssistantMessage,
    ErrorKind,
    SystemMessage,
    ThreadState,
    ToolCall,
    ToolMessage,
    TranscriptError,
    UserMessage,
)
from promptthread.core.messages import message_from_payload
from promptthread.core.observers import END_OF_STREAM, ObserverHub
from promptthread.core.transcript import Transcript

from .fakes import RecordingObserver


def _assistant_with_calls(*ids: str) -> AssistantMessage:
    return AssistantMessage(tool_calls=[ToolCall(id=call_id, name="lookup", arguments="{}") for call_id in ids])


class TestMessages:
    def test_payload_round_trips_nested_tool_calls(self):
        message = _assistant_with_calls("call_1")
        payload = message.to_payload()

        assert payload["tool_calls"][0] == {
            "id": "call_1",
            "type": "function",
            "function": {"name": "lookup", "arguments": "{}"},
        }
        assert message_from_payload(payload) == message

    def test_flat_dump_is_accepted(self):
        message = _assistant_with_calls("call_1")
        assert message_from_payload(message.model_dump()) == message

    def test_structured_arguments_are_dumped_to_json(self):
        parsed = message_from_payload(
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [{"id": "c", "function": {"name": "lookup", "arguments": {"q": 1}}}],
            }
        )
        assert parsed.tool_calls[0].arguments == '{"q":1}'

    def test_unknown_role_is_rejected(self):
        with pytest.raises(TranscriptError) as exc_info:
            message_from_payload({"role": "narrator", "content": "hi"})
        assert exc_info.value.kind == ErrorKind.INVALID_INPUT

    def test_assistant_text_ignores_structured_content(self):
        assert AssistantMessage(content="hi").text == "hi"
        assert AssistantMessage(content=None).text == ""


class TestTranscript:
    def test_append_preserves_order(self):
        transcript = Transcript()
        transcript.append(SystemMessage(content="be brief"))
        transcript.append([{"role": "user", "content": "a"}, UserMessage(content="b")])
        transcript.append({"role": "assistant", "content": "c"})

        assert [message.role for message in transcript] == ["system", "user", "user", "assistant"]
        assert [message.content for message in transcript] == ["be brief", "a", "b", "c"]

    def test_set_messages_replaces_instead_of_appending(self):
        transcript = Transcript([UserMessage(content="old")])
        transcript.set_messages([UserMessage(content="new")])

        assert len(transcript) == 1
        assert transcript.last == UserMessage(content="new")

    def test_snapshot_is_detached(self):
        transcript = Transcript([UserMessage(content="a")])
        snapshot = transcript.snapshot()
        transcript.append(UserMessage(content="b"))

        assert len(snapshot) == 1
        assert isinstance(snapshot, tuple)

    def test_tool_message_must_answer_preceding_assistant(self):
        transcript = Transcript([UserMessage(content="hi"), _assistant_with_calls("call_1", "call_2")])
        transcript.append(ToolMessage(tool_call_id="call_1", content="one"))
        transcript.append(ToolMessage(tool_call_id="call_2", content="two"))

        with pytest.raises(TranscriptError):
            transcript.append(ToolMessage(tool_call_id="call_9", content="stray"))
        assert len(transcript) == 4

    def test_tool_message_after_user_message_is_rejected(self):
        transcript = Transcript([_assistant_with_calls("call_1"), UserMessage(content="interrupt")])

        with pytest.raises(TranscriptError):
            transcript.append(ToolMessage(tool_call_id="call_1", content="late"))

    def test_invalid_batch_leaves_transcript_untouched(self):
        transcript = Transcript([UserMessage(content="hi")])

        with pytest.raises(TranscriptError):
            transcript.set_messages([UserMessage(content="ok"), ToolMessage(tool_call_id="x", content="bad")])
        assert transcript.snapshot() == (UserMessage(content="hi"),)

    def test_every_append_notifies_observers(self):
        observer = RecordingObserver()
        transcript = Transcript(hub=ObserverHub([observer]))
        transcript.append(UserMessage(content="a"))
        transcript.append([UserMessage(content="b"), UserMessage(content="c")])

        assert observer.events == [("messages", 1), ("messages", 3)]


class TestObservers:
    def test_failing_observer_does_not_break_the_hub(self):
        class Broken(RecordingObserver):
            def on_text(self, text: str) -> None:
                raise RuntimeError("boom")

        healthy = RecordingObserver()
        hub = ObserverHub([Broken(), healthy])
        hub.text("hello")

        assert healthy.events == [("text", "hello")]

    def test_detach_stops_notifications(self):
        observer = RecordingObserver()
        hub = ObserverHub([observer])
        hub.detach(observer)
        hub.fragment("x")

        assert observer.events == []
        assert len(hub) == 0

    def test_end_of_stream_is_a_falsy_singleton(self):
        assert not END_OF_STREAM
        assert repr(END_OF_STREAM) == "END_OF_STREAM"
        assert type(END_OF_STREAM)() is END_OF_STREAM


class TestThreadState:
    def test_subscribe_replays_current_value(self):
        state = ThreadState()
        state.on_messages([UserMessage(content="hi")])
        seen = []

        state.subscribe("messages", seen.append)

        assert seen == [(UserMessage(content="hi"),)]

    def test_stream_lifecycle(self):
        state = ThreadState()
        deltas = []
        texts = []
        state.subscribe("delta", deltas.append)
        state.subscribe("text", texts.append)

        state.on_fragment("Hel")
        state.on_text("Hel")
        state.on_fragment("lo")
        state.on_text("Hello")
        state.on_stream_end()

        assert deltas == [None, "Hel", "lo", None]
        assert texts == [None, "", "Hel", "Hello"]
        assert state.streaming is False

    def test_unsubscribe(self):
        state = ThreadState()
        seen = []
        unsubscribe = state.subscribe("text", seen.append)
        unsubscribe()
        state.on_text("ignored")

        assert seen == [None]

    def test_unknown_topic(self):
        with pytest.raises(ValueError):
            ThreadState().subscribe("tokens", print)
