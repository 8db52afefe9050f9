from streamfold.message import Message, MessageRole
from streamfold.state import AccumulatorState, Citation, ReasoningStep


class TestMessage:
    def test_defaults(self):
        message = Message(id="m1", role=MessageRole.USER, content="Hi")
        assert message.reasoning == []
        assert message.attachments == []
        assert message.is_streaming is False
        assert message.timestamp.tzinfo is not None

    def test_role_serialises_as_value(self):
        message = Message(id="m1", role=MessageRole.ASSISTANT)
        assert message.model_dump()["role"] == "assistant"

    def test_json_round_trip(self):
        message = Message(
            id="m1",
            role=MessageRole.ASSISTANT,
            reasoning=[ReasoningStep(id="rs_1_0", content="x")],
        )
        restored = Message.model_validate_json(message.model_dump_json())
        assert restored == message


class TestApplyState:
    def test_copies_snapshot(self):
        message = Message(id="m1", role=MessageRole.ASSISTANT, is_streaming=True)
        state = AccumulatorState(
            content="Hello",
            reasoning_steps=(ReasoningStep(id="r", content="t"),),
            citations=(Citation(url="u", title="t", start_index=0, end_index=1),),
            is_truncated=True,
            truncation_reason="max_output_tokens",
        )
        shown = message.apply_state(state)
        assert shown.content == "Hello"
        assert [s.id for s in shown.reasoning] == ["r"]
        assert shown.citations[0].url == "u"
        assert shown.is_truncated is True
        assert shown.truncation_reason == "max_output_tokens"
        assert shown.is_streaming is True
        assert message.content == ""

    def test_keeps_response_json_until_one_arrives(self):
        message = Message(
            id="m1", role=MessageRole.ASSISTANT, response_json={"id": "old"},
        )
        assert message.apply_state(AccumulatorState()).response_json == {"id": "old"}
        updated = message.apply_state(AccumulatorState(response_json={"id": "new"}))
        assert updated.response_json == {"id": "new"}
