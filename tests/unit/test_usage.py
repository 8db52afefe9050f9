from streamfold.message import Message, MessageRole
from streamfold.usage import calculate_conversation_usage, extract_token_usage


def usage_json(inp, out, cached=None, reasoning=None):
    usage = {"input_tokens": inp, "output_tokens": out, "total_tokens": inp + out}
    if cached is not None:
        usage["input_tokens_details"] = {"cached_tokens": cached}
    if reasoning is not None:
        usage["output_tokens_details"] = {"reasoning_tokens": reasoning}
    return {"id": "resp", "usage": usage}


def assistant(response_json):
    return Message(id="a", role=MessageRole.ASSISTANT, response_json=response_json)


class TestExtractTokenUsage:
    def test_full_usage(self):
        usage = extract_token_usage(usage_json(10, 5, cached=4, reasoning=2))
        assert usage.total_tokens == 15
        assert usage.input_tokens_details.cached_tokens == 4
        assert usage.output_tokens_details.reasoning_tokens == 2

    def test_missing_details(self):
        usage = extract_token_usage(usage_json(10, 5))
        assert usage.input_tokens_details is None
        assert usage.output_tokens_details is None

    def test_malformed(self):
        assert extract_token_usage(None) is None
        assert extract_token_usage({}) is None
        assert extract_token_usage({"usage": {"input_tokens": "10"}}) is None
        assert extract_token_usage({"usage": {
            "input_tokens": True, "output_tokens": 1, "total_tokens": 2,
        }}) is None


class TestConversationUsage:
    def test_sums_assistant_messages(self):
        usage = calculate_conversation_usage([
            Message(id="u", role=MessageRole.USER, response_json=usage_json(99, 99)),
            assistant(usage_json(10, 5, cached=3)),
            assistant(usage_json(20, 7, reasoning=4)),
            assistant(None),
        ])
        assert usage.input_tokens == 30
        assert usage.output_tokens == 12
        assert usage.total_tokens == 42
        assert usage.input_tokens_details.cached_tokens == 3
        assert usage.output_tokens_details.reasoning_tokens == 4

    def test_none_without_usage(self):
        assert calculate_conversation_usage([assistant({"id": "x"})]) is None
        assert calculate_conversation_usage([]) is None
