"""End-to-end turns folded through process_stream."""

import pytest

from streamfold.accumulator import process_stream
from streamfold.state import ToolKind

from tests.conftest import (
    completed,
    item_added,
    item_done,
    message_with_annotations,
    reasoning_delta,
    text_delta,
    url_citation,
)


@pytest.mark.asyncio
async def test_simple_turn(ids):
    state = await process_stream([
        {"type": "output_text.delta", "delta": "Hi"},
        {"type": "completed", "response": {"id": "r1", "status": "completed"}},
    ], ids=ids)
    assert state.content == "Hi"
    assert state.response_id == "r1"


@pytest.mark.asyncio
async def test_code_execution(ids):
    state = await process_stream([
        item_added({"type": "code_interpreter_call", "id": "ci_1",
                    "status": "in_progress"}),
        {"type": "response.code_interpreter_call.code.delta",
         "item_id": "ci_1", "delta": "print("},
        {"type": "response.code_interpreter_call.code.delta",
         "item_id": "ci_1", "delta": "1)"},
        {"type": "response.code_interpreter_call.output", "item_id": "ci_1",
         "output": [{"type": "logs", "logs": "1"}]},
        {"type": "response.code_interpreter_call.completed", "item_id": "ci_1"},
    ], ids=ids)
    (call,) = state.tool_calls
    assert call.code == "print(1)"
    assert call.output == "1"
    assert call.status == "completed"


@pytest.mark.asyncio
async def test_truncated_response(ids):
    state = await process_stream([
        text_delta("Once upon a"),
        {"type": "response.incomplete", "response": {
            "id": "resp_1",
            "status": "incomplete",
            "incomplete_details": {"reason": "max_output_tokens"},
        }},
    ], ids=ids)
    assert state.is_truncated is True
    assert state.truncation_reason == "max_output_tokens"
    assert state.content == "Once upon a"


@pytest.mark.asyncio
async def test_research_turn(ids):
    """Reasoning, a web search, an MCP call and cited text in one turn."""
    state = await process_stream([
        {"type": "response.created", "response": {"id": "resp_9"}},
        reasoning_delta("Search first.", "rs_9", 0),
        reasoning_delta("Then check docs.", "rs_9", 1),
        item_done({"type": "reasoning", "id": "rs_9", "summary": [
            {"type": "summary_text", "text": "Search first."},
            {"type": "summary_text", "text": "Then check the docs."},
        ]}),
        item_added({"type": "web_search_call", "id": "ws_9", "status": "in_progress"}),
        {"type": "response.web_search_call.searching", "item_id": "ws_9"},
        item_done({"type": "web_search_call", "id": "ws_9", "status": "completed",
                   "action": {"type": "open_page", "query": "python release"}}),
        {"type": "response.mcp_call_arguments.delta", "item_id": "mcp_9",
         "delta": '{"topic": "asyncio"}'},
        item_done({"type": "mcp_call", "id": "mcp_9", "server_label": "docs",
                   "name": "lookup", "status": "completed", "output": "ok"}),
        text_delta("Python 3.14 is out."),
        completed("resp_9", output=[message_with_annotations(
            url_citation("https://python.example/3.14", "What's new"),
            url_citation("https://python.example/3.14", "Duplicate"),
        )]),
    ], ids=ids)

    assert [(s.id, s.content) for s in state.reasoning_steps] == [
        ("rs_9_0", "Search first."),
        ("rs_9_1", "Then check the docs."),
    ]
    web, mcp = state.tool_calls
    assert (web.kind, web.status, web.action_type) == (
        ToolKind.WEB_SEARCH, "completed", "open_page",
    )
    assert (mcp.kind, mcp.name, mcp.arguments, mcp.result) == (
        ToolKind.MCP, "docs/lookup", '{"topic": "asyncio"}', "ok",
    )
    assert [c.title for c in state.citations] == ["What's new"]
    assert state.response_id == "resp_9"
    assert state.synthetic_ids == {}
