"""Streaming events emitted by the responses API during a turn.

The upstream service sends loosely typed dicts keyed by ``type``.
:func:`parse_event` normalises them into the closed set of event classes
below, so the reducer never has to branch on alternate spellings.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StreamEvent:
    """Base for all canonical streaming events."""


@dataclass(frozen=True)
class TextDelta(StreamEvent):
    """A fragment of assistant output text."""

    delta: str = ""


@dataclass(frozen=True)
class ReasoningDelta(StreamEvent):
    """A fragment of one reasoning summary."""

    delta: str = ""
    item_id: str | None = None
    summary_index: int = 0


@dataclass(frozen=True)
class OutputItem(StreamEvent):
    """An ``output_item.added`` (``done=False``) or ``.done`` notification."""

    item: dict = field(default_factory=dict)
    done: bool = False


@dataclass(frozen=True)
class FunctionArgumentsDelta(StreamEvent):
    delta: str = ""
    item_id: str | None = None
    name: str | None = None


@dataclass(frozen=True)
class McpArgumentsDelta(StreamEvent):
    delta: str = ""
    item_id: str | None = None


@dataclass(frozen=True)
class McpArgumentsDone(StreamEvent):
    arguments: str = ""
    item_id: str | None = None


@dataclass(frozen=True)
class ToolStatusEvent(StreamEvent):
    """Status-only transition for a web search, code or MCP call.

    ``kind`` is one of ``"web_search"``, ``"code_interpreter"``, ``"mcp"``.
    """

    kind: str = ""
    status: str = ""
    item_id: str | None = None


@dataclass(frozen=True)
class CodeDelta(StreamEvent):
    delta: str = ""
    item_id: str | None = None


@dataclass(frozen=True)
class CodeDone(StreamEvent):
    code: str = ""
    item_id: str | None = None


@dataclass(frozen=True)
class CodeOutputs(StreamEvent):
    """Execution outputs of a code interpreter call."""

    outputs: tuple = ()
    item_id: str | None = None


@dataclass(frozen=True)
class ResponseTerminal(StreamEvent):
    """``completed`` or ``incomplete``: the final response payload."""

    response: dict | None = None
    incomplete: bool = False


@dataclass(frozen=True)
class UnknownEvent(StreamEvent):
    """Any event type the client does not understand yet."""

    type: str = ""


_STATUS_EVENTS = {
    "web_search_call.in_progress": ("web_search", "in_progress"),
    "web_search_call.searching": ("web_search", "searching"),
    "web_search_call.completed": ("web_search", "completed"),
    "code_interpreter_call.in_progress": ("code_interpreter", "in_progress"),
    "code_interpreter_call.interpreting": ("code_interpreter", "interpreting"),
    "code_interpreter_call.completed": ("code_interpreter", "completed"),
    "mcp_call.in_progress": ("mcp", "in_progress"),
    "mcp_call.completed": ("mcp", "completed"),
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _as_dict(raw: Any) -> dict:
    if isinstance(raw, dict):
        return raw
    if hasattr(raw, "model_dump"):
        return raw.model_dump()
    return {}


def event_type(raw: Any) -> str:
    """Return the raw ``type`` string of an event, or ``""``."""
    return _str(_as_dict(raw).get("type"))


def parse_event(raw: Any) -> StreamEvent:
    """Normalise a raw event into its canonical class.

    Accepts a plain dict or any object exposing ``model_dump()`` (such as
    the events yielded by the ``openai`` SDK). The ``response.`` prefix is
    optional. Unrecognised types become :class:`UnknownEvent`. Nested
    payloads are deep-copied, so later changes to ``raw`` never reach a
    reduced state.
    """
    if isinstance(raw, StreamEvent):
        return raw
    data = _as_dict(raw)
    full_type = _str(data.get("type"))
    kind = full_type.removeprefix("response.")
    item_id = _opt_str(data.get("item_id"))

    if kind == "output_text.delta":
        return TextDelta(delta=_str(data.get("delta")))

    if kind in ("reasoning_summary_text.delta", "reasoning.delta"):
        summary_index = data.get("summary_index")
        if not isinstance(summary_index, int) or isinstance(summary_index, bool):
            summary_index = 0
        return ReasoningDelta(
            delta=_str(data.get("delta")),
            item_id=item_id,
            summary_index=summary_index,
        )

    if kind in ("output_item.added", "output_item.done"):
        item = data.get("item")
        return OutputItem(
            item=copy.deepcopy(item) if isinstance(item, dict) else {},
            done=kind.endswith(".done"),
        )

    if kind == "function_call_arguments.delta":
        return FunctionArgumentsDelta(
            delta=_str(data.get("delta")),
            item_id=item_id,
            name=_opt_str(data.get("name")),
        )

    if kind == "mcp_call_arguments.delta":
        return McpArgumentsDelta(delta=_str(data.get("delta")), item_id=item_id)

    if kind == "mcp_call_arguments.done":
        return McpArgumentsDone(
            arguments=_str(data.get("arguments")), item_id=item_id,
        )

    if kind in _STATUS_EVENTS:
        tool_kind, status = _STATUS_EVENTS[kind]
        return ToolStatusEvent(kind=tool_kind, status=status, item_id=item_id)

    if kind in (
        "code_interpreter_call.code.delta",
        "code_interpreter_call_code.delta",
    ):
        return CodeDelta(delta=_str(data.get("delta")), item_id=item_id)

    if kind in (
        "code_interpreter_call.code.done",
        "code_interpreter_call_code.done",
    ):
        return CodeDone(code=_str(data.get("code")), item_id=item_id)

    if kind in (
        "code_interpreter_call.output",
        "code_interpreter_call_outputs.done",
    ):
        outputs = data.get("outputs")
        if outputs is None:
            outputs = data.get("output")
        return CodeOutputs(
            outputs=tuple(copy.deepcopy(outputs)) if isinstance(outputs, list) else (),
            item_id=item_id,
        )

    if kind in ("completed", "incomplete"):
        response = data.get("response")
        return ResponseTerminal(
            response=copy.deepcopy(response) if isinstance(response, dict) else None,
            incomplete=kind == "incomplete",
        )

    return UnknownEvent(type=full_type)
