"""The streaming response accumulator.

:func:`reduce` folds one event into an :class:`AccumulatorState` and
returns the next state. It is pure: the input state is never mutated,
and when an event changes nothing observable the very same state object
is returned, so callers can skip re-rendering with an identity check::

    state = create_initial()
    async for raw in stream:
        new_state = reduce(state, raw)
        if new_state is not state:
            render(new_state)
        state = new_state
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from typing import Any

from streamfold.citations import extract_citations, merge_citations
from streamfold.events import (
    CodeDelta,
    CodeDone,
    CodeOutputs,
    FunctionArgumentsDelta,
    McpArgumentsDelta,
    McpArgumentsDone,
    OutputItem,
    ReasoningDelta,
    ResponseTerminal,
    StreamEvent,
    TextDelta,
    ToolStatusEvent,
    UnknownEvent,
    parse_event,
)
from streamfold.identity import (
    DEFAULT_ID_GENERATORS,
    REASONING,
    IdGenerators,
    find_index,
    lookup_id,
    reasoning_step_id,
    replace_at,
    resolve_id,
)
from streamfold.state import AccumulatorState, ReasoningStep, create_initial
from streamfold import tool_calls


def _apply_text(state: AccumulatorState, event: TextDelta) -> AccumulatorState:
    if event.delta == "":
        return state
    return state.replace(content=state.content + event.delta)


def _apply_reasoning_delta(
    state: AccumulatorState, event: ReasoningDelta, ids: IdGenerators,
) -> AccumulatorState:
    if event.delta == "":
        known = lookup_id(state, REASONING, event.item_id)
        if known is not None and find_index(
            state.reasoning_steps,
            reasoning_step_id(known, event.summary_index),
        ) >= 0:
            return state

    item_id, state = resolve_id(state, REASONING, event.item_id, ids)
    step_id = reasoning_step_id(item_id, event.summary_index)
    steps = state.reasoning_steps
    index = find_index(steps, step_id)
    if index < 0:
        # an empty first delta still opens the step
        return state.replace(
            reasoning_steps=steps + (ReasoningStep(id=step_id, content=event.delta),),
        )
    step = steps[index]
    return state.replace(reasoning_steps=replace_at(
        steps, index,
        step.model_copy(update={"content": step.content + event.delta}),
    ))


def _apply_reasoning_item(
    state: AccumulatorState, item: dict, ids: IdGenerators,
) -> AccumulatorState:
    """Replace streamed summaries with the server's final text."""
    summary = item.get("summary")
    if not isinstance(summary, list):
        return state
    fragments = [
        (i, s["text"]) for i, s in enumerate(summary)
        if isinstance(s, dict) and s.get("type") == "summary_text"
        and isinstance(s.get("text"), str) and s["text"]
    ]
    if not fragments:
        return state

    explicit_id = item.get("id") if isinstance(item.get("id"), str) else None
    item_id, resolved = resolve_id(state, REASONING, explicit_id or None, ids)
    steps = resolved.reasoning_steps
    for summary_index, text in fragments:
        step_id = reasoning_step_id(item_id, summary_index)
        index = find_index(steps, step_id)
        if index < 0:
            steps = steps + (ReasoningStep(id=step_id, content=text),)
        elif steps[index].content != text:
            steps = replace_at(
                steps, index, steps[index].model_copy(update={"content": text}),
            )
    if steps == state.reasoning_steps:
        return state
    return resolved.replace(reasoning_steps=steps)


def _apply_output_item(
    state: AccumulatorState, event: OutputItem, ids: IdGenerators,
) -> AccumulatorState:
    if event.item.get("type") == "reasoning":
        return _apply_reasoning_item(state, event.item, ids)
    return tool_calls.apply_output_item(
        state, event.item, ids, fresh=not event.done,
    )


def _apply_terminal(
    state: AccumulatorState, event: ResponseTerminal,
) -> AccumulatorState:
    response = event.response
    if response is None:
        return state
    response_id = response.get("id")
    extracted = extract_citations(response)
    changes: dict[str, Any] = {
        "response_id": response_id if isinstance(response_id, str) else None,
        "response_json": response,
        "citations": merge_citations(
            state.citations, extracted.citations, lambda c: c.url,
        ),
        "file_citations": merge_citations(
            state.file_citations, extracted.file_citations, lambda c: c.file_id,
        ),
    }
    if event.incomplete:
        details = response.get("incomplete_details")
        reason = details.get("reason") if isinstance(details, dict) else None
        changes["is_truncated"] = True
        changes["truncation_reason"] = reason if isinstance(reason, str) else None
    if all(getattr(state, k) == v for k, v in changes.items()):
        return state
    return state.replace(**changes)


def reduce(
    state: AccumulatorState,
    event: StreamEvent | dict,
    ids: IdGenerators = DEFAULT_ID_GENERATORS,
) -> AccumulatorState:
    """Apply one streaming event and return the resulting state.

    Args:
        state: State after the previous event of the turn.
        event: A canonical :class:`StreamEvent` or a raw event dict.
        ids: Generators for synthetic ids; pass deterministic ones for
            reproducible replays.

    Returns:
        ``state`` itself when nothing changed, otherwise a new state.
        Unknown event types are never an error.
    """
    event = parse_event(event)

    if isinstance(event, TextDelta):
        return _apply_text(state, event)
    if isinstance(event, ReasoningDelta):
        return _apply_reasoning_delta(state, event, ids)
    if isinstance(event, OutputItem):
        return _apply_output_item(state, event, ids)
    if isinstance(event, FunctionArgumentsDelta):
        return tool_calls.apply_function_delta(state, event, ids)
    if isinstance(event, McpArgumentsDelta):
        return tool_calls.apply_mcp_arguments_delta(state, event, ids)
    if isinstance(event, McpArgumentsDone):
        return tool_calls.apply_mcp_arguments_done(state, event, ids)
    if isinstance(event, ToolStatusEvent):
        return tool_calls.apply_status(state, event)
    if isinstance(event, CodeDelta):
        return tool_calls.apply_code_delta(state, event, ids)
    if isinstance(event, CodeDone):
        return tool_calls.apply_code_done(state, event, ids)
    if isinstance(event, CodeOutputs):
        return tool_calls.apply_code_outputs(state, event)
    if isinstance(event, ResponseTerminal):
        return _apply_terminal(state, event)
    if isinstance(event, UnknownEvent):
        return state
    return state


async def process_stream(
    events: AsyncIterable | Iterable,
    initial: AccumulatorState | None = None,
    ids: IdGenerators = DEFAULT_ID_GENERATORS,
) -> AccumulatorState:
    """Fold a whole event sequence, sync or async, into a final state."""
    state = initial if initial is not None else create_initial()
    if isinstance(events, AsyncIterable):
        async for event in events:
            state = reduce(state, event, ids)
    else:
        for event in events:
            state = reduce(state, event, ids)
    return state
