"""Per-kind tool-call state machines.

Every kind shares one lifecycle: created, zero or more in-flight
updates, terminal status. What differs is the status vocabulary and
which fields accrete:

================  ====================================  ==========================
kind              statuses                              fields
================  ====================================  ==========================
function          (none)                                name, arguments
web_search        in_progress, searching, completed     query, action_type
code_interpreter  in_progress, interpreting, completed  code, container_id, output
mcp               in_progress, completed                name, arguments, result
mcp_approval      pending_approval, approved, denied    server_label, arguments
================  ====================================  ==========================

All handlers return the input state unchanged when the event does not
change anything observable.
"""

from __future__ import annotations

import json
from collections.abc import Callable

from streamfold.events import (
    CodeDelta,
    CodeDone,
    CodeOutputs,
    FunctionArgumentsDelta,
    McpArgumentsDelta,
    McpArgumentsDone,
    ToolStatusEvent,
)
from streamfold.identity import (
    IdGenerators,
    find_index,
    lookup_id,
    replace_at,
    resolve_id,
)
from streamfold.state import (
    IN_FLIGHT_STATUSES,
    AccumulatorState,
    ToolCall,
    ToolKind,
)

MCP_PLACEHOLDER_NAME = "mcp_tool"
UNKNOWN_FUNCTION_NAME = "unknown"


def _upsert(
    state: AccumulatorState,
    call_id: str,
    create: Callable[[], ToolCall],
    update: Callable[[ToolCall], ToolCall],
) -> AccumulatorState:
    index = find_index(state.tool_calls, call_id)
    if index < 0:
        return state.replace(tool_calls=state.tool_calls + (create(),))
    current = state.tool_calls[index]
    updated = update(current)
    if updated == current:
        return state
    return state.replace(tool_calls=replace_at(state.tool_calls, index, updated))


def _find(state: AccumulatorState, call_id: str | None) -> ToolCall | None:
    if call_id is None:
        return None
    index = find_index(state.tool_calls, call_id)
    return state.tool_calls[index] if index >= 0 else None


def _patch(call: ToolCall, **changes) -> ToolCall:
    changes = {k: v for k, v in changes.items() if v}
    if not changes:
        return call
    return call.model_copy(update=changes)


def _log_output(outputs) -> str:
    """Join the ``logs`` entries of a code interpreter output list.

    Other output kinds (images, files) are not represented yet.
    """
    if not isinstance(outputs, (list, tuple)):
        return ""
    logs = []
    for entry in outputs:
        if isinstance(entry, dict) and entry.get("type") == "logs":
            value = entry.get("logs")
            logs.append(value if isinstance(value, str) else "")
    return "\n".join(logs)


def _opt_str(value) -> str | None:
    return value if isinstance(value, str) and value else None


# ----------------------------------------------------------------------
# Delta events
# ----------------------------------------------------------------------

def _apply_delta(
    state: AccumulatorState,
    kind: ToolKind,
    item_id: str | None,
    delta: str,
    field: str,
    ids: IdGenerators,
    create: Callable[[str], ToolCall],
    extra: Callable[[ToolCall], dict] | None = None,
) -> AccumulatorState:
    known = _find(state, lookup_id(state, kind.value, item_id))
    if delta == "" and known is not None:
        return state
    call_id, state = resolve_id(state, kind.value, item_id, ids)

    def update(call: ToolCall) -> ToolCall:
        changes = {field: (getattr(call, field) or "") + delta}
        if extra is not None:
            changes.update(extra(call))
        return call.model_copy(update=changes)

    return _upsert(state, call_id, lambda: create(call_id), update)


def apply_function_delta(
    state: AccumulatorState, event: FunctionArgumentsDelta, ids: IdGenerators,
) -> AccumulatorState:
    def extra(call: ToolCall) -> dict:
        if event.name and call.name == UNKNOWN_FUNCTION_NAME:
            return {"name": event.name}
        return {}

    return _apply_delta(
        state, ToolKind.FUNCTION, event.item_id, event.delta, "arguments", ids,
        lambda call_id: ToolCall(
            id=call_id,
            kind=ToolKind.FUNCTION,
            name=event.name or UNKNOWN_FUNCTION_NAME,
            arguments=event.delta,
        ),
        extra,
    )


def apply_mcp_arguments_delta(
    state: AccumulatorState, event: McpArgumentsDelta, ids: IdGenerators,
) -> AccumulatorState:
    return _apply_delta(
        state, ToolKind.MCP, event.item_id, event.delta, "arguments", ids,
        lambda call_id: ToolCall(
            id=call_id,
            kind=ToolKind.MCP,
            name=MCP_PLACEHOLDER_NAME,
            arguments=event.delta,
            status="in_progress",
        ),
    )


def apply_code_delta(
    state: AccumulatorState, event: CodeDelta, ids: IdGenerators,
) -> AccumulatorState:
    return _apply_delta(
        state, ToolKind.CODE_INTERPRETER, event.item_id, event.delta, "code",
        ids,
        lambda call_id: ToolCall(
            id=call_id,
            kind=ToolKind.CODE_INTERPRETER,
            name="code_interpreter",
            status="in_progress",
            code=event.delta,
        ),
    )


def apply_mcp_arguments_done(
    state: AccumulatorState, event: McpArgumentsDone, ids: IdGenerators,
) -> AccumulatorState:
    call_id, state = resolve_id(state, ToolKind.MCP.value, event.item_id, ids)
    return _upsert(
        state,
        call_id,
        lambda: ToolCall(
            id=call_id,
            kind=ToolKind.MCP,
            name=MCP_PLACEHOLDER_NAME,
            arguments=event.arguments,
            status="in_progress",
        ),
        lambda call: _patch(call, arguments=event.arguments),
    )


def apply_code_done(
    state: AccumulatorState, event: CodeDone, ids: IdGenerators,
) -> AccumulatorState:
    call_id, state = resolve_id(
        state, ToolKind.CODE_INTERPRETER.value, event.item_id, ids,
    )
    return _upsert(
        state,
        call_id,
        lambda: ToolCall(
            id=call_id,
            kind=ToolKind.CODE_INTERPRETER,
            name="code_interpreter",
            status="in_progress",
            code=event.code,
        ),
        lambda call: call.model_copy(update={"code": event.code}),
    )


def apply_code_outputs(
    state: AccumulatorState, event: CodeOutputs,
) -> AccumulatorState:
    call_id = lookup_id(state, ToolKind.CODE_INTERPRETER.value, event.item_id)
    call = _find(state, call_id)
    if call is None:
        return state
    return _upsert(
        state,
        call.id,
        lambda: call,
        lambda c: c.model_copy(update={"output": _log_output(event.outputs)}),
    )


def apply_status(
    state: AccumulatorState, event: ToolStatusEvent,
) -> AccumulatorState:
    """Status-only transition; unknown ids are ignored."""
    call = _find(state, lookup_id(state, event.kind, event.item_id))
    if call is None or call.kind.value != event.kind:
        return state
    return _upsert(
        state,
        call.id,
        lambda: call,
        lambda c: c.model_copy(update={"status": event.status}),
    )


# ----------------------------------------------------------------------
# output_item.added / output_item.done
# ----------------------------------------------------------------------

def _web_search_item(
    state: AccumulatorState, item: dict, ids: IdGenerators, fresh: bool,
) -> AccumulatorState:
    call_id, state = resolve_id(
        state, ToolKind.WEB_SEARCH.value, _opt_str(item.get("id")), ids, fresh,
    )
    status = _opt_str(item.get("status"))
    action = item.get("action") if isinstance(item.get("action"), dict) else {}
    query = _opt_str(action.get("query"))
    action_type = _opt_str(action.get("type"))
    arguments = json.dumps({"query": query}) if query else None
    return _upsert(
        state,
        call_id,
        lambda: ToolCall(
            id=call_id,
            kind=ToolKind.WEB_SEARCH,
            name="web_search",
            arguments=arguments or "",
            status=status or "in_progress",
            query=query,
            action_type=action_type,
        ),
        lambda call: _patch(
            call,
            status=status,
            query=query,
            arguments=arguments,
            action_type=action_type,
        ),
    )


def _code_interpreter_item(
    state: AccumulatorState, item: dict, ids: IdGenerators, fresh: bool,
) -> AccumulatorState:
    call_id, state = resolve_id(
        state, ToolKind.CODE_INTERPRETER.value, _opt_str(item.get("id")),
        ids, fresh,
    )
    status = _opt_str(item.get("status"))
    code = _opt_str(item.get("code"))
    container_id = _opt_str(item.get("container_id"))
    outputs = item.get("outputs")
    if outputs is None:
        outputs = item.get("output")
    output = _log_output(outputs) or None
    return _upsert(
        state,
        call_id,
        lambda: ToolCall(
            id=call_id,
            kind=ToolKind.CODE_INTERPRETER,
            name="code_interpreter",
            status=status or "in_progress",
            code=code or "",
            container_id=container_id,
            output=output,
        ),
        lambda call: _patch(
            call,
            status=status,
            code=code,
            container_id=container_id,
            output=output,
        ),
    )


def _mcp_result(item: dict) -> str | None:
    error = _opt_str(item.get("error"))
    if error:
        return f"Error: {error}"
    return _opt_str(item.get("output"))


def _mcp_display_name(item: dict) -> str:
    tool_name = _opt_str(item.get("name")) or MCP_PLACEHOLDER_NAME
    server_label = _opt_str(item.get("server_label"))
    return f"{server_label}/{tool_name}" if server_label else tool_name


def _mcp_call_item(
    state: AccumulatorState, item: dict, ids: IdGenerators, fresh: bool,
) -> AccumulatorState:
    call_id, state = resolve_id(
        state, ToolKind.MCP.value, _opt_str(item.get("id")), ids, fresh,
    )
    name = _mcp_display_name(item)
    status = _opt_str(item.get("status"))
    arguments = _opt_str(item.get("arguments"))
    result = _mcp_result(item)
    server_label = _opt_str(item.get("server_label"))
    return _upsert(
        state,
        call_id,
        lambda: ToolCall(
            id=call_id,
            kind=ToolKind.MCP,
            name=name,
            arguments=arguments or "",
            status=status or "in_progress",
            result=result,
            server_label=server_label,
        ),
        lambda call: _patch(
            call,
            name=name if name != MCP_PLACEHOLDER_NAME else None,
            status=status,
            arguments=arguments,
            result=result,
            server_label=server_label,
        ),
    )


def _mcp_approval_item(
    state: AccumulatorState, item: dict, ids: IdGenerators, fresh: bool,
) -> AccumulatorState:
    call_id, state = resolve_id(
        state, ToolKind.MCP_APPROVAL.value, _opt_str(item.get("id")), ids, fresh,
    )
    if find_index(state.tool_calls, call_id) >= 0:
        # added and done both describe the same request
        return state
    return state.replace(tool_calls=state.tool_calls + (ToolCall(
        id=call_id,
        kind=ToolKind.MCP_APPROVAL,
        name=_mcp_display_name(item),
        arguments=_opt_str(item.get("arguments")) or "",
        status="pending_approval",
        server_label=_opt_str(item.get("server_label")),
        approval_request_id=call_id,
    ),))


def _function_call_item(
    state: AccumulatorState, item: dict, ids: IdGenerators, fresh: bool,
) -> AccumulatorState:
    call_id, state = resolve_id(
        state, ToolKind.FUNCTION.value, _opt_str(item.get("id")), ids, fresh,
    )
    name = _opt_str(item.get("name"))
    arguments = _opt_str(item.get("arguments"))
    status = _opt_str(item.get("status"))
    return _upsert(
        state,
        call_id,
        lambda: ToolCall(
            id=call_id,
            kind=ToolKind.FUNCTION,
            name=name or UNKNOWN_FUNCTION_NAME,
            arguments=arguments or "",
            status=status,
        ),
        lambda call: _patch(
            call, name=name, arguments=arguments, status=status,
        ),
    )


OUTPUT_ITEM_HANDLERS = {
    "function_call": _function_call_item,
    "web_search_call": _web_search_item,
    "code_interpreter_call": _code_interpreter_item,
    "mcp_call": _mcp_call_item,
    "mcp_approval_request": _mcp_approval_item,
}


def apply_output_item(
    state: AccumulatorState, item: dict, ids: IdGenerators, fresh: bool = False,
) -> AccumulatorState:
    """Create or update the call an output item describes.

    ``fresh`` marks an ``output_item.added`` event, which opens a new item.
    """
    handler = OUTPUT_ITEM_HANDLERS.get(item.get("type"))
    if handler is None:
        return state
    return handler(state, item, ids, fresh)


# ----------------------------------------------------------------------
# Caller-driven transitions
# ----------------------------------------------------------------------

def set_approval_status(
    state: AccumulatorState, approval_request_id: str, approve: bool,
) -> AccumulatorState:
    """Resolve a pending approval request to ``approved`` or ``denied``."""
    index = -1
    for i, call in enumerate(state.tool_calls):
        if call.approval_request_id == approval_request_id:
            index = i
            break
    if index < 0:
        return state
    status = "approved" if approve else "denied"
    call = state.tool_calls[index]
    if call.status == status:
        return state
    return state.replace(tool_calls=replace_at(
        state.tool_calls, index, call.model_copy(update={"status": status}),
    ))


def mark_aborted(state: AccumulatorState) -> AccumulatorState:
    """Move every in-flight call to ``aborted``."""
    if not any(c.status in IN_FLIGHT_STATUSES for c in state.tool_calls):
        return state
    return state.replace(tool_calls=tuple(
        c.model_copy(update={"status": "aborted"})
        if c.status in IN_FLIGHT_STATUSES else c
        for c in state.tool_calls
    ))


def has_pending_approvals(tool_calls) -> bool:
    return any(c.status == "pending_approval" for c in tool_calls)
