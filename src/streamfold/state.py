from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_serializer


class ToolKind(Enum):
    FUNCTION = "function"
    WEB_SEARCH = "web_search"
    CODE_INTERPRETER = "code_interpreter"
    MCP = "mcp"
    MCP_APPROVAL = "mcp_approval"


IN_FLIGHT_STATUSES = ("in_progress", "searching", "interpreting")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ReasoningStep(_Frozen):
    id: str
    content: str = ""


class ToolCall(_Frozen):
    """One tool invocation within a turn.

    ``kind`` is fixed at creation; every other field accretes as events
    for the call arrive.
    """

    id: str
    kind: ToolKind
    name: str
    arguments: str = ""
    status: str | None = None
    result: str | None = None
    query: str | None = None
    action_type: str | None = None
    code: str | None = None
    container_id: str | None = None
    output: str | None = None
    server_label: str | None = None
    approval_request_id: str | None = None

    @field_serializer("kind")
    def serialize_kind(self, kind: ToolKind, _info) -> str:
        return kind.value


class Citation(_Frozen):
    url: str
    title: str
    start_index: int
    end_index: int


class FileCitation(_Frozen):
    file_id: str
    filename: str
    index: int


class AccumulatorState(_Frozen):
    """Everything accumulated from the events of a single turn.

    Instances are never mutated. The reducer returns either the same
    instance (nothing changed) or a copy with the touched fields
    replaced, so observers can detect change by identity.
    """

    content: str = ""
    reasoning_steps: tuple[ReasoningStep, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    citations: tuple[Citation, ...] = ()
    file_citations: tuple[FileCitation, ...] = ()
    response_id: str | None = None
    response_json: dict[str, Any] | None = None
    is_truncated: bool = False
    truncation_reason: str | None = None
    # item family -> synthetic id currently used for events without an id
    synthetic_ids: dict[str, str] = {}

    def replace(self, **changes) -> "AccumulatorState":
        return self.model_copy(update=changes)


def create_initial() -> AccumulatorState:
    """Return an empty state for the start of a turn."""
    return AccumulatorState()
