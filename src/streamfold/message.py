from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_serializer

from streamfold.attachments import Attachment
from streamfold.state import (
    AccumulatorState,
    Citation,
    FileCitation,
    ReasoningStep,
    ToolCall,
)


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    id: str
    role: MessageRole
    content: str = ""
    reasoning: list[ReasoningStep] = Field(default_factory=list)
    tool_calls: list[ToolCall] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    file_citations: list[FileCitation] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    is_streaming: bool = False
    is_error: bool = False
    is_stopped: bool = False
    is_truncated: bool = False
    truncation_reason: str | None = None
    timestamp: datetime = Field(default_factory=_now)
    request_json: dict[str, Any] | None = None
    response_json: dict[str, Any] | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    def apply_state(self, state: AccumulatorState) -> "Message":
        """Return a copy showing an accumulator snapshot."""
        update: dict[str, Any] = {
            "content": state.content,
            "reasoning": list(state.reasoning_steps),
            "tool_calls": list(state.tool_calls),
            "citations": list(state.citations),
            "file_citations": list(state.file_citations),
            "is_truncated": state.is_truncated,
            "truncation_reason": state.truncation_reason,
        }
        if state.response_json is not None:
            update["response_json"] = state.response_json
        return self.model_copy(update=update)
