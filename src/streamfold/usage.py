"""Token usage reported by the responses API."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from streamfold.message import Message, MessageRole


class InputTokensDetails(BaseModel):
    cached_tokens: int


class OutputTokensDetails(BaseModel):
    reasoning_tokens: int


class TokenUsage(BaseModel):
    input_tokens: int
    output_tokens: int
    total_tokens: int
    input_tokens_details: InputTokensDetails | None = None
    output_tokens_details: OutputTokensDetails | None = None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _detail(details: Any, key: str) -> int | None:
    if not isinstance(details, dict) or not _is_int(details.get(key)):
        return None
    return details[key]


def extract_token_usage(response_json: dict | None) -> TokenUsage | None:
    """Read the ``usage`` block of a response, or ``None`` if malformed."""
    if not isinstance(response_json, dict):
        return None
    usage = response_json.get("usage")
    if not isinstance(usage, dict):
        return None
    if not all(
        _is_int(usage.get(k))
        for k in ("input_tokens", "output_tokens", "total_tokens")
    ):
        return None

    cached = _detail(usage.get("input_tokens_details"), "cached_tokens")
    reasoning = _detail(usage.get("output_tokens_details"), "reasoning_tokens")
    return TokenUsage(
        input_tokens=usage["input_tokens"],
        output_tokens=usage["output_tokens"],
        total_tokens=usage["total_tokens"],
        input_tokens_details=(
            InputTokensDetails(cached_tokens=cached) if cached is not None else None
        ),
        output_tokens_details=(
            OutputTokensDetails(reasoning_tokens=reasoning)
            if reasoning is not None else None
        ),
    )


def calculate_conversation_usage(
    messages: Iterable[Message],
) -> TokenUsage | None:
    """Sum the usage of every assistant message that reports one."""
    found = False
    total_input = total_output = total_cached = total_reasoning = 0
    for message in messages:
        if message.role != MessageRole.ASSISTANT or not message.response_json:
            continue
        usage = extract_token_usage(message.response_json)
        if usage is None:
            continue
        found = True
        total_input += usage.input_tokens
        total_output += usage.output_tokens
        if usage.input_tokens_details:
            total_cached += usage.input_tokens_details.cached_tokens
        if usage.output_tokens_details:
            total_reasoning += usage.output_tokens_details.reasoning_tokens

    if not found:
        return None
    return TokenUsage(
        input_tokens=total_input,
        output_tokens=total_output,
        total_tokens=total_input + total_output,
        input_tokens_details=(
            InputTokensDetails(cached_tokens=total_cached)
            if total_cached > 0 else None
        ),
        output_tokens_details=(
            OutputTokensDetails(reasoning_tokens=total_reasoning)
            if total_reasoning > 0 else None
        ),
    )
