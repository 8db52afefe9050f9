"""The responses API provider and request construction."""

import os
import logging
import random
import string
import time
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from streamfold.attachments import Attachment, AttachmentType
from streamfold.settings import Settings

logger = logging.getLogger(__name__)


def normalize_endpoint(endpoint: str) -> str:
    """Ensure an Azure endpoint ends in exactly one ``/openai/v1``."""
    url = endpoint.strip().rstrip("/")
    if not url.endswith("/openai/v1"):
        url = f"{url}/openai/v1"
    return url


def _random_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def generate_message_id() -> str:
    return _random_id("msg")


def build_reasoning_config(settings: Settings) -> dict | None:
    if not settings.reasoning_effort and not settings.reasoning_summary:
        return None
    config = {}
    if settings.reasoning_effort:
        config["effort"] = settings.reasoning_effort
    if settings.reasoning_summary:
        config["summary"] = settings.reasoning_summary
    return config


def build_tools_configuration(
    settings: Settings,
) -> tuple[list[dict], list[str]]:
    """Return the ``tools`` list and ``include`` list for a request."""
    tools: list[dict] = []
    include: list[str] = []

    if settings.web_search_enabled:
        tools.append({"type": "web_search_preview"})
    if settings.code_interpreter_enabled:
        tools.append({"type": "code_interpreter", "container": {"type": "auto"}})
        # without this the call items carry no execution logs
        include.append("code_interpreter_call.outputs")

    for server in settings.mcp_servers:
        if not server.enabled:
            continue
        mcp_tool: dict[str, Any] = {
            "type": "mcp",
            "server_label": server.server_label,
            "server_url": server.server_url,
            "require_approval": server.require_approval,
        }
        headers = {
            h.key.strip(): h.value.strip()
            for h in server.headers
            if h.key.strip() and h.value.strip()
        }
        if headers:
            mcp_tool["headers"] = headers
        tools.append(mcp_tool)

    return tools, include


def build_input(
    content: str, attachments: list[Attachment] | None = None,
) -> str | list[dict]:
    """Plain text input, or a user message with content parts."""
    if not attachments:
        return content.strip()
    parts: list[dict] = []
    if content.strip():
        parts.append({"type": "input_text", "text": content.strip()})
    for attachment in attachments:
        if attachment.type == AttachmentType.IMAGE:
            parts.append({"type": "input_image", "image_url": attachment.data_url})
        else:
            parts.append({
                "type": "input_file",
                "filename": attachment.name,
                "file_data": attachment.data_url,
            })
    return [{"role": "user", "content": parts}]


def build_request_params(
    settings: Settings,
    input: str | list[dict],
    previous_response_id: str | None = None,
    allow_max_output_tokens: bool = True,
) -> dict[str, Any]:
    params: dict[str, Any] = {"model": settings.deployment, "input": input}
    if previous_response_id:
        params["previous_response_id"] = previous_response_id
    if settings.developer_instructions and settings.developer_instructions.strip():
        params["instructions"] = settings.developer_instructions.strip()
    if settings.reasoning_effort:
        params["reasoning"] = build_reasoning_config(settings)
    if settings.verbosity:
        params["text"] = {"verbosity": settings.verbosity}
    if (
        allow_max_output_tokens
        and settings.max_output_tokens_enabled
        and settings.max_output_tokens
    ):
        params["max_output_tokens"] = settings.max_output_tokens
    tools, include = build_tools_configuration(settings)
    if tools:
        params["tools"] = tools
    if include:
        params["include"] = include
    return params


class ModelProvider:
    """Source of streamed response events for a request."""

    async def stream(self, params: dict) -> AsyncIterator[Any]:
        raise NotImplementedError
        yield


class ResponsesProvider(ModelProvider):
    """Streams from an OpenAI-compatible responses endpoint (Azure by default)."""

    def __init__(
        self,
        endpoint: str | None = None,
        api_key: str | None = None,
        max_retries: int = 5,
        timeout: float = 600.0,
    ):
        if not endpoint:
            endpoint = os.getenv("AZURE_OPENAI_ENDPOINT", "")
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        self.base_url = normalize_endpoint(endpoint)
        self.client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key,
            max_retries=max_retries,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResponsesProvider":
        return cls(endpoint=settings.endpoint, api_key=settings.api_key)

    async def stream(self, params: dict) -> AsyncIterator[Any]:
        stream = await self.client.responses.create(**params, stream=True)
        try:
            async for event in stream:
                yield event
        finally:
            await stream.close()
