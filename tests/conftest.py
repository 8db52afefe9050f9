import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from streamfold.identity import sequential_ids
from streamfold.provider import ModelProvider
from streamfold.settings import Settings


# ---------------------------------------------------------------------------
# Raw event builders (mirror the responses API wire shape)
# ---------------------------------------------------------------------------

def text_delta(delta: str) -> dict:
    return {"type": "response.output_text.delta", "delta": delta}


def reasoning_delta(delta: str, item_id: str | None = "rs_1", summary_index=0) -> dict:
    event = {
        "type": "response.reasoning_summary_text.delta",
        "delta": delta,
        "summary_index": summary_index,
    }
    if item_id is not None:
        event["item_id"] = item_id
    return event


def item_added(item: dict) -> dict:
    return {"type": "response.output_item.added", "item": item}


def item_done(item: dict) -> dict:
    return {"type": "response.output_item.done", "item": item}


def completed(response_id: str = "resp_1", **response) -> dict:
    return {
        "type": "response.completed",
        "response": {"id": response_id, "status": "completed", **response},
    }


def incomplete(reason: str, response_id: str = "resp_1") -> dict:
    return {
        "type": "response.incomplete",
        "response": {
            "id": response_id,
            "status": "incomplete",
            "incomplete_details": {"reason": reason},
        },
    }


def message_with_annotations(*annotations: dict, text: str = "See sources.") -> dict:
    return {
        "type": "message",
        "content": [{
            "type": "output_text",
            "text": text,
            "annotations": list(annotations),
        }],
    }


def url_citation(url: str, title: str = "Title", start: int = 0, end: int = 5) -> dict:
    return {
        "type": "url_citation",
        "url": url,
        "title": title,
        "start_index": start,
        "end_index": end,
    }


def file_citation(file_id: str, filename: str = "doc.pdf", index: int = 0) -> dict:
    return {
        "type": "file_citation",
        "file_id": file_id,
        "filename": filename,
        "index": index,
    }


# ---------------------------------------------------------------------------
# Mock provider
# ---------------------------------------------------------------------------

class MockProvider(ModelProvider):
    """Provider that streams pre-queued event lists. No network calls.

    Each call to ``stream`` pops the next queued turn. A turn may end
    with an ``Exception`` instance (raised after the events) or with
    ``HANG`` (the stream then waits until cancelled).
    """

    HANG = object()

    def __init__(self):
        self.turns: list[list] = []
        self.call_log: list[dict] = []
        self.streaming = asyncio.Event()
        self.client = MagicMock()
        self.client.responses.create = AsyncMock()

    async def stream(self, params):
        self.call_log.append(params)
        events = self.turns.pop(0)
        for event in events:
            if event is MockProvider.HANG:
                self.streaming.set()
                await asyncio.Event().wait()
            if isinstance(event, Exception):
                raise event
            yield event


@pytest.fixture
def ids():
    return sequential_ids()


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def settings():
    return Settings(
        endpoint="https://example.openai.azure.com",
        api_key="test-key",
        model_name="gpt-5",
    )
