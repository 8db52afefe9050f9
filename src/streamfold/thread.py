"""Conversation threads and their on-disk persistence."""

from __future__ import annotations

import logging
import random
import string
import time
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from streamfold.message import Message

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_thread_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"thread_{_now_ms()}_{suffix}"


class Thread(BaseModel):
    id: str = Field(default_factory=generate_thread_id)
    title: str = "New chat"
    created_at: int = Field(default_factory=_now_ms)
    updated_at: int = Field(default_factory=_now_ms)
    previous_response_id: str | None = None
    messages: list[Message] = Field(default_factory=list)


class ThreadStore:
    """Stores each thread as ``<thread id>.json`` in a directory.

    :meth:`put` is an idempotent upsert keyed by thread id.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path(self, thread_id: str) -> Path:
        safe_id = thread_id.replace("/", "_")
        return self.directory / f"{safe_id}.json"

    def put(self, thread: Thread) -> None:
        # a thread saved mid-stream must not reload as still streaming
        messages = [
            m.model_copy(update={"is_streaming": False, "is_stopped": True})
            if m.is_streaming else m
            for m in thread.messages
        ]
        stored = thread.model_copy(update={"messages": messages})
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(thread.id).write_text(
            stored.model_dump_json(indent=2), encoding="utf-8",
        )

    def get(self, thread_id: str) -> Thread | None:
        path = self._path(thread_id)
        if not path.exists():
            return None
        return Thread.model_validate_json(path.read_text(encoding="utf-8"))

    def all(self) -> list[Thread]:
        """All stored threads, most recently updated first."""
        if not self.directory.exists():
            return []
        threads = []
        for path in self.directory.glob("*.json"):
            try:
                threads.append(
                    Thread.model_validate_json(path.read_text(encoding="utf-8"))
                )
            except ValidationError as e:
                logger.warning(f"Skipping unreadable thread {path.name}: {e}")
        return sorted(threads, key=lambda t: t.updated_at, reverse=True)

    def delete(self, thread_id: str) -> None:
        self._path(thread_id).unlink(missing_ok=True)

    def clear(self) -> None:
        for path in self.directory.glob("*.json"):
            path.unlink()
