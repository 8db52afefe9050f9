"""Recording of streamed turns as JSON Lines for offline replay.

The first line of a recording is the request payload::

    {"type": "request", "timestamp": 0, "data": {...}}

and every following line is one raw event with its millisecond offset
from the start of the session::

    {"type": "response.output_text.delta", "timestamp": 412, "data": {...}}

Set ``STREAMFOLD_RECORD_MODE=true`` to have :class:`~streamfold.chat.ChatSession`
record every turn.
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class RecordingError(ValueError):
    """A recording file is empty or malformed."""


@dataclass
class RecordingEvent:
    type: str
    timestamp: int
    data: Any


@dataclass
class RecordingRequest:
    data: dict
    timestamp: int = 0
    type: str = "request"


@dataclass
class Recording:
    request: RecordingRequest
    events: list[RecordingEvent] = field(default_factory=list)


def is_record_mode_enabled() -> bool:
    return os.getenv("STREAMFOLD_RECORD_MODE", "").lower() == "true"


def recording_dir() -> Path:
    return Path(os.getenv("STREAMFOLD_RECORDING_DIR", "."))


def _event_dict(event: Any) -> dict:
    if isinstance(event, dict):
        return event
    if hasattr(event, "model_dump"):
        return event.model_dump()
    raise TypeError(f"Cannot record event of type {type(event).__name__}")


class RecordingSession:
    """Captures the request and every raw event of a conversation turn.

    One session may span several requests, e.g. an approval
    continuation; a later :meth:`record_request` replaces the request
    line.
    """

    def __init__(self) -> None:
        self.id = str(uuid.uuid4())
        self.events: list[RecordingEvent] = []
        self.request: RecordingRequest | None = None
        self._start = time.monotonic()

    def record_request(self, payload: dict) -> None:
        self.request = RecordingRequest(data=payload)

    def record_event(self, event: Any) -> None:
        data = _event_dict(event)
        self.events.append(RecordingEvent(
            type=str(data.get("type", "")),
            timestamp=int((time.monotonic() - self._start) * 1000),
            data=data,
        ))

    def lines(self) -> list[str]:
        lines = []
        if self.request is not None:
            lines.append(json.dumps(asdict(self.request)))
        lines.extend(json.dumps(asdict(e)) for e in self.events)
        return lines

    def finalize(self, directory: Path | str | None = None) -> Path:
        """Write the recording to ``recording-<id>.jsonl`` and return its path."""
        directory = Path(directory) if directory is not None else recording_dir()
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"recording-{self.id}.jsonl"
        path.write_text("\n".join(self.lines()), encoding="utf-8")
        logger.info(
            f"Saved recording {path.name} ({len(self.events)} events)"
        )
        return path


def create_recording_session() -> RecordingSession | None:
    """Return a new session when record mode is enabled, else ``None``."""
    if not is_record_mode_enabled():
        return None
    logger.info("Record mode enabled, starting new recording session")
    return RecordingSession()


def _parse_line(line: str, number: int) -> dict:
    try:
        parsed = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordingError(f"Line {number} is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise RecordingError(f"Line {number} is not a JSON object")
    return parsed


def load_recording(content: str) -> Recording:
    """Parse the text of a ``.jsonl`` recording.

    Raises:
        RecordingError: If the content is empty, the first line is not a
            request record, or any line is not a JSON object.
    """
    lines = [line for line in content.strip().splitlines() if line.strip()]
    if not lines:
        raise RecordingError("Recording file is empty")

    first = _parse_line(lines[0], 1)
    if first.get("type") != "request":
        raise RecordingError("Recording file must start with a request line")
    data = first.get("data")
    request = RecordingRequest(
        data=data if isinstance(data, dict) else {},
        timestamp=first.get("timestamp", 0),
    )

    events = []
    for number, line in enumerate(lines[1:], start=2):
        parsed = _parse_line(line, number)
        events.append(RecordingEvent(
            type=parsed.get("type", ""),
            timestamp=parsed.get("timestamp", 0),
            data=parsed.get("data"),
        ))
    return Recording(request=request, events=events)


def load_recording_file(path: Path | str) -> Recording:
    return load_recording(Path(path).read_text(encoding="utf-8"))
