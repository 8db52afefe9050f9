"""Replay recorded turns through the accumulator."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from streamfold.accumulator import reduce
from streamfold.identity import DEFAULT_ID_GENERATORS, IdGenerators
from streamfold.recording import Recording
from streamfold.state import AccumulatorState, create_initial


@dataclass
class RecordingStats:
    total_events: int
    event_types: dict[str, int] = field(default_factory=dict)
    duration_ms: int = 0
    request_model: str | None = None


async def create_mock_stream(
    recording: Recording, realtime: bool = False,
) -> AsyncIterator[dict]:
    """Yield the raw recorded events, optionally at their recorded pace."""
    previous = 0
    for recorded in recording.events:
        if realtime and recorded.timestamp > previous:
            await asyncio.sleep((recorded.timestamp - previous) / 1000)
        previous = recorded.timestamp
        yield recorded.data


def replay_recording(
    recording: Recording,
    initial: AccumulatorState | None = None,
    ids: IdGenerators = DEFAULT_ID_GENERATORS,
) -> AccumulatorState:
    """Fold every recorded event and return the final state."""
    state = initial if initial is not None else create_initial()
    for recorded in recording.events:
        state = reduce(state, recorded.data, ids)
    return state


def recording_stats(recording: Recording) -> RecordingStats:
    event_types: dict[str, int] = {}
    duration = 0
    for event in recording.events:
        event_types[event.type] = event_types.get(event.type, 0) + 1
        duration = max(duration, event.timestamp)
    model = recording.request.data.get("model")
    return RecordingStats(
        total_events=len(recording.events),
        event_types=event_types,
        duration_ms=duration,
        request_model=model if isinstance(model, str) else None,
    )
