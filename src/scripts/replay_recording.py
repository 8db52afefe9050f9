import asyncio
import logging
import sys

from streamfold.accumulator import process_stream
from streamfold.identity import sequential_ids
from streamfold.recording import load_recording_file
from streamfold.replay import create_mock_stream, recording_stats

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


async def replay(path: str, realtime: bool = False):
    recording = load_recording_file(path)
    stats = recording_stats(recording)
    logger.info(
        f"{path}: {stats.total_events} events over {stats.duration_ms} ms "
        f"(model={stats.request_model})"
    )
    for event_type, count in sorted(stats.event_types.items()):
        logger.info(f"  {event_type}: {count}")

    state = await process_stream(
        create_mock_stream(recording, realtime=realtime),
        ids=sequential_ids(),
    )
    for step in state.reasoning_steps:
        print(f"[reasoning {step.id}] {step.content}\n")
    for call in state.tool_calls:
        print(f"[{call.kind.value} {call.name} {call.status}] {call.arguments}")
    print(state.content)
    if state.is_truncated:
        print(f"\n[truncated: {state.truncation_reason}]")
    for citation in state.citations:
        print(f"- {citation.title}: {citation.url}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: replay_recording.py RECORDING.jsonl [--realtime]")
        sys.exit(1)
    asyncio.run(replay(sys.argv[1], realtime="--realtime" in sys.argv[2:]))
