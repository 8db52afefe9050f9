"""Identifier assignment for reasoning steps and tool calls.

Server item ids are authoritative. When an event arrives without one, a
synthetic id is generated once per item family and stored on the state,
so every later id-less event of that family lands on the same entry.
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Callable
from dataclasses import dataclass

from streamfold.state import AccumulatorState

REASONING = "reasoning"


def _suffix() -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=7))


def generate_reasoning_id() -> str:
    return f"reason_{int(time.time() * 1000)}_{_suffix()}"


def generate_tool_call_id() -> str:
    return f"tool_{int(time.time() * 1000)}_{_suffix()}"


@dataclass(frozen=True)
class IdGenerators:
    """Injectable id factories.

    Tests and replays pass deterministic generators so the same event log
    always produces the same state.
    """

    reasoning: Callable[[], str] = generate_reasoning_id
    tool_call: Callable[[], str] = generate_tool_call_id


DEFAULT_ID_GENERATORS = IdGenerators()


def sequential_ids(prefix: str = "") -> IdGenerators:
    """Deterministic generators yielding ``<prefix>reason_1``, ``<prefix>tool_1``..."""
    counters = {"reason": 0, "tool": 0}

    def make(name: str) -> Callable[[], str]:
        def _next() -> str:
            counters[name] += 1
            return f"{prefix}{name}_{counters[name]}"
        return _next

    return IdGenerators(reasoning=make("reason"), tool_call=make("tool"))


def reasoning_step_id(item_id: str, summary_index: int = 0) -> str:
    return f"{item_id}_{summary_index}"


def lookup_id(
    state: AccumulatorState, family: str, explicit_id: str | None,
) -> str | None:
    """Resolve an id without creating one.

    Used by status-only events, which must never invent an entry.
    """
    if explicit_id:
        return explicit_id
    return state.synthetic_ids.get(family)


def resolve_id(
    state: AccumulatorState,
    family: str,
    explicit_id: str | None,
    ids: IdGenerators,
    fresh: bool = False,
) -> tuple[str, AccumulatorState]:
    """Return the id to accumulate under and the (possibly updated) state.

    The returned state differs from ``state`` only when a new synthetic
    id had to be recorded. ``fresh`` is set for a newly announced item:
    it always gets its own id, which later id-less events then reuse.
    """
    if explicit_id:
        return explicit_id, state
    existing = state.synthetic_ids.get(family)
    if existing is not None and not fresh:
        return existing, state
    generate = ids.reasoning if family == REASONING else ids.tool_call
    new_id = generate()
    return new_id, state.replace(
        synthetic_ids={**state.synthetic_ids, family: new_id},
    )


def find_index(entries, entry_id: str) -> int:
    """Index of the entry with ``entry_id`` in a tuple, or -1."""
    for i, entry in enumerate(entries):
        if entry.id == entry_id:
            return i
    return -1


def replace_at(entries: tuple, index: int, entry) -> tuple:
    return entries[:index] + (entry,) + entries[index + 1:]
