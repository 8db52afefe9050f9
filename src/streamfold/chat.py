import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path

from streamfold.accumulator import reduce
from streamfold.attachments import Attachment
from streamfold.identity import DEFAULT_ID_GENERATORS, IdGenerators
from streamfold.instrumentation import record_error, record_usage, turn_span
from streamfold.message import Message, MessageRole
from streamfold.provider import (
    ModelProvider,
    build_input,
    build_request_params,
    generate_message_id,
)
from streamfold.recording import (
    RecordingSession,
    create_recording_session,
)
from streamfold.settings import Settings
from streamfold.state import AccumulatorState, create_initial
from streamfold.thread import Thread, ThreadStore
from streamfold.titles import generate_thread_title
from streamfold.tool_calls import (
    has_pending_approvals,
    mark_aborted,
    set_approval_status,
)
from streamfold.usage import TokenUsage, calculate_conversation_usage

logger = logging.getLogger(__name__)


def _state_of(message: Message) -> AccumulatorState:
    """An accumulator snapshot of what a message already shows."""
    return AccumulatorState(
        content=message.content,
        reasoning_steps=tuple(message.reasoning),
        tool_calls=tuple(message.tool_calls),
        citations=tuple(message.citations),
        file_citations=tuple(message.file_citations),
    )


def _merge(base: AccumulatorState | None, state: AccumulatorState) -> AccumulatorState:
    """Append a continuation's state after what the message already had."""
    if base is None:
        return state
    return state.replace(
        content=base.content + state.content,
        reasoning_steps=base.reasoning_steps + state.reasoning_steps,
        tool_calls=base.tool_calls + state.tool_calls,
        citations=base.citations + state.citations,
        file_citations=base.file_citations + state.file_citations,
    )


class ChatSession:
    """Drives streamed turns of one conversation thread.

    The session owns everything that outlives a single event: the
    thread's messages, the previous response id used to chain turns,
    the task of the active stream and an open recording. Only one turn
    streams at a time.

    Args:
        provider: Source of streamed events for a request.
        ids: Id generators handed to the accumulator.
        thread: Thread to continue; a new one is created if omitted.
        thread_store: Where to save the thread at the end of each turn.
        on_update: Called with the assistant message whenever the
            accumulated state changes.
        record: Force recording on or off; ``None`` follows
            ``STREAMFOLD_RECORD_MODE``.
        recording_dir: Directory for finished recordings.
    """

    def __init__(
        self,
        provider: ModelProvider,
        ids: IdGenerators = DEFAULT_ID_GENERATORS,
        thread: Thread | None = None,
        thread_store: ThreadStore | None = None,
        on_update: Callable[[Message], None] | None = None,
        record: bool | None = None,
        recording_dir: Path | str | None = None,
    ):
        self.provider = provider
        self.ids = ids
        self.thread = thread or Thread()
        self.thread_store = thread_store
        self.on_update = on_update
        self.record = record
        self.recording_dir = recording_dir
        self.previous_response_id = self.thread.previous_response_id
        self.is_streaming = False
        self.error: str | None = None
        self._task: asyncio.Task | None = None
        self._stop_requested = False
        self._state = create_initial()
        self._recording: RecordingSession | None = None

    @property
    def messages(self) -> list[Message]:
        return self.thread.messages

    @property
    def usage(self) -> TokenUsage | None:
        return calculate_conversation_usage(self.messages)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_message(
        self,
        content: str,
        settings: Settings,
        attachments: list[Attachment] | None = None,
    ) -> Message | None:
        """Send a user message and stream the assistant's reply.

        Returns the final assistant message, or ``None`` when there was
        nothing to send.
        """
        if not content.strip() and not attachments:
            return None
        if self.is_streaming:
            raise RuntimeError("A turn is already streaming in this session")
        self.error = None

        params = build_request_params(
            settings,
            build_input(content, attachments),
            self.previous_response_id,
        )
        self.messages.append(Message(
            id=generate_message_id(),
            role=MessageRole.USER,
            content=content.strip(),
            attachments=attachments or [],
            request_json={**params, "stream": True},
        ))
        assistant = Message(
            id=generate_message_id(),
            role=MessageRole.ASSISTANT,
            is_streaming=True,
        )
        self.messages.append(assistant)

        self._recording = self._new_recording()
        await self._run_turn(assistant.id, params, settings.deployment)
        return self._get(assistant.id)

    def stop_streaming(self) -> bool:
        """Cancel the active turn, keeping everything received so far."""
        if self._task is None or self._task.done():
            return False
        self._stop_requested = True
        self._task.cancel()
        return True

    def clear_conversation(self) -> None:
        self.thread.messages = []
        self.previous_response_id = None
        self.error = None

    async def handle_mcp_approval(
        self, approval_request_id: str, approve: bool, settings: Settings,
    ) -> Message | None:
        """Answer an approval request and stream the continuation.

        The continuation is appended to the message holding the request.
        """
        if self.is_streaming:
            raise RuntimeError("A turn is already streaming in this session")
        target = next(
            (
                m for m in self.messages
                if any(
                    tc.approval_request_id == approval_request_id
                    for tc in m.tool_calls
                )
            ),
            None,
        )
        if target is None:
            self.error = "Could not find approval request"
            logger.warning(f"No approval request {approval_request_id}")
            return None

        base = set_approval_status(_state_of(target), approval_request_id, approve)
        self._set(target.id, tool_calls=list(base.tool_calls))

        if not self.previous_response_id:
            self.error = "No previous response to chain approval to"
            logger.warning(self.error)
            return None
        self.error = None

        params = build_request_params(
            settings,
            [{
                "type": "mcp_approval_response",
                "approval_request_id": approval_request_id,
                "approve": approve,
            }],
            self.previous_response_id,
            allow_max_output_tokens=False,
        )
        self._set(target.id, is_streaming=True)
        if self._recording is None:
            self._recording = self._new_recording()
        await self._run_turn(target.id, params, settings.deployment, base=base)
        return self._get(target.id)

    async def generate_title(self, settings: Settings) -> str | None:
        """Title the thread from its first exchange."""
        user = next((m for m in self.messages if m.role == MessageRole.USER), None)
        reply = next(
            (m for m in self.messages if m.role == MessageRole.ASSISTANT and m.content),
            None,
        )
        if user is None or reply is None:
            return None
        title = await generate_thread_title(
            self.provider.client, settings.deployment, user.content, reply.content,
        )
        self.thread.title = title
        self._save()
        return title

    # ------------------------------------------------------------------
    # Turn execution
    # ------------------------------------------------------------------

    async def _run_turn(
        self,
        message_id: str,
        params: dict,
        model: str,
        base: AccumulatorState | None = None,
    ) -> None:
        recording = self._recording
        if recording is not None:
            recording.record_request(params)

        self._state = create_initial()
        self._stop_requested = False
        self.is_streaming = True
        logger.info(f"Turn started on {model} for message {message_id}")
        self._task = asyncio.create_task(
            self._consume(message_id, params, model, base)
        )
        try:
            await self._task
            self._set(message_id, is_streaming=False)
            logger.info(f"Turn finished for message {message_id}")
        except asyncio.CancelledError:
            if not (self._stop_requested and self._task.cancelled()):
                raise
            self._state = mark_aborted(self._state)
            self._show(message_id, base)
            self._set(message_id, is_streaming=False, is_stopped=True)
            logger.info(f"Turn stopped for message {message_id}")
        except Exception as e:
            self.error = str(e) or type(e).__name__
            logger.error(f"Turn failed for message {message_id}: {self.error}")
            message = self._get(message_id)
            content = (
                f"Error: {self.error}" if base is None
                else f"{message.content}\n\nError: {self.error}"
            )
            self._set(
                message_id, content=content, is_streaming=False, is_error=True,
            )
        finally:
            self.is_streaming = False
            self._task = None
            # an open approval keeps the recording going into the next request
            if recording is not None and not has_pending_approvals(
                self._state.tool_calls
            ):
                recording.finalize(self.recording_dir)
                self._recording = None
            self._save()

    async def _consume(
        self,
        message_id: str,
        params: dict,
        model: str,
        base: AccumulatorState | None,
    ) -> None:
        async with turn_span(model, self.previous_response_id) as span:
            try:
                async for event in self.provider.stream(params):
                    if self._recording is not None:
                        self._recording.record_event(event)
                    state = reduce(self._state, event, self.ids)
                    if state is not self._state:
                        self._state = state
                        self._show(message_id, base)
                    if state.response_id:
                        self.previous_response_id = state.response_id
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, self._state.response_json)

    # ------------------------------------------------------------------
    # Message bookkeeping
    # ------------------------------------------------------------------

    def _new_recording(self) -> RecordingSession | None:
        if self.record is None:
            return create_recording_session()
        return RecordingSession() if self.record else None

    def _index(self, message_id: str) -> int:
        for i, message in enumerate(self.messages):
            if message.id == message_id:
                return i
        raise KeyError(message_id)

    def _get(self, message_id: str) -> Message:
        return self.messages[self._index(message_id)]

    def _set(self, message_id: str, **changes) -> None:
        index = self._index(message_id)
        self.messages[index] = self.messages[index].model_copy(update=changes)

    def _show(self, message_id: str, base: AccumulatorState | None) -> None:
        index = self._index(message_id)
        message = self.messages[index].apply_state(_merge(base, self._state))
        self.messages[index] = message
        if self.on_update is not None:
            self.on_update(message)

    def _save(self) -> None:
        if self.thread_store is None:
            return
        self.thread.previous_response_id = self.previous_response_id
        self.thread.updated_at = int(time.time() * 1000)
        self.thread_store.put(self.thread)
