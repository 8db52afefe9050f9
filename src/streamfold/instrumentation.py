"""Tracing of streamed chat turns.

Each turn a :class:`~streamfold.chat.ChatSession` streams becomes one
``chat <model>`` CLIENT span carrying the request model, the chained
``previous_response_id`` and, once the terminal event arrives, the
response id and token usage. A turn that fails records the exception.

Spans are only created after ``instrument()``::

    from streamfold.instrumentation import instrument
    instrument()

Without it every helper here is a no-op and ``opentelemetry-api`` need
not be installed.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "streamfold") -> None:
    """Start emitting a span per streamed turn.

    Args:
        tracer_name: Instrumentation scope the turn spans are reported under.

    Raises:
        ImportError: If the ``otel`` extra is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "Turn tracing needs opentelemetry-api; "
            "pip install streamfold[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            f"No TracerProvider configured, turn spans from {tracer_name} "
            "will be dropped"
        )
    else:
        logger.info(f"Tracing chat turns as {tracer_name}")


def uninstrument() -> None:
    """Stop creating turn spans; turns already running keep theirs."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def turn_span(model: str, previous_response_id: str | None = None):
    """Wrap one streamed turn in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    attributes = {
        "gen_ai.operation.name": "chat",
        "gen_ai.request.model": model,
    }
    if previous_response_id:
        attributes["gen_ai.conversation.previous_response_id"] = (
            previous_response_id
        )
    with _tracer.start_as_current_span(
        f"chat {model}", kind=SpanKind.CLIENT, attributes=attributes,
    ) as span:
        yield span


def record_usage(span, response_json: dict | None) -> None:
    """Set token usage and response id attributes from a final payload."""
    if span is None or not isinstance(response_json, dict):
        return
    usage = response_json.get("usage")
    if isinstance(usage, dict):
        if isinstance(usage.get("input_tokens"), int):
            span.set_attribute(
                "gen_ai.usage.input_tokens", usage["input_tokens"],
            )
        if isinstance(usage.get("output_tokens"), int):
            span.set_attribute(
                "gen_ai.usage.output_tokens", usage["output_tokens"],
            )
    if isinstance(response_json.get("id"), str):
        span.set_attribute("gen_ai.response.id", response_json["id"])
    if isinstance(response_json.get("model"), str):
        span.set_attribute("gen_ai.response.model", response_json["model"])


def record_error(span, exception: BaseException) -> None:
    """Mark a failed turn's span as errored."""
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, f"turn failed: {exception}")
    span.record_exception(exception)
    span.set_attribute("error.type", type(exception).__qualname__)
