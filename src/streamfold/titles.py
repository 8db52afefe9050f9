import logging
import re

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

TITLE_PROMPT = (
    "Generate a concise 3-6 word title for this conversation. "
    "Reply with ONLY the title, no quotes or punctuation."
)
MAX_INPUT_CHARS = 500


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _first_output_text(response: dict) -> str | None:
    for item in response.get("output") or []:
        if not isinstance(item, dict) or item.get("type") != "message":
            continue
        for part in item.get("content") or []:
            if (
                isinstance(part, dict)
                and part.get("type") == "output_text"
                and isinstance(part.get("text"), str)
            ):
                return part["text"]
    return None


def fallback_title(user_message: str) -> str:
    words = " ".join(user_message.split()[:5])
    return _truncate(words, 30)


async def generate_thread_title(
    client: AsyncOpenAI,
    deployment: str,
    user_message: str,
    assistant_message: str,
) -> str:
    """Ask a small model for a short title for the first exchange.

    Falls back to the first words of the user message when the
    response carries no text.
    """
    prompt = (
        f"User: {_truncate(user_message, MAX_INPUT_CHARS)}\n\n"
        f"Assistant: {_truncate(assistant_message, MAX_INPUT_CHARS)}"
    )
    response = await client.responses.create(
        model=deployment,
        instructions=TITLE_PROMPT,
        input=prompt,
        reasoning={"effort": "minimal"},
    )
    raw = response.model_dump() if hasattr(response, "model_dump") else response
    text = _first_output_text(raw) if isinstance(raw, dict) else None
    if text is None:
        logger.info("Title response had no text, using fallback title")
        return fallback_title(user_message)
    return re.sub(r"^[\"']|[\"']$", "", text.strip())
