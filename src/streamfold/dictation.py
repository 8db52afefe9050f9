"""Speech-to-text transcript merging.

A recogniser delivers final and interim results on its own timeline and,
on some mobile platforms, ends after every pause even in continuous mode.
:class:`DictationSession` keeps the committed text across those restarts
and reports ``base text + final text + interim text`` on every result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


def join_with_space(a: str, b: str) -> str:
    """Join with a single space unless either side is empty or already spaced."""
    if not a:
        return b
    if not b:
        return a
    if a.endswith(" ") or b.startswith(" "):
        return a + b
    return f"{a} {b}"


@dataclass
class RecognitionResult:
    transcript: str
    is_final: bool = False


class Recognizer(Protocol):
    def start(self) -> None: ...
    def stop(self) -> None: ...
    def abort(self) -> None: ...


class DictationSession:
    """Merges recogniser results into the text the user sees.

    Args:
        recognizer_factory: Builds a recogniser bound to this session.
            The recogniser must call :meth:`on_result`, :meth:`on_error`
            and :meth:`on_end`.
    """

    def __init__(self, recognizer_factory: Callable[["DictationSession"], Recognizer]):
        self.recognizer_factory = recognizer_factory
        self.is_recording = False
        self.error: str | None = None
        self.final_text = ""
        self._recognizer: Recognizer | None = None
        self._stopped = False
        self._base_text = ""
        self._on_transcript: Callable[[str], None] | None = None

    def start(self, base_text: str, on_transcript: Callable[[str], None]) -> None:
        """Begin dictating after ``base_text``, the text already typed."""
        if self._recognizer is not None:
            self._recognizer.abort()
            self._recognizer = None
        self.error = None
        self._stopped = False
        self.final_text = ""
        self._base_text = base_text
        self._on_transcript = on_transcript
        self.is_recording = True
        self._start_recognizer()

    def stop(self) -> None:
        self._stopped = True
        if self._recognizer is not None:
            self._recognizer.stop()
        self._recognizer = None
        self.is_recording = False

    def _start_recognizer(self) -> None:
        if self._stopped:
            return
        recognizer = self.recognizer_factory(self)
        self._recognizer = recognizer
        try:
            recognizer.start()
        except Exception as e:
            self._fail(f"Failed to start speech recognition: {e}")

    def _fail(self, message: str) -> None:
        logger.warning(message)
        self.error = message
        self.is_recording = False
        self._stopped = True

    def on_result(
        self, results: Sequence[RecognitionResult], result_index: int = 0,
    ) -> None:
        interim = ""
        for result in results[result_index:]:
            if result.is_final:
                self.final_text = join_with_space(self.final_text, result.transcript)
            else:
                interim = join_with_space(interim, result.transcript)
        if self._on_transcript is None:
            return
        transcript = ""
        for part in (self._base_text, self.final_text, interim):
            if part:
                transcript = join_with_space(transcript, part)
        self._on_transcript(transcript)

    def on_error(self, error: str) -> None:
        # "aborted" follows our own stop() / abort()
        if error != "aborted":
            self._fail(f"Speech recognition error: {error}")

    def on_end(self) -> None:
        if not self._stopped:
            self._start_recognizer()
        else:
            self.is_recording = False
            self._recognizer = None
