"""
Recognition engines.

Every engine turns one recorded audio file into a TranscriptionResult and
can be cancelled from another thread while a call is in flight.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Set, Union
import threading

from ..errors import CancelledError
from ..types import TranscriptionProvider, TranscriptionResult


AudioPath = Union[str, Path]


class Engine(ABC):
    """
    Base class for recognition engines.

    Subclasses must implement:
    - transcribe(): Turn recorded audio into a result, raising TranscriptionError
    - is_available: Whether a call could currently succeed

    Each call runs under a cancel token. The caller may pass its own token
    (the router does, so one cancel covers every engine call of a request);
    otherwise the engine makes one. cancel() sets the tokens of calls that
    are in flight and never affects calls that start later.
    """

    provider: TranscriptionProvider

    def __init__(self):
        self._lock = threading.Lock()
        self._active: Set[threading.Event] = set()

    @property
    def name(self) -> str:
        return self.provider.value

    @property
    @abstractmethod
    def is_available(self) -> bool:
        pass

    @abstractmethod
    def transcribe(
        self,
        audio_path: AudioPath,
        language: str = "en-US",
        keywords: Optional[List[str]] = None,
        cancelled: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        """
        Transcribe a recorded audio file.

        Args:
            audio_path: Path of the already-recorded audio
            language: Language/accent code (e.g. "en-US")
            keywords: Optional vocabulary hints for boosting
            cancelled: Cancel token shared with the caller

        Returns:
            TranscriptionResult with text and confidence

        Raises:
            TranscriptionError: On any failure, including cancellation
        """
        pass

    def cancel(self) -> None:
        """Cancel in-flight calls, if any. Safe to call repeatedly."""
        with self._lock:
            active = list(self._active)
        for event in active:
            event.set()
        if active:
            self._on_cancel()

    def shutdown(self) -> None:
        """Release engine resources."""

    def _on_cancel(self) -> None:
        """Hook for subclasses to interrupt a blocked call."""

    @contextmanager
    def _call(self, cancelled: Optional[threading.Event] = None) -> Iterator[threading.Event]:
        """Register a call as in flight for its whole duration."""
        event = cancelled if cancelled is not None else threading.Event()
        with self._lock:
            self._active.add(event)
        try:
            self._check_cancelled(event)
            yield event
        finally:
            with self._lock:
                self._active.discard(event)

    @staticmethod
    def _check_cancelled(event: threading.Event) -> None:
        if event.is_set():
            raise CancelledError()
