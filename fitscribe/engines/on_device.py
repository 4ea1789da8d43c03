"""
On-device transcription.

Privacy-first: audio never leaves the machine. Free and works offline, but
less accurate for accents and with limited vocabulary boosting.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union
import gc
import importlib.util
import threading

import numpy as np
import soundfile as sf

from . import AudioPath, Engine
from ..errors import (
    NoSpeechDetectedError,
    NotAvailableError,
    PermissionDeniedError,
    InvalidAudioFormatError,
    RecognitionFailedError,
    TranscriptionError,
)
from ..types import TranscriptionProvider, TranscriptionResult, WordTiming


# Local recognizers only accept a bounded number of boosted phrases
MAX_CONTEXTUAL_STRINGS = 100

DEFAULT_CONFIDENCE = 0.5

PARAKEET_MODEL = "mlx-community/parakeet-tdt-0.6b-v3"


@dataclass
class RecognizedSegment:
    """One recognized word with timing, as reported by a local recognizer."""
    text: str
    start: float
    duration: float
    confidence: Optional[float] = None


@dataclass
class RecognizedSpeech:
    text: str
    segments: List[RecognizedSegment] = field(default_factory=list)


class LocalRecognizer(ABC):
    """
    A speech recognizer that runs on this machine.

    The engine handles permission, hint limits and result mapping; the
    recognizer only has to turn a file into text and segments.
    """

    @property
    @abstractmethod
    def is_available(self) -> bool:
        pass

    @property
    def supports_on_device(self) -> bool:
        return self.is_available

    def set_language(self, language: str) -> None:
        """Switch recognition language. Default: ignore."""

    @abstractmethod
    def recognize(
        self,
        audio_path: AudioPath,
        contextual_strings: List[str],
    ) -> RecognizedSpeech:
        pass

    def cancel(self) -> None:
        """Best-effort abort of a running recognition."""


class ParakeetRecognizer(LocalRecognizer):
    """
    Local recognition using the Parakeet MLX model (Apple Silicon).

    The model is loaded on first use (or by initialize()) and kept in memory.
    Until then availability only reflects whether parakeet-mlx is installed.
    Thread-safe via lock (MLX models aren't thread-safe).
    """

    def __init__(self, model_name: str = PARAKEET_MODEL):
        self.model_name = model_name
        self.model = None
        self.language = "en-US"
        self._load_failed = False
        self._lock = threading.Lock()

    @staticmethod
    def is_installed() -> bool:
        return importlib.util.find_spec("parakeet_mlx") is not None

    def initialize(self) -> None:
        """Load Parakeet model weights."""
        with self._lock:
            self._load()

    def _load(self) -> None:
        if self.model is not None or self._load_failed:
            return
        try:
            from parakeet_mlx import from_pretrained

            print(f"[parakeet] Loading model {self.model_name}...")
            self.model = from_pretrained(self.model_name)
            print("[parakeet] Initialized")

        except Exception as e:
            print(f"[parakeet] Failed to initialize: {e}")
            self.model = None
            self._load_failed = True

    @property
    def is_available(self) -> bool:
        if self.model is not None:
            return True
        return not self._load_failed and self.is_installed()

    def set_language(self, language: str) -> None:
        self.language = language

    def recognize(
        self,
        audio_path: AudioPath,
        contextual_strings: List[str],
    ) -> RecognizedSpeech:
        # Parakeet has no phrase boosting; hints are accepted and ignored
        with self._lock:
            self._load()
            if self.model is None:
                raise NotAvailableError()
            aligned = self.model.transcribe(str(audio_path))

        segments = []
        for sentence in getattr(aligned, "sentences", []):
            segments.extend(_tokens_to_words(sentence.tokens))

        return RecognizedSpeech(text=aligned.text.strip(), segments=segments)

    def shutdown(self) -> None:
        """Unload model weights."""
        with self._lock:
            self.model = None
        gc.collect()
        print("[parakeet] Shutdown")


def _tokens_to_words(tokens) -> List[RecognizedSegment]:
    """Merge sub-word tokens into words (a leading space starts a new word)."""
    words: List[RecognizedSegment] = []
    confidences: List[List[float]] = []

    for token in tokens:
        text = token.text
        confidence = getattr(token, "confidence", None)
        if not words or text.startswith(" "):
            words.append(RecognizedSegment(text=text.strip(), start=token.start, duration=token.duration))
            confidences.append([])
        else:
            last = words[-1]
            last.text += text
            last.duration = token.start + token.duration - last.start
        if confidence is not None:
            confidences[-1].append(float(confidence))

    for word, scores in zip(words, confidences):
        if scores:
            word.confidence = float(np.mean(scores))

    return [w for w in words if w.text]


class OnDeviceEngine(Engine):
    """
    Transcription with a local recognizer.

    Requires speech recognition permission, granted up front. Keyword hints
    are capped at MAX_CONTEXTUAL_STRINGS.
    """

    provider = TranscriptionProvider.ON_DEVICE

    def __init__(
        self,
        recognizer: LocalRecognizer,
        language: str = "en-US",
        permission_granted: Union[bool, Callable[[], bool]] = True,
    ):
        super().__init__()
        self.recognizer = recognizer
        self.language = language
        self._permission = permission_granted
        self.recognizer.set_language(language)

    @property
    def is_available(self) -> bool:
        return self.recognizer.is_available

    @property
    def supports_on_device_recognition(self) -> bool:
        return self.recognizer.supports_on_device

    @property
    def has_permission(self) -> bool:
        if callable(self._permission):
            return bool(self._permission())
        return bool(self._permission)

    def transcribe(
        self,
        audio_path: AudioPath,
        language: str = "en-US",
        keywords: Optional[List[str]] = None,
        cancelled: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        with self._call(cancelled) as event:
            return self._transcribe(audio_path, language, keywords, event)

    def _transcribe(
        self,
        audio_path: AudioPath,
        language: str,
        keywords: Optional[List[str]],
        cancelled: threading.Event,
    ) -> TranscriptionResult:
        if language != self.language:
            self.language = language
            self.recognizer.set_language(language)

        if not self.recognizer.is_available:
            raise NotAvailableError()

        if not self.has_permission:
            raise PermissionDeniedError()

        try:
            sf.info(str(audio_path))
        except (RuntimeError, OSError) as e:
            # soundfile raises LibsndfileError (a RuntimeError) for undecodable audio
            print(f"[{self.name}] Unreadable audio: {e}")
            raise InvalidAudioFormatError() from e

        hints = list(keywords or [])[:MAX_CONTEXTUAL_STRINGS]

        self._check_cancelled(cancelled)
        try:
            speech = self.recognizer.recognize(audio_path, hints)
        except TranscriptionError:
            raise
        except Exception as e:
            self._check_cancelled(cancelled)
            print(f"[{self.name}] Transcription error: {e}")
            raise RecognitionFailedError(e) from e
        self._check_cancelled(cancelled)

        if not speech.text.strip():
            raise NoSpeechDetectedError()

        words = [
            WordTiming(
                word=segment.text,
                start=segment.start,
                end=segment.start + segment.duration,
                confidence=segment.confidence,
            )
            for segment in speech.segments
        ]

        return TranscriptionResult(
            text=speech.text,
            confidence=calculate_confidence(speech.segments),
            words=words,
            provider=self.provider,
        )

    def _on_cancel(self) -> None:
        self.recognizer.cancel()


def calculate_confidence(segments: List[RecognizedSegment]) -> float:
    """Duration-weighted mean of segment confidences (0.5 when unknown)."""
    scored = [s for s in segments if s.confidence is not None]
    if not scored:
        return DEFAULT_CONFIDENCE

    weights = np.array([s.duration for s in scored], dtype=np.float64)
    if weights.sum() <= 0:
        return DEFAULT_CONFIDENCE

    values = np.array([s.confidence for s in scored], dtype=np.float64)
    return float(np.average(values, weights=weights))
