"""
Cloud transcription through the backend API.

The backend proxies to Deepgram or AssemblyAI. Better accuracy for accents
and noisy audio, at a small per-minute cost and with a network round trip.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Set
import base64
import threading

from . import AudioPath, Engine
from ..api import (
    BackendClient,
    BackendNetworkError,
    CloudTranscriptionResponse,
    ServerError,
    UnauthorizedError,
)
from ..errors import (
    APIError,
    CancelledError,
    InvalidAudioFormatError,
    NetworkError,
    RecognitionFailedError,
)
from ..types import TranscriptionProvider, TranscriptionResult, WordTiming


class CloudEngine(Engine):
    """
    Cloud transcription via the backend.

    Availability is reported optimistically: whether the backend can be
    reached is only known once a request is made.

    Requests run on a small worker pool while the calling thread waits.
    requests can't interrupt a socket read, so cancel() stops the wait and
    the abandoned request finishes (or times out) in the background with its
    response discarded.
    """

    def __init__(
        self,
        provider: TranscriptionProvider,
        client: BackendClient,
        max_workers: int = 4,
    ):
        if not provider.is_cloud:
            raise ValueError(f"CloudEngine only supports cloud providers, got {provider.value}")
        super().__init__()
        self.provider = provider
        self.client = client
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"cloud-{provider.value}",
        )
        self._waiters: Set[threading.Event] = set()

    @classmethod
    def deepgram(cls, client: BackendClient) -> "CloudEngine":
        return cls(TranscriptionProvider.DEEPGRAM, client)

    @classmethod
    def assembly_ai(cls, client: BackendClient) -> "CloudEngine":
        return cls(TranscriptionProvider.ASSEMBLYAI, client)

    @property
    def is_available(self) -> bool:
        return True

    def transcribe(
        self,
        audio_path: AudioPath,
        language: str = "en-US",
        keywords: Optional[List[str]] = None,
        cancelled: Optional[threading.Event] = None,
    ) -> TranscriptionResult:
        with self._call(cancelled) as event:
            try:
                audio_bytes = Path(audio_path).read_bytes()
            except OSError as e:
                print(f"[{self.name}] Could not read audio: {e}")
                raise InvalidAudioFormatError() from e
            if not audio_bytes:
                raise InvalidAudioFormatError()

            self._check_cancelled(event)

            future = self._executor.submit(
                self.client.transcribe_audio,
                audio_data=base64.b64encode(audio_bytes).decode("ascii"),
                provider=self.provider.value,
                language=language,
                keywords=list(keywords or []),
                include_word_timings=True,
            )
            response = self._wait(future, event)

        words = None
        if response.words is not None:
            words = [
                WordTiming(word=w.word, start=w.start, end=w.end, confidence=w.confidence)
                for w in response.words
            ]

        return TranscriptionResult(
            text=response.text,
            confidence=response.confidence,
            words=words,
            provider=self.provider,
        )

    def _wait(self, future: Future, cancelled: threading.Event) -> CloudTranscriptionResponse:
        """Block until the request finishes or the call is cancelled."""
        wake = threading.Event()
        with self._lock:
            self._waiters.add(wake)
        future.add_done_callback(lambda _f: wake.set())
        try:
            # A cancel that landed before the waiter was registered
            if not cancelled.is_set():
                wake.wait()
        finally:
            with self._lock:
                self._waiters.discard(wake)

        if cancelled.is_set():
            future.cancel()
            print(f"[{self.name}] Request cancelled")
            raise CancelledError()

        try:
            return future.result()
        except Exception as e:
            raise _map_backend_error(e) from e

    def _on_cancel(self) -> None:
        with self._lock:
            waiters = list(self._waiters)
        for wake in waiters:
            wake.set()

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def _map_backend_error(exc: Exception):
    """Translate a backend client failure into the transcription error taxonomy."""
    if isinstance(exc, BackendNetworkError):
        return NetworkError(exc.cause)
    if isinstance(exc, UnauthorizedError):
        return APIError(401, str(exc))
    if isinstance(exc, ServerError):
        return APIError(exc.status_code, exc.body)
    # InvalidResponseError and anything unexpected
    return RecognitionFailedError(exc)
