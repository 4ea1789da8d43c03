"""
Transcription and dictionary-sync metrics, appended to a JSONL file.

Usage:
    with MetricsWriter(config.metrics_file) as metrics:
        router = TranscriptionRouter.create(config, metrics=metrics)
        ...

Each line is one event: {"ts": ..., "event": "transcription", ...fields}.
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from queue import Empty, Queue
from typing import ClassVar, List, Optional, Union
import json
import threading
import time


@dataclass(frozen=True)
class TranscriptionEvent:
    """One finished Router.transcribe() call."""
    name: ClassVar[str] = "transcription"

    requested: str                   # provider asked for (may be "smart")
    provider: Optional[str]          # provider whose result was returned
    latency_ms: int
    confidence: Optional[float] = None
    fallback_attempted: bool = False
    fallback_used: bool = False
    error: Optional[str] = None      # error kind on failure


@dataclass(frozen=True)
class DictionarySyncEvent:
    """One sync or fetch against the backend."""
    name: ClassVar[str] = "dictionary_sync"

    operation: str                   # "sync" | "fetch"
    success: bool
    corrections: int
    custom_terms: int


MetricsEvent = Union[TranscriptionEvent, DictionarySyncEvent]

# Tells the writer thread to drain and exit
_STOP = None


class MetricsWriter:
    """
    Appends metric events from any thread.

    Events are queued and written in batches by one background thread, so
    record() never blocks on disk. close() writes everything recorded before
    it; events recorded after close() are dropped.
    """

    def __init__(self, metrics_file: Path):
        self.metrics_file = Path(metrics_file)
        self._queue: "Queue[Optional[dict]]" = Queue()
        self._closed = threading.Event()
        self._thread = threading.Thread(target=self._run, name="metrics-writer", daemon=True)
        self._thread.start()

    def __enter__(self) -> "MetricsWriter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def record(self, event: MetricsEvent) -> None:
        if self._closed.is_set():
            return
        self._queue.put({"ts": time.time(), "event": event.name, **asdict(event)})

    def close(self, timeout: float = 2.0) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        self._queue.put(_STOP)
        self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            batch: List[dict] = []
            entry = self._queue.get()
            stop = entry is _STOP
            if not stop:
                batch.append(entry)

            while not stop:
                try:
                    entry = self._queue.get_nowait()
                except Empty:
                    break
                if entry is _STOP:
                    stop = True
                else:
                    batch.append(entry)

            if batch:
                self._append(batch)
            if stop:
                return

    def _append(self, batch: List[dict]) -> None:
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.metrics_file, "a") as f:
                for entry in batch:
                    f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            print(f"[Metrics] Failed to write {len(batch)} events: {e}")


def record(metrics: Optional[MetricsWriter], event: MetricsEvent) -> None:
    """Record event if metrics are enabled."""
    if metrics is not None:
        metrics.record(event)
