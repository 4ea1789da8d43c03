"""
Personal vocabulary corrections and custom terms.

Corrections fix phrases the recognizer keeps getting wrong for this user
("dead lift" -> "deadlift") and are applied after every transcription.
Custom terms are added to the keyword hints sent to the engines.

Every mutation is persisted immediately and followed by a background sync
with the backend. Sync failures never reach the caller: the local copy stays
usable offline.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional
import re
import threading

from .api import BackendClient, BackendError
from .config import DictionaryStore
from .metrics import DictionarySyncEvent, MetricsWriter, record
from .types import DictionarySnapshot


# Frequently misheard fitness terms
DEFAULT_CORRECTIONS = {
    # Common misrecognitions
    "hip thrust": "hip thrusts",
    "dead lift": "deadlift",
    "dead lifts": "deadlifts",
    "bench presses": "bench press",
    "pull up": "pull-up",
    "pushup": "push-up",
    "pushups": "push-ups",
    "set up": "setup",

    # Acronyms often misheard
    "h i i t": "HIIT",
    "high intensity interval training": "HIIT",
    "a m rap": "AMRAP",
    "e mom": "EMOM",
    "are p e": "RPE",

    # Numbers as words
    "one rep": "1 rep",
    "two reps": "2 reps",
    "three reps": "3 reps",
    "four reps": "4 reps",
    "five reps": "5 reps",
    "ten reps": "10 reps",
    "twelve reps": "12 reps",
    "fifteen reps": "15 reps",
}


def normalize_key(phrase: str) -> str:
    """Correction keys are always trimmed and lowercased."""
    return phrase.strip().lower()


class PersonalDictionary:
    """
    User-specific corrections and custom terms.

    Usage:
        dictionary = PersonalDictionary(DictionaryStore(path), client)
        dictionary.add_correction("dead lift", "deadlift")
        text = dictionary.apply_corrections(text)
    """

    def __init__(
        self,
        store: DictionaryStore,
        client: Optional[BackendClient] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        metrics: Optional[MetricsWriter] = None,
    ):
        self.store = store
        self.client = client
        self.metrics = metrics
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="dictionary-sync")
        self._owns_executor = executor is None

        # Guards corrections / custom terms / last sync
        self._lock = threading.Lock()
        # Held for the whole duration of a sync or fetch
        self._sync_lock = threading.Lock()

        self._pending: List[Future] = []
        self._listeners: List[Callable[[DictionarySnapshot], None]] = []

        stored = store.load()
        self._corrections: Dict[str, str] = {}
        for wrong, correct in stored.corrections.items():
            key, value = normalize_key(wrong), correct.strip()
            if key and value:
                self._corrections[key] = value
        self._custom_terms: List[str] = []
        for term in stored.custom_terms:
            term = term.strip()
            if term and term not in self._custom_terms:
                self._custom_terms.append(term)
        self._last_sync: Optional[datetime] = stored.last_sync

        if self._corrections or self._custom_terms:
            print(
                f"[PersonalDictionary] Loaded {len(self._corrections)} corrections "
                f"and {len(self._custom_terms)} custom terms"
            )

    # -- Read access ----------------------------------------------------------

    @property
    def corrections(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._corrections)

    @property
    def custom_terms(self) -> List[str]:
        with self._lock:
            return list(self._custom_terms)

    @property
    def last_sync(self) -> Optional[datetime]:
        with self._lock:
            return self._last_sync

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    def snapshot(self) -> DictionarySnapshot:
        with self._lock:
            return self._snapshot_locked()

    def subscribe(self, callback: Callable[[DictionarySnapshot], None]) -> None:
        """Call callback with a fresh snapshot after every change."""
        self._listeners.append(callback)

    # -- Corrections ----------------------------------------------------------

    def add_correction(self, wrong: str, correct: str) -> None:
        """
        Add or replace a correction.

        Args:
            wrong: The phrase as the recognizer hears it
            correct: What it should read as
        """
        key = normalize_key(wrong)
        value = correct.strip()
        if not key or not value:
            return

        with self._lock:
            self._corrections[key] = value
        self._changed()

    def remove_correction(self, wrong: str) -> None:
        key = normalize_key(wrong)
        with self._lock:
            self._corrections.pop(key, None)
        self._changed()

    def add_custom_term(self, term: str) -> None:
        """Add a term to boost in transcription."""
        term = term.strip()
        if not term:
            return

        with self._lock:
            if term in self._custom_terms:
                return
            self._custom_terms.append(term)
        self._changed()

    def remove_custom_term(self, term: str) -> None:
        term = term.strip()
        with self._lock:
            self._custom_terms = [t for t in self._custom_terms if t != term]
        self._changed()

    def add_default_corrections(self) -> None:
        """Add common fitness corrections without overriding the user's own."""
        with self._lock:
            for wrong, correct in DEFAULT_CORRECTIONS.items():
                self._corrections.setdefault(wrong, correct)
        self._changed(sync=False)

    def clear_all(self) -> None:
        """Drop all local data, including the last sync time."""
        with self._lock:
            self._corrections = {}
            self._custom_terms = []
            self._last_sync = None
        self._changed(sync=False)

    # -- Applying -------------------------------------------------------------

    def apply_corrections(self, text: str) -> str:
        """
        Apply all corrections to transcribed text.

        Longest phrases are replaced first so "dead lifts" is handled before
        "dead lift" can split it. Matching is case-insensitive and the
        replacement uses the correction's stored casing.
        """
        corrections = self.corrections
        if not corrections or not text:
            return text

        ordered = sorted(corrections.items(), key=lambda item: (-len(item[0]), item[0]))

        result = text
        for wrong, correct in ordered:
            pattern = re.compile(re.escape(wrong), re.IGNORECASE)
            result = pattern.sub(lambda _match: correct, result)
        return result

    # -- Backend sync -----------------------------------------------------------

    def sync_with_backend(self) -> bool:
        """
        Push local data and merge the server's copy back (server wins on conflicts).

        Skipped if a sync or fetch is already running.

        Returns:
            True if the merge happened, False if skipped or failed
        """
        if self.client is None:
            return False
        if not self._sync_lock.acquire(blocking=False):
            return False

        try:
            with self._lock:
                corrections = dict(self._corrections)
                terms = list(self._custom_terms)

            try:
                response = self.client.sync_personal_dictionary(corrections, terms)
            except BackendError as e:
                print(f"[PersonalDictionary] Sync failed: {e}")
                record(self.metrics, DictionarySyncEvent("sync", False, len(corrections), len(terms)))
                return False

            with self._lock:
                for wrong, correct in response.corrections.items():
                    key, value = normalize_key(wrong), correct.strip()
                    if key and value:
                        self._corrections[key] = value
                for term in response.custom_terms:
                    term = term.strip()
                    if term and term not in self._custom_terms:
                        self._custom_terms.append(term)
                self._last_sync = datetime.now(timezone.utc)
                counts = (len(self._corrections), len(self._custom_terms))

            self._changed(sync=False)
            print(f"[PersonalDictionary] Synced with backend - {counts[0]} corrections, {counts[1]} terms")
            record(self.metrics, DictionarySyncEvent("sync", True, *counts))
            return True
        finally:
            self._sync_lock.release()

    def fetch_from_backend(self) -> bool:
        """Replace local data with the server's copy."""
        if self.client is None:
            return False
        if not self._sync_lock.acquire(blocking=False):
            return False

        try:
            try:
                response = self.client.fetch_personal_dictionary()
            except BackendError as e:
                print(f"[PersonalDictionary] Fetch failed: {e}")
                record(self.metrics, DictionarySyncEvent("fetch", False, 0, 0))
                return False

            corrections = {}
            for wrong, correct in response.corrections.items():
                key, value = normalize_key(wrong), correct.strip()
                if key and value:
                    corrections[key] = value
            terms = []
            for term in response.custom_terms:
                term = term.strip()
                if term and term not in terms:
                    terms.append(term)

            with self._lock:
                self._corrections = corrections
                self._custom_terms = terms
                self._last_sync = datetime.now(timezone.utc)

            self._changed(sync=False)
            print(f"[PersonalDictionary] Fetched from backend - {len(corrections)} corrections, {len(terms)} terms")
            record(self.metrics, DictionarySyncEvent("fetch", True, len(corrections), len(terms)))
            return True
        finally:
            self._sync_lock.release()

    def schedule_sync(self) -> Optional[Future]:
        """Run sync_with_backend on the background executor."""
        if self.client is None:
            return None
        try:
            future = self._executor.submit(self._sync_quietly)
        except RuntimeError:
            # Executor already shut down
            return None
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    def wait_for_sync(self, timeout: Optional[float] = None) -> None:
        """Block until every scheduled sync has finished."""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.result(timeout=timeout)

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # -- Internal ---------------------------------------------------------------

    def _sync_quietly(self) -> None:
        try:
            self.sync_with_backend()
        except Exception as e:  # noqa: BLE001 - logging only
            print(f"[PersonalDictionary] Background sync error: {e}")

    def _snapshot_locked(self) -> DictionarySnapshot:
        return DictionarySnapshot(
            corrections=dict(self._corrections),
            custom_terms=list(self._custom_terms),
            last_sync=self._last_sync,
        )

    def _changed(self, sync: bool = True) -> None:
        """Persist, notify listeners, and optionally schedule a sync."""
        with self._lock:
            snapshot = self._snapshot_locked()

        try:
            self.store.save(snapshot)
        except OSError as e:
            print(f"[PersonalDictionary] Failed to save: {e}")

        for listener in list(self._listeners):
            listener(snapshot)

        if sync:
            self.schedule_sync()
