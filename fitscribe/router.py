"""
Transcription provider routing.

Chooses an engine from the user's settings and applies the smart-mode policy:
- Try on-device first
- Fall back to the configured cloud engine when on-device fails or reports
  low confidence (< 0.80)
- Keep the on-device result on ties and when the fallback itself fails

Every final transcript goes through the personal dictionary before it is
returned.
"""

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Set
import threading
import time

from .api import BackendClient
from .config import Config, DictionaryStore, SettingsStore
from .dictionary import PersonalDictionary
from .engines import AudioPath, Engine
from .engines.cloud import CloudEngine
from .engines.on_device import LocalRecognizer, OnDeviceEngine, ParakeetRecognizer
from .errors import CancelledError, TranscriptionError, wrap_error
from .metrics import MetricsWriter, TranscriptionEvent, record
from .types import AccentRegion, RouterSettings, TranscriptionProvider, TranscriptionResult
from .vocabulary import FitnessVocabulary


@dataclass(frozen=True)
class RouterState:
    """Observable router state for UI layers."""
    is_transcribing: bool = False
    last_result: Optional[TranscriptionResult] = None
    last_error: Optional[TranscriptionError] = None


@dataclass
class _Outcome:
    result: TranscriptionResult
    fallback_attempted: bool = False
    fallback_used: bool = False


class TranscriptionRouter:
    """
    Routes transcription requests to the appropriate engine.

    Concurrent transcribe() calls are not serialized; the last one to finish
    determines last_result / last_error.
    """

    def __init__(
        self,
        settings_store: SettingsStore,
        vocabulary: FitnessVocabulary,
        dictionary: PersonalDictionary,
        on_device: OnDeviceEngine,
        deepgram: Engine,
        assemblyai: Engine,
        metrics: Optional[MetricsWriter] = None,
    ):
        self.settings_store = settings_store
        self.vocabulary = vocabulary
        self.dictionary = dictionary
        self.metrics = metrics

        self.on_device = on_device
        self.engines: Dict[TranscriptionProvider, Engine] = {
            TranscriptionProvider.ON_DEVICE: on_device,
            TranscriptionProvider.DEEPGRAM: deepgram,
            TranscriptionProvider.ASSEMBLYAI: assemblyai,
        }

        self._settings = settings_store.load()
        self._state = RouterState()
        self._state_lock = threading.Lock()
        self._listeners: List[Callable[[RouterState], None]] = []
        # Cancel tokens of transcribe() calls in progress
        self._active: Set[threading.Event] = set()

    @classmethod
    def create(
        cls,
        config: Config,
        recognizer: Optional[LocalRecognizer] = None,
        client: Optional[BackendClient] = None,
        metrics: Optional[MetricsWriter] = None,
        vocabulary: Optional[FitnessVocabulary] = None,
    ) -> "TranscriptionRouter":
        """
        Build the default object graph from a Config.

        Args:
            config: Loaded configuration
            recognizer: Local recognizer (default: Parakeet, loaded on first use)
            client: Backend client (default: built from config)
            metrics: Optional metrics writer
            vocabulary: Vocabulary (default: bundled resource)
        """
        settings_store = SettingsStore(config.settings_file)
        settings = settings_store.load()

        if client is None:
            client = BackendClient(
                config.api_base_url,
                auth_token=config.auth_token,
                timeout=config.request_timeout,
            )

        if recognizer is None:
            # Weights load on the first on-device transcription
            recognizer = ParakeetRecognizer()

        dictionary = PersonalDictionary(DictionaryStore(config.dictionary_file), client, metrics=metrics)

        return cls(
            settings_store=settings_store,
            vocabulary=vocabulary or FitnessVocabulary.load(),
            dictionary=dictionary,
            on_device=OnDeviceEngine(
                recognizer,
                language=settings.accent_region.value,
                permission_granted=config.speech_permission_granted,
            ),
            deepgram=CloudEngine.deepgram(client),
            assemblyai=CloudEngine.assembly_ai(client),
            metrics=metrics,
        )

    # -- State ----------------------------------------------------------------

    def state(self) -> RouterState:
        with self._state_lock:
            return self._state

    @property
    def is_transcribing(self) -> bool:
        return self.state().is_transcribing

    @property
    def last_result(self) -> Optional[TranscriptionResult]:
        return self.state().last_result

    @property
    def last_error(self) -> Optional[TranscriptionError]:
        return self.state().last_error

    def subscribe(self, callback: Callable[[RouterState], None]) -> None:
        """Call callback with the new state after every change."""
        self._listeners.append(callback)

    def _set_state(self, **changes) -> None:
        with self._state_lock:
            self._state = replace(self._state, **changes)
            state = self._state
        for listener in list(self._listeners):
            listener(state)

    # -- Settings -------------------------------------------------------------

    @property
    def settings(self) -> RouterSettings:
        return replace(self._settings)

    def update_settings(self, **changes) -> RouterSettings:
        """
        Change one or more settings and persist them.

        Raises:
            ValueError: If fallback_provider is not a cloud provider
        """
        updated = replace(self._settings, **changes)
        updated.preferred_provider = TranscriptionProvider(updated.preferred_provider)
        updated.accent_region = AccentRegion(updated.accent_region)
        updated.fallback_provider = TranscriptionProvider(updated.fallback_provider)
        if not updated.fallback_provider.is_cloud:
            raise ValueError(f"Fallback provider must be a cloud provider, got {updated.fallback_provider.value}")

        self._settings = updated
        self.settings_store.save(updated)
        return self.settings

    @property
    def preferred_provider(self) -> TranscriptionProvider:
        return self._settings.preferred_provider

    @preferred_provider.setter
    def preferred_provider(self, value: TranscriptionProvider) -> None:
        self.update_settings(preferred_provider=value)

    @property
    def accent_region(self) -> AccentRegion:
        return self._settings.accent_region

    @accent_region.setter
    def accent_region(self, value: AccentRegion) -> None:
        self.update_settings(accent_region=value)

    @property
    def cloud_fallback_enabled(self) -> bool:
        return self._settings.cloud_fallback_enabled

    @cloud_fallback_enabled.setter
    def cloud_fallback_enabled(self, value: bool) -> None:
        self.update_settings(cloud_fallback_enabled=bool(value))

    @property
    def fallback_provider(self) -> TranscriptionProvider:
        return self._settings.fallback_provider

    @fallback_provider.setter
    def fallback_provider(self, value: TranscriptionProvider) -> None:
        self.update_settings(fallback_provider=value)

    # -- Transcription --------------------------------------------------------

    def transcribe(
        self,
        audio_path: AudioPath,
        provider_override: Optional[TranscriptionProvider] = None,
    ) -> TranscriptionResult:
        """
        Transcribe audio using the configured provider(s).

        Args:
            audio_path: Recorded audio file
            provider_override: Use this provider instead of the settings, for this call only

        Returns:
            Corrected transcription result

        Raises:
            TranscriptionError: If no usable result could be produced.
                CancelledError if cancel() was called at any point before
                the result was ready.
        """
        cancelled = threading.Event()
        with self._state_lock:
            self._active.add(cancelled)
        self._set_state(is_transcribing=True, last_result=None, last_error=None)

        settings = self.settings
        provider = TranscriptionProvider(provider_override or settings.preferred_provider)
        keywords = self._build_keyword_list()
        start = time.perf_counter()

        try:
            if provider == TranscriptionProvider.SMART:
                outcome = self._transcribe_smart(audio_path, keywords, settings, cancelled)
            else:
                outcome = _Outcome(self._call(provider, audio_path, keywords, settings, cancelled))

            corrected = self._apply_personal_dictionary(outcome.result)

        except Exception as e:
            error = wrap_error(e)
            self._set_state(is_transcribing=False, last_error=error)
            record(self.metrics, TranscriptionEvent(
                requested=provider.value,
                provider=None,
                latency_ms=_elapsed_ms(start),
                error=error.kind,
            ))
            if error is e:
                raise
            raise error from e

        finally:
            with self._state_lock:
                self._active.discard(cancelled)

        self._set_state(is_transcribing=False, last_result=corrected)
        record(self.metrics, TranscriptionEvent(
            requested=provider.value,
            provider=corrected.provider.value,
            latency_ms=_elapsed_ms(start),
            confidence=corrected.confidence,
            fallback_attempted=outcome.fallback_attempted,
            fallback_used=outcome.fallback_used,
        ))
        return corrected

    def cancel(self) -> None:
        """Cancel every in-progress transcription."""
        with self._state_lock:
            active = list(self._active)
        for token in active:
            token.set()
        for engine in self.engines.values():
            engine.cancel()
        self._set_state(is_transcribing=False)

    def _call(
        self,
        provider: TranscriptionProvider,
        audio_path: AudioPath,
        keywords: List[str],
        settings: RouterSettings,
        cancelled: threading.Event,
    ) -> TranscriptionResult:
        """One engine call. A cancel before or during the call wins over its outcome."""
        if cancelled.is_set():
            raise CancelledError()
        engine = self.engines[provider]
        try:
            result = engine.transcribe(
                audio_path,
                language=settings.accent_region.value,
                keywords=keywords,
                cancelled=cancelled,
            )
        except Exception as e:
            if cancelled.is_set():
                raise CancelledError() from e
            raise
        if cancelled.is_set():
            raise CancelledError()
        return result

    def _transcribe_smart(
        self,
        audio_path: AudioPath,
        keywords: List[str],
        settings: RouterSettings,
        cancelled: threading.Event,
    ) -> _Outcome:
        """Smart transcription: on-device first, cloud fallback if low confidence."""
        fallback = settings.fallback_provider

        try:
            on_device = self._call(TranscriptionProvider.ON_DEVICE, audio_path, keywords, settings, cancelled)
        except CancelledError:
            raise
        except Exception as e:
            if not settings.cloud_fallback_enabled:
                raise
            print(f"[Router] On-device failed ({e}), trying {fallback.value}")
            cloud = self._call(fallback, audio_path, keywords, settings, cancelled)
            return _Outcome(cloud, fallback_attempted=True, fallback_used=True)

        if on_device.is_high_confidence or not settings.cloud_fallback_enabled:
            return _Outcome(on_device)

        print(
            f"[Router] On-device confidence {on_device.confidence:.1%} below threshold, "
            f"trying {fallback.value}"
        )

        try:
            cloud = self._call(fallback, audio_path, keywords, settings, cancelled)
        except CancelledError:
            raise
        except Exception as e:
            print(f"[Router] Cloud fallback failed: {e}, using on-device result")
            return _Outcome(on_device, fallback_attempted=True)

        # Ties keep the on-device result
        if cloud.confidence > on_device.confidence:
            print(f"[Router] Using cloud result (confidence: {cloud.confidence:.1%})")
            return _Outcome(cloud, fallback_attempted=True, fallback_used=True)

        print("[Router] On-device result was better, keeping it")
        return _Outcome(on_device, fallback_attempted=True)

    def _build_keyword_list(self) -> List[str]:
        """Vocabulary keywords plus custom terms, without duplicates."""
        keywords = self.vocabulary.all_keywords + self.dictionary.custom_terms
        return list(dict.fromkeys(keywords))

    def _apply_personal_dictionary(self, result: TranscriptionResult) -> TranscriptionResult:
        corrected = self.dictionary.apply_corrections(result.text)
        if corrected != result.text:
            return result.with_text(corrected)
        return result

    # -- Availability ---------------------------------------------------------

    def is_provider_available(self, provider: TranscriptionProvider) -> bool:
        """Check if a provider is currently available."""
        if provider.is_cloud:
            # Actual availability is only known at request time
            return True
        # Smart needs at least the on-device engine
        return self.on_device.is_available

    @property
    def recommended_provider(self) -> TranscriptionProvider:
        """Smart where local recognition works, otherwise Deepgram."""
        if self.on_device.supports_on_device_recognition:
            return TranscriptionProvider.SMART
        return TranscriptionProvider.DEEPGRAM

    def get_routing_status(self) -> str:
        """Human-readable routing status for display."""
        settings = self.settings
        provider = settings.preferred_provider
        if provider != TranscriptionProvider.SMART:
            return f"All audio → {provider.display_name}"
        if not settings.cloud_fallback_enabled:
            return "Smart → On-Device only (cloud fallback disabled)"
        return f"Smart → On-Device, falls back to {settings.fallback_provider.display_name}"

    def shutdown(self) -> None:
        self.cancel()
        for engine in self.engines.values():
            engine.shutdown()
        self.dictionary.shutdown()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
