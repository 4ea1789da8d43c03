"""Pytest fixtures for FitScribe tests."""

from unittest.mock import Mock

import numpy as np
import pytest
import soundfile as sf

from fitscribe.config import DictionaryStore, SettingsStore
from fitscribe.dictionary import PersonalDictionary
from fitscribe.engines import Engine
from fitscribe.engines.on_device import OnDeviceEngine
from fitscribe.router import TranscriptionRouter
from fitscribe.types import TranscriptionProvider, TranscriptionResult
from fitscribe.vocabulary import FitnessVocabulary


@pytest.fixture
def wav_file(tmp_path):
    """Half a second of quiet noise as a 16kHz mono WAV."""
    path = tmp_path / "workout.wav"
    rng = np.random.default_rng(0)
    audio = (rng.standard_normal(8000) * 0.01).astype(np.float32)
    sf.write(str(path), audio, 16000, format="WAV", subtype="PCM_16")
    return path


@pytest.fixture
def dictionary(tmp_path):
    """Offline personal dictionary backed by a temp file."""
    d = PersonalDictionary(DictionaryStore(tmp_path / "personal_dictionary.json"))
    yield d
    d.shutdown()


@pytest.fixture
def vocabulary():
    return FitnessVocabulary({
        "strength_exercises": ["squats", "deadlifts"],
        "training_methods": ["AMRAP", "EMOM"],
    })


def result(text="ten squats", confidence=0.9, provider=TranscriptionProvider.ON_DEVICE):
    return TranscriptionResult(text=text, confidence=confidence, provider=provider)


def make_engine(spec, outcome, supports_on_device=True):
    """Mock engine whose transcribe returns outcome (or raises it if it's an exception)."""
    engine = Mock(spec=spec)
    engine.is_available = True
    engine.supports_on_device_recognition = supports_on_device
    if isinstance(outcome, BaseException):
        engine.transcribe.side_effect = outcome
    else:
        engine.transcribe.return_value = outcome
    return engine


@pytest.fixture
def make_router(tmp_path, dictionary, vocabulary):
    """Build a router around mock engines."""

    def _make(on_device=None, deepgram=None, assemblyai=None, **settings):
        on_device = on_device or make_engine(OnDeviceEngine, result())
        deepgram = deepgram or make_engine(
            Engine, result(provider=TranscriptionProvider.DEEPGRAM)
        )
        assemblyai = assemblyai or make_engine(
            Engine, result(provider=TranscriptionProvider.ASSEMBLYAI)
        )
        router = TranscriptionRouter(
            settings_store=SettingsStore(tmp_path / "settings.json"),
            vocabulary=vocabulary,
            dictionary=dictionary,
            on_device=on_device,
            deepgram=deepgram,
            assemblyai=assemblyai,
        )
        if settings:
            router.update_settings(**settings)
        return router

    return _make
