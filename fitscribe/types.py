"""
Shared type definitions for FitScribe.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


# Results at or above this confidence never trigger a cloud fallback
CONFIDENCE_THRESHOLD = 0.80


def is_high_confidence(confidence: float) -> bool:
    """Check a confidence score against the fixed high-confidence threshold."""
    return confidence >= CONFIDENCE_THRESHOLD


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


class TranscriptionProvider(str, Enum):
    """Available transcription providers."""
    ON_DEVICE = "on_device"     # Local recognizer (free, private)
    DEEPGRAM = "deepgram"       # Cloud - best accuracy
    ASSEMBLYAI = "assemblyai"   # Cloud - budget option
    SMART = "smart"             # On-device first, cloud fallback if low confidence

    @property
    def display_name(self) -> str:
        return _PROVIDER_INFO[self][0]

    @property
    def description(self) -> str:
        return _PROVIDER_INFO[self][1]

    @property
    def cost_info(self) -> str:
        return _PROVIDER_INFO[self][2]

    @property
    def best_for(self) -> str:
        return _PROVIDER_INFO[self][3]

    @property
    def is_cloud(self) -> bool:
        # Smart is not cloud: its primary attempt stays on-device
        return self in (TranscriptionProvider.DEEPGRAM, TranscriptionProvider.ASSEMBLYAI)


# (display name, description, cost, best for)
_PROVIDER_INFO = {
    TranscriptionProvider.ON_DEVICE: (
        "On-Device", "Privacy-first. Audio never leaves device.",
        "FREE", "Clear speech, US English",
    ),
    TranscriptionProvider.DEEPGRAM: (
        "Deepgram", "Best accuracy & accent handling.",
        "~$0.01/min", "Accents, noisy environments",
    ),
    TranscriptionProvider.ASSEMBLYAI: (
        "AssemblyAI", "Good accuracy, lowest cost.",
        "~$0.005/min", "Budget-conscious users",
    ),
    TranscriptionProvider.SMART: (
        "Smart", "On-device first, cloud fallback if needed.",
        "AUTO", "Most users (recommended)",
    ),
}


class AccentRegion(str, Enum):
    """Supported accent/language regions for transcription."""
    EN_US = "en-US"
    EN_GB = "en-GB"
    EN_AU = "en-AU"
    EN_IN = "en-IN"
    EN_ZA = "en-ZA"
    EN_NG = "en-NG"
    EN_OTHER = "en"

    @property
    def display_name(self) -> str:
        return _ACCENT_NAMES[self]


_ACCENT_NAMES = {
    AccentRegion.EN_US: "US English",
    AccentRegion.EN_GB: "UK English",
    AccentRegion.EN_AU: "Australian English",
    AccentRegion.EN_IN: "Indian English",
    AccentRegion.EN_ZA: "South African English",
    AccentRegion.EN_NG: "Nigerian English",
    AccentRegion.EN_OTHER: "Other accented English",
}


@dataclass(frozen=True)
class WordTiming:
    """Word-level timing information (when the engine provides it)."""
    word: str
    start: float
    end: float
    confidence: Optional[float] = None


@dataclass(frozen=True)
class TranscriptionResult:
    """Result from a single engine transcribing a single recording."""
    text: str
    confidence: float
    provider: TranscriptionProvider
    words: Optional[List[WordTiming]] = None

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    @property
    def is_high_confidence(self) -> bool:
        return is_high_confidence(self.confidence)

    def with_text(self, text: str) -> "TranscriptionResult":
        """Copy of this result with only the text replaced."""
        return replace(self, text=text)


@dataclass
class RouterSettings:
    """
    User-selected routing preferences.
    Persisted as a JSON blob after every mutation.
    """
    preferred_provider: TranscriptionProvider = TranscriptionProvider.SMART
    accent_region: AccentRegion = AccentRegion.EN_US
    cloud_fallback_enabled: bool = True
    fallback_provider: TranscriptionProvider = TranscriptionProvider.DEEPGRAM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.preferred_provider.value,
            "accent": self.accent_region.value,
            "cloud_fallback": self.cloud_fallback_enabled,
            "fallback_provider": self.fallback_provider.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RouterSettings":
        """Build settings from a persisted blob. Invalid values fall back to defaults."""
        settings = cls()

        try:
            settings.preferred_provider = TranscriptionProvider(data.get("provider"))
        except ValueError:
            pass

        try:
            settings.accent_region = AccentRegion(data.get("accent"))
        except ValueError:
            pass

        if isinstance(data.get("cloud_fallback"), bool):
            settings.cloud_fallback_enabled = data["cloud_fallback"]

        try:
            fallback = TranscriptionProvider(data.get("fallback_provider"))
            if fallback.is_cloud:
                settings.fallback_provider = fallback
        except ValueError:
            pass

        return settings


@dataclass
class DictionarySnapshot:
    """Point-in-time copy of the personal dictionary state."""
    corrections: Dict[str, str] = field(default_factory=dict)
    custom_terms: List[str] = field(default_factory=list)
    last_sync: Optional[datetime] = None
