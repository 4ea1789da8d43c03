"""Transcription error kinds and user-facing messages."""

from typing import Optional

NOT_AVAILABLE = "not_available"
PERMISSION_DENIED = "permission_denied"
RECOGNITION_FAILED = "recognition_failed"
NO_SPEECH_DETECTED = "no_speech_detected"
CANCELLED = "cancelled"
NETWORK_ERROR = "network_error"
API_ERROR = "api_error"
INVALID_AUDIO_FORMAT = "invalid_audio_format"

ERROR_MESSAGES = {
    NOT_AVAILABLE: "Speech recognition is not available on this device",
    PERMISSION_DENIED: "Speech recognition permission is required",
    RECOGNITION_FAILED: "Transcription failed",
    NO_SPEECH_DETECTED: "No speech was detected in the recording",
    CANCELLED: "Transcription was cancelled",
    NETWORK_ERROR: "Network error",
    API_ERROR: "API error",
    INVALID_AUDIO_FORMAT: "Invalid audio format for transcription",
}


class TranscriptionError(Exception):
    """Base class for every failure a transcription call can surface."""

    kind = RECOGNITION_FAILED

    def __init__(self, message: Optional[str] = None):
        self.message = message or ERROR_MESSAGES[self.kind]
        super().__init__(self.message)


class NotAvailableError(TranscriptionError):
    kind = NOT_AVAILABLE


class PermissionDeniedError(TranscriptionError):
    kind = PERMISSION_DENIED


class RecognitionFailedError(TranscriptionError):
    """Wraps an underlying engine fault."""

    kind = RECOGNITION_FAILED

    def __init__(self, cause: Optional[BaseException] = None):
        self.cause = cause
        message = ERROR_MESSAGES[RECOGNITION_FAILED]
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class NoSpeechDetectedError(TranscriptionError):
    kind = NO_SPEECH_DETECTED


class CancelledError(TranscriptionError):
    kind = CANCELLED


class NetworkError(TranscriptionError):
    kind = NETWORK_ERROR

    def __init__(self, cause: Optional[BaseException] = None):
        self.cause = cause
        message = ERROR_MESSAGES[NETWORK_ERROR]
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class APIError(TranscriptionError):
    """Error status returned by a cloud backend."""

    kind = API_ERROR

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{ERROR_MESSAGES[API_ERROR]} ({status_code}): {detail}")


class InvalidAudioFormatError(TranscriptionError):
    kind = INVALID_AUDIO_FORMAT


def wrap_error(exc: BaseException) -> TranscriptionError:
    """Return exc if it already belongs to the taxonomy, else wrap it as recognition_failed."""
    if isinstance(exc, TranscriptionError):
        return exc
    return RecognitionFailedError(exc)
