"""
HTTP client for the workout ingestor backend.

The backend proxies cloud transcription (Deepgram / AssemblyAI) and stores
the user's personal dictionary.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests


class BackendError(Exception):
    """Base class for backend client failures."""


class UnauthorizedError(BackendError):
    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


class ServerError(BackendError):
    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Server error {status_code}: {body[:200]}")


class BackendNetworkError(BackendError):
    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class InvalidResponseError(BackendError):
    def __init__(self, message: str = "Invalid server response"):
        super().__init__(message)


@dataclass
class CloudWordTiming:
    word: str
    start: float
    end: float
    confidence: Optional[float] = None


@dataclass
class CloudTranscriptionResponse:
    text: str
    confidence: float
    words: Optional[List[CloudWordTiming]] = None
    provider: str = ""
    duration_ms: Optional[int] = None


@dataclass
class PersonalDictionaryResponse:
    corrections: Dict[str, str] = field(default_factory=dict)
    custom_terms: List[str] = field(default_factory=list)


def _pick(data: Dict[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a key the backend may send in either snake_case or camelCase."""
    if snake in data:
        return data[snake]
    return data.get(camel, default)


class BackendClient:
    """
    Thin wrapper around the backend REST API.

    A persistent requests.Session is reused across calls (saves the TLS
    handshake on every request). Every request is bounded by timeout;
    requests has no way to abort one that is already waiting on the socket.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self) -> None:
        self.session.close()

    @property
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    # -- Voice transcription ------------------------------------------------

    def transcribe_audio(
        self,
        audio_data: str,
        provider: str,
        language: str,
        keywords: List[str],
        include_word_timings: bool = True,
    ) -> CloudTranscriptionResponse:
        """
        Transcribe base64 audio through the backend.

        Args:
            audio_data: Base64-encoded audio file contents
            provider: "deepgram" or "assemblyai"
            language: Language/accent code (e.g. "en-US")
            keywords: Vocabulary hints for boosting
            include_word_timings: Ask for word-level timings

        Returns:
            Parsed transcription response
        """
        body = {
            "audio": audio_data,
            "provider": provider,
            "language": language,
            "keywords": keywords,
            "include_word_timings": include_word_timings,
        }
        data = self._request("POST", "/voice/transcribe", json=body, ok=(200, 201))

        try:
            words = None
            raw_words = data.get("words")
            if raw_words is not None:
                words = [
                    CloudWordTiming(
                        word=str(w["word"]),
                        start=float(w["start"]),
                        end=float(w["end"]),
                        confidence=None if w.get("confidence") is None else float(w["confidence"]),
                    )
                    for w in raw_words
                ]

            duration = _pick(data, "duration_ms", "durationMs")
            return CloudTranscriptionResponse(
                text=str(data["text"]),
                confidence=float(data["confidence"]),
                words=words,
                provider=str(data.get("provider", provider)),
                duration_ms=None if duration is None else int(duration),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(f"Malformed transcription response: {e}") from e

    # -- Personal dictionary ------------------------------------------------

    def sync_personal_dictionary(
        self,
        corrections: Dict[str, str],
        custom_terms: List[str],
    ) -> PersonalDictionaryResponse:
        """Push local dictionary and receive the merged server copy."""
        body = {
            "corrections": corrections,
            "custom_terms": custom_terms,
        }
        data = self._request("POST", "/voice/dictionary", json=body, ok=(200, 201))
        return self._parse_dictionary(data)

    def fetch_personal_dictionary(self) -> PersonalDictionaryResponse:
        """Fetch the server copy of the dictionary."""
        data = self._request("GET", "/voice/dictionary", ok=(200,))
        return self._parse_dictionary(data)

    def _parse_dictionary(self, data: Dict[str, Any]) -> PersonalDictionaryResponse:
        corrections = data.get("corrections")
        terms = _pick(data, "custom_terms", "customTerms")
        if not isinstance(corrections, dict) or not isinstance(terms, list):
            raise InvalidResponseError("Malformed dictionary response")
        return PersonalDictionaryResponse(
            corrections={str(k): str(v) for k, v in corrections.items()},
            custom_terms=[str(t) for t in terms],
        )

    # -- Transport ------------------------------------------------------------

    def _request(self, method: str, path: str, ok: tuple = (200,), **kwargs) -> Dict[str, Any]:
        if not self.auth_token:
            raise UnauthorizedError("No auth token configured")

        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise BackendNetworkError(e) from e

        if response.status_code == 401:
            raise UnauthorizedError()
        if response.status_code not in ok:
            print(f"[API] {method} {path} failed: HTTP {response.status_code}")
            raise ServerError(response.status_code, response.text or "")

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponseError(f"Response is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidResponseError("Response is not a JSON object")
        return data
