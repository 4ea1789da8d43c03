"""
Configuration management with immutable snapshots.

Loads from: environment variables > .env files > defaults
Router settings and the personal dictionary are persisted as JSON blobs
in the data directory.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional
import json
import os
import tempfile

from .types import DictionarySnapshot, RouterSettings


API_URLS = {
    "development": "http://localhost:8004",
    "staging": "https://workout-ingestor-api.staging.amakaflow.com",
    "production": "https://workout-ingestor-api.amakaflow.com",
}

# Keys read from .env files and the environment
ENV_KEYS = {
    "FITSCRIBE_ENV": "environment",
    "FITSCRIBE_API_URL": "api_base_url",
    "FITSCRIBE_AUTH_TOKEN": "auth_token",
    "FITSCRIBE_REQUEST_TIMEOUT": "request_timeout",
    "FITSCRIBE_SPEECH_PERMISSION": "speech_permission_granted",
}

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Immutable snapshot of configuration.
    Handed to components at construction so later edits don't leak in.
    """
    environment: str
    api_base_url: str
    auth_token: str
    request_timeout: float
    speech_permission_granted: bool
    settings_file: str
    dictionary_file: str
    metrics_file: str


class Config:
    """
    Single source of truth for process-level settings.

    Usage:
        config = Config.load()
        snapshot = config.snapshot()
    """

    def __init__(self, data_dir: Optional[Path] = None):
        self.environment: str = "production"
        self._api_base_url: str = ""
        self.auth_token: str = ""
        self.request_timeout: float = 30.0
        self.speech_permission_granted: bool = True

        # Paths
        self.data_dir: Path = data_dir or Path.home() / ".fitscribe"
        self.settings_file: Path = self.data_dir / "settings.json"
        self.dictionary_file: Path = self.data_dir / "personal_dictionary.json"
        self.metrics_file: Path = self.data_dir / "metrics.jsonl"
        self.env_file: Path = self.data_dir / ".env"

    @property
    def api_base_url(self) -> str:
        """Explicit URL if one was configured, otherwise the environment's default."""
        if self._api_base_url:
            return self._api_base_url.rstrip("/")
        return API_URLS.get(self.environment, API_URLS["production"])

    @api_base_url.setter
    def api_base_url(self, value: str) -> None:
        self._api_base_url = value

    @classmethod
    def load(cls, data_dir: Optional[Path] = None) -> "Config":
        """Load configuration from all sources."""
        if data_dir is None and os.getenv("FITSCRIBE_DATA_DIR"):
            data_dir = Path(os.environ["FITSCRIBE_DATA_DIR"]).expanduser()

        config = cls(data_dir)
        config._ensure_data_dir()
        config._load_env()
        return config

    def _ensure_data_dir(self) -> None:
        """Create data directory if it doesn't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _load_env(self) -> None:
        """Load values from .env files, then let the environment override them."""
        # Project root first, then ~/.fitscribe/.env
        env_file = Path(".env")
        if env_file.exists():
            self._parse_env_file(env_file)

        if self.env_file.exists():
            self._parse_env_file(self.env_file)

        for key in ENV_KEYS:
            value = os.getenv(key)
            if value is not None:
                self._apply(key, value)

    def _parse_env_file(self, env_file: Path) -> None:
        """Parse a .env file and apply the keys we know about."""
        try:
            with open(env_file) as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    key = key.strip()
                    value = value.strip().strip("'\"")

                    if key in ENV_KEYS:
                        self._apply(key, value)
        except OSError as e:
            print(f"Error loading {env_file}: {e}")

    def _apply(self, key: str, value: str) -> None:
        attr = ENV_KEYS[key]
        if attr == "request_timeout":
            try:
                self.request_timeout = float(value)
            except ValueError:
                print(f"Ignoring invalid {key}: {value!r}")
        elif attr == "speech_permission_granted":
            self.speech_permission_granted = value.strip().lower() in _TRUTHY
        elif attr == "environment":
            if value in API_URLS:
                self.environment = value
            else:
                print(f"Ignoring unknown {key}: {value!r}")
        else:
            setattr(self, attr, value)

    def snapshot(self) -> ConfigSnapshot:
        """Return immutable copy."""
        return ConfigSnapshot(
            environment=self.environment,
            api_base_url=self.api_base_url,
            auth_token=self.auth_token,
            request_timeout=self.request_timeout,
            speech_permission_granted=self.speech_permission_granted,
            settings_file=str(self.settings_file),
            dictionary_file=str(self.dictionary_file),
            metrics_file=str(self.metrics_file),
        )


def _read_json(path: Path) -> Optional[dict]:
    if not path.exists():
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        print(f"Error loading {path}: {e}")
        return None
    return data if isinstance(data, dict) else None


def _write_json(path: Path, data: dict) -> None:
    """Write JSON atomically (temp file + rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class SettingsStore:
    """Persists RouterSettings to settings.json."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> RouterSettings:
        """Load saved settings, or defaults if nothing usable is stored."""
        data = _read_json(self.path)
        if data is None:
            return RouterSettings()
        return RouterSettings.from_dict(data)

    def save(self, settings: RouterSettings) -> None:
        _write_json(self.path, settings.to_dict())


class DictionaryStore:
    """Persists the personal dictionary to personal_dictionary.json."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> DictionarySnapshot:
        data = _read_json(self.path)
        if data is None:
            return DictionarySnapshot()

        corrections = data.get("corrections") or {}
        terms = data.get("custom_terms") or []
        last_sync = None
        if data.get("last_sync"):
            try:
                last_sync = datetime.fromisoformat(data["last_sync"])
            except (TypeError, ValueError):
                last_sync = None

        return DictionarySnapshot(
            corrections={str(k): str(v) for k, v in dict(corrections).items()},
            custom_terms=[str(t) for t in terms],
            last_sync=last_sync,
        )

    def save(self, snapshot: DictionarySnapshot) -> None:
        _write_json(self.path, {
            "corrections": dict(snapshot.corrections),
            "custom_terms": list(snapshot.custom_terms),
            "last_sync": snapshot.last_sync.isoformat() if snapshot.last_sync else None,
        })
