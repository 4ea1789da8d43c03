import json
from datetime import datetime, timezone

from fitscribe.config import API_URLS, Config, DictionaryStore, SettingsStore
from fitscribe.types import AccentRegion, DictionarySnapshot, RouterSettings, TranscriptionProvider


def clear_env(monkeypatch):
    for key in ("FITSCRIBE_ENV", "FITSCRIBE_API_URL", "FITSCRIBE_AUTH_TOKEN",
                "FITSCRIBE_REQUEST_TIMEOUT", "FITSCRIBE_SPEECH_PERMISSION", "FITSCRIBE_DATA_DIR"):
        monkeypatch.delenv(key, raising=False)


def test_defaults(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    config = Config.load(tmp_path / "data")

    assert config.data_dir.exists()
    assert config.api_base_url == API_URLS["production"]
    assert config.auth_token == ""
    assert config.speech_permission_granted is True
    assert config.settings_file == tmp_path / "data" / "settings.json"


def test_env_file_then_environment(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / ".env").write_text(
        "# local\nFITSCRIBE_ENV=staging\nFITSCRIBE_AUTH_TOKEN='from-file'\nFITSCRIBE_REQUEST_TIMEOUT=12\n"
    )
    monkeypatch.setenv("FITSCRIBE_AUTH_TOKEN", "from-env")
    monkeypatch.setenv("FITSCRIBE_SPEECH_PERMISSION", "no")

    config = Config.load(data_dir)

    assert config.environment == "staging"
    assert config.api_base_url == API_URLS["staging"]
    assert config.auth_token == "from-env"
    assert config.request_timeout == 12.0
    assert config.speech_permission_granted is False


def test_explicit_api_url_wins(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FITSCRIBE_API_URL", "http://127.0.0.1:9000/")

    config = Config.load(tmp_path)
    assert config.api_base_url == "http://127.0.0.1:9000"


def test_invalid_values_ignored(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FITSCRIBE_ENV", "moon")
    monkeypatch.setenv("FITSCRIBE_REQUEST_TIMEOUT", "soon")

    config = Config.load(tmp_path)
    assert config.environment == "production"
    assert config.request_timeout == 30.0


def test_snapshot_is_frozen(tmp_path, monkeypatch):
    clear_env(monkeypatch)
    monkeypatch.chdir(tmp_path)
    config = Config.load(tmp_path)
    snapshot = config.snapshot()
    config.auth_token = "changed"
    assert snapshot.auth_token == ""


class TestSettingsStore:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert SettingsStore(tmp_path / "settings.json").load() == RouterSettings()

    def test_round_trip(self, tmp_path):
        store = SettingsStore(tmp_path / "settings.json")
        settings = RouterSettings(
            preferred_provider=TranscriptionProvider.ASSEMBLYAI,
            accent_region=AccentRegion.EN_NG,
            cloud_fallback_enabled=False,
            fallback_provider=TranscriptionProvider.ASSEMBLYAI,
        )
        store.save(settings)
        assert store.load() == settings

    def test_invalid_values_fall_back(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "provider": "carrier-pigeon",
            "accent": "en-GB",
            "cloud_fallback": "yes",
            "fallback_provider": "on_device",
        }))

        settings = SettingsStore(path).load()

        assert settings.preferred_provider == TranscriptionProvider.SMART
        assert settings.accent_region == AccentRegion.EN_GB
        assert settings.cloud_fallback_enabled is True
        assert settings.fallback_provider == TranscriptionProvider.DEEPGRAM

    def test_unreadable_file_gives_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2")
        assert SettingsStore(path).load() == RouterSettings()


class TestDictionaryStore:
    def test_round_trip(self, tmp_path):
        store = DictionaryStore(tmp_path / "d.json")
        stamp = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        store.save(DictionarySnapshot({"a": "b"}, ["Hyrox"], stamp))

        loaded = store.load()
        assert loaded.corrections == {"a": "b"}
        assert loaded.custom_terms == ["Hyrox"]
        assert loaded.last_sync == stamp

    def test_no_temp_files_left(self, tmp_path):
        store = DictionaryStore(tmp_path / "d.json")
        store.save(DictionarySnapshot())
        assert [p.name for p in tmp_path.iterdir()] == ["d.json"]
