"""
Tests for the backend HTTP client.

requests.Session is replaced by a Mock so no network is used.
"""

from unittest.mock import Mock

import pytest
import requests

from fitscribe.api import (
    BackendClient,
    BackendNetworkError,
    InvalidResponseError,
    ServerError,
    UnauthorizedError,
)


def make_response(status_code=200, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


def make_client(response=None, error=None, token="secret"):
    session = Mock(spec=requests.Session)
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value = response
    client = BackendClient("https://api.example.com/", auth_token=token, timeout=5, session=session)
    return client, session


class TestTranscribeAudio:
    def test_request_shape(self):
        client, session = make_client(make_response(payload={"text": "ten squats", "confidence": 0.9}))

        client.transcribe_audio("QUJD", "deepgram", "en-US", ["AMRAP"], True)

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "POST"
        assert url == "https://api.example.com/voice/transcribe"
        assert kwargs["json"] == {
            "audio": "QUJD",
            "provider": "deepgram",
            "language": "en-US",
            "keywords": ["AMRAP"],
            "include_word_timings": True,
        }
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["timeout"] == 5

    def test_parses_words_and_camel_case(self):
        payload = {
            "text": "ten squats",
            "confidence": 0.88,
            "provider": "assemblyai",
            "durationMs": 1200,
            "words": [
                {"word": "ten", "start": 0.0, "end": 0.4, "confidence": 0.9},
                {"word": "squats", "start": 0.4, "end": 1.0},
            ],
        }
        client, _ = make_client(make_response(201, payload))

        response = client.transcribe_audio("QUJD", "assemblyai", "en-US", [], True)

        assert response.text == "ten squats"
        assert response.confidence == 0.88
        assert response.duration_ms == 1200
        assert [w.word for w in response.words] == ["ten", "squats"]
        assert response.words[1].confidence is None

    def test_missing_fields_invalid(self):
        client, _ = make_client(make_response(payload={"confidence": 0.9}))
        with pytest.raises(InvalidResponseError):
            client.transcribe_audio("QUJD", "deepgram", "en-US", [], True)

    def test_non_json_invalid(self):
        client, _ = make_client(make_response(payload=ValueError("not json")))
        with pytest.raises(InvalidResponseError):
            client.transcribe_audio("QUJD", "deepgram", "en-US", [], True)

    def test_unauthorized(self):
        client, _ = make_client(make_response(401))
        with pytest.raises(UnauthorizedError):
            client.transcribe_audio("QUJD", "deepgram", "en-US", [], True)

    def test_server_error(self):
        client, _ = make_client(make_response(500, text="internal"))
        with pytest.raises(ServerError) as exc_info:
            client.transcribe_audio("QUJD", "deepgram", "en-US", [], True)
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "internal"

    def test_network_error(self):
        client, _ = make_client(error=requests.ConnectionError("offline"))
        with pytest.raises(BackendNetworkError):
            client.transcribe_audio("QUJD", "deepgram", "en-US", [], True)

    def test_no_token_fails_before_request(self):
        client, session = make_client(make_response(), token="")
        with pytest.raises(UnauthorizedError):
            client.transcribe_audio("QUJD", "deepgram", "en-US", [], True)
        session.request.assert_not_called()


class TestPersonalDictionary:
    def test_sync_request_and_response(self):
        payload = {"corrections": {"a": "c"}, "custom_terms": ["Murph"]}
        client, session = make_client(make_response(payload=payload))

        response = client.sync_personal_dictionary({"a": "b"}, ["Hyrox"])

        method, url = session.request.call_args.args
        assert (method, url) == ("POST", "https://api.example.com/voice/dictionary")
        assert session.request.call_args.kwargs["json"] == {
            "corrections": {"a": "b"},
            "custom_terms": ["Hyrox"],
        }
        assert response.corrections == {"a": "c"}
        assert response.custom_terms == ["Murph"]

    def test_fetch_accepts_camel_case(self):
        payload = {"corrections": {}, "customTerms": ["Fran"]}
        client, session = make_client(make_response(payload=payload))

        response = client.fetch_personal_dictionary()

        assert session.request.call_args.args[0] == "GET"
        assert response.custom_terms == ["Fran"]

    def test_malformed_dictionary(self):
        client, _ = make_client(make_response(payload={"corrections": []}))
        with pytest.raises(InvalidResponseError):
            client.fetch_personal_dictionary()

