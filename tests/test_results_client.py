import io
import json
from urllib import error

import pytest

from data import results_client
from data.results_client import ResultsClient, SinkError


class FakeResponse:
    def __init__(self, status=201):
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


def test_posts_record_with_store_headers(monkeypatch):
    seen = {}

    def fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["method"] = req.get_method()
        seen["headers"] = {k.lower(): v for k, v in req.header_items()}
        seen["body"] = json.loads(req.data.decode("utf-8"))
        seen["timeout"] = timeout
        return FakeResponse(201)

    monkeypatch.setattr(results_client.request, "urlopen", fake_urlopen)
    client = ResultsClient("https://db.example.org/", "secret", timeout_sec=3)
    client.submit({"unique_id": "p1", "total_trials": 0})

    assert seen["url"] == "https://db.example.org/rest/v1/experiment_results"
    assert seen["method"] == "POST"
    assert seen["headers"]["apikey"] == "secret"
    assert seen["headers"]["authorization"] == "Bearer secret"
    assert seen["headers"]["prefer"] == "return=minimal"
    assert seen["body"]["unique_id"] == "p1"
    assert seen["timeout"] == 3
    assert client.last_error == ""


def test_disabled_client_raises():
    client = ResultsClient("", "")
    assert not client.enabled
    with pytest.raises(SinkError):
        client.submit({"unique_id": "p1"})


def test_invalid_url_raises():
    client = ResultsClient("ftp//nowhere", "key")
    with pytest.raises(SinkError):
        client.submit({"unique_id": "p1"})
    assert client.last_error == "invalid_url"


def test_http_error_becomes_sink_error(monkeypatch):
    def fake_urlopen(req, timeout):
        raise error.HTTPError(req.full_url, 401, "Unauthorized", {}, io.BytesIO(b""))

    monkeypatch.setattr(results_client.request, "urlopen", fake_urlopen)
    client = ResultsClient("https://db.example.org", "key")
    with pytest.raises(SinkError):
        client.submit({"unique_id": "p1"})
    assert client.last_error == "http_status_401"


def test_network_error_becomes_sink_error(monkeypatch):
    def fake_urlopen(req, timeout):
        raise error.URLError("connection refused")

    monkeypatch.setattr(results_client.request, "urlopen", fake_urlopen)
    client = ResultsClient("https://db.example.org", "key")
    with pytest.raises(SinkError):
        client.submit({"unique_id": "p1"})
    assert client.last_error == "connection_error"


def test_non_2xx_status_raises(monkeypatch):
    monkeypatch.setattr(results_client.request, "urlopen", lambda req, timeout: FakeResponse(302))
    client = ResultsClient("https://db.example.org", "key")
    with pytest.raises(SinkError):
        client.submit({"unique_id": "p1"})


def test_check_connection(monkeypatch):
    monkeypatch.setattr(results_client.request, "urlopen", lambda req, timeout: FakeResponse(200))
    ok, _ = ResultsClient("https://db.example.org", "key").check_connection()
    assert ok
    ok, message = ResultsClient("", "").check_connection()
    assert not ok
    assert "disabled" in message
