from __future__ import annotations

from http.client import RemoteDisconnected

import requests

from fear_greed import FearGreedIndexFetcher
from scalp_types import FearGreedData


class _Response:
    def __init__(self, payload):
        self._payload = payload

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


def test_fetch_parses_payload_and_caches(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return _Response(
            {"data": [{"value": "23", "value_classification": "Extreme Fear", "timestamp": "1700000000"}]}
        )

    monkeypatch.setattr(requests, "get", fake_get)
    fetcher = FearGreedIndexFetcher(timeout=1)

    first = fetcher.fetch()
    second = fetcher.fetch()

    assert first == second
    assert first.value == 23
    assert first.classification == "Extreme Fear"
    assert first.timestamp.startswith("2023-11-14")
    assert calls == [(FearGreedIndexFetcher.API_URL, {"limit": 1})]


def test_fetch_remote_disconnected_uses_cache(monkeypatch):
    fetcher = FearGreedIndexFetcher(timeout=1)
    cached = FearGreedData(value=42, classification="Fear", timestamp="t")
    fetcher.cache.set("fear_greed", cached)

    def raise_remote():
        raise RemoteDisconnected("boom")

    monkeypatch.setattr(fetcher, "_fetch_remote", raise_remote)

    assert fetcher.fetch() == cached


def test_fetch_remote_disconnected_without_cache_returns_none(monkeypatch):
    fetcher = FearGreedIndexFetcher(timeout=1)

    def raise_remote():
        raise RemoteDisconnected("boom")

    monkeypatch.setattr(fetcher, "_fetch_remote", raise_remote)

    assert fetcher.fetch() is None


def test_fetch_network_error_returns_none(monkeypatch):
    def fake_get(*_args, **_kwargs):
        raise requests.exceptions.ConnectionError("down")

    monkeypatch.setattr(requests, "get", fake_get)
    assert FearGreedIndexFetcher(timeout=1).fetch() is None


def test_out_of_range_value_is_rejected(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **k: _Response({"data": [{"value": "140"}]}))
    fetcher = FearGreedIndexFetcher(timeout=1)
    assert fetcher.fetch() is None
    assert fetcher.cache.size() == 0
