from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Optional

import requests
from http.client import RemoteDisconnected
from requests import exceptions as requests_exceptions

from log_utils import setup_logger
from scalp_types import FearGreedData
from ttl_cache import TtlCache

logger = setup_logger(__name__)

_CACHE_KEY = "fear_greed"
CACHE_TTL_SECONDS = 15 * 60


def _http_timeout() -> float:
    try:
        return float(os.getenv("HTTP_TIMEOUT", "10"))
    except ValueError:
        return 10.0


class FearGreedIndexFetcher:
    """Fetch the Fear & Greed index with an in-memory TTL cache."""

    API_URL = "https://api.alternative.me/fng/"

    def __init__(self, cache: Optional[TtlCache[FearGreedData]] = None, timeout: Optional[float] = None) -> None:
        self.cache: TtlCache[FearGreedData] = cache or TtlCache(CACHE_TTL_SECONDS)
        self.timeout = timeout if timeout is not None else _http_timeout()

    def fetch(self) -> Optional[FearGreedData]:
        """Return the latest Fear & Greed reading, or ``None`` when unavailable."""

        cached = self.cache.get(_CACHE_KEY)
        if cached is not None:
            return cached

        try:
            data = self._fetch_remote()
        except RemoteDisconnected as exc:
            logger.warning("Connection dropped fetching Fear & Greed Index: %s", exc)
            return None
        except requests_exceptions.SSLError as exc:
            logger.warning("TLS error fetching Fear & Greed Index: %s", exc)
            return None
        except requests_exceptions.RequestException as exc:
            logger.warning("Network error fetching Fear & Greed Index: %s", exc)
            return None
        except ValueError as exc:
            logger.warning("Malformed Fear & Greed payload: %s", exc)
            return None
        except Exception as exc:  # pragma: no cover - unexpected failure path
            logger.warning(
                "Unexpected failure fetching Fear & Greed Index: %s",
                exc,
                exc_info=True,
            )
            return None

        self.cache.set(_CACHE_KEY, data)
        logger.info("Fear & Greed: %d (%s)", data.value, data.classification)
        return data

    def _fetch_remote(self) -> FearGreedData:
        response = requests.get(self.API_URL, params={"limit": 1}, timeout=self.timeout)
        response.raise_for_status()
        return self._parse_payload(response.json())

    @staticmethod
    def _parse_payload(data: Any) -> FearGreedData:
        try:
            entry = data["data"][0]
            value = int(entry["value"])
        except (KeyError, ValueError, IndexError, TypeError) as exc:
            raise ValueError("Fear & Greed payload missing 'data[0][\"value\"]'") from exc

        if not 0 <= value <= 100:
            raise ValueError(f"Fear & Greed Index value out of range: {value}")

        timestamp = datetime.now(timezone.utc).isoformat()
        raw_ts = entry.get("timestamp")
        if raw_ts is not None:
            try:
                timestamp = datetime.fromtimestamp(int(raw_ts), tz=timezone.utc).isoformat()
            except (TypeError, ValueError, OverflowError):
                pass
        return FearGreedData(
            value=value,
            classification=str(entry.get("value_classification") or "Unknown"),
            timestamp=timestamp,
        )


_FETCHER = FearGreedIndexFetcher()


def get_fear_greed_index() -> Optional[FearGreedData]:
    """Public helper that returns the latest Fear & Greed reading."""

    return _FETCHER.fetch()
