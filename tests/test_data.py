"""Tests for element-set ingestion from CelesTrak."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from astrashield.data.celestrak import CelesTrakClient
from astrashield.data.store import InMemoryObjectStore
from astrashield.utils.errors import FetchError
from tle_factory import (
    CSS_LINE1, CSS_LINE2,
    ISS_LINE1, ISS_LINE2,
)

FEED_TEXT = f"ISS (ZARYA)\n{ISS_LINE1}\n{ISS_LINE2}\nCSS (TIANHE)\n{CSS_LINE1}\n{CSS_LINE2}\n"


def _make_response(status_code: int = 200, text: str = "") -> MagicMock:
    """Helper to create a mock response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.raise_for_status = MagicMock()
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(response=resp)
    return resp


def test_client_defaults():
    client = CelesTrakClient()
    assert client.timeout == 30.0
    assert client.user_agent == "AstraShield/1.0"
    assert isinstance(client._session, requests.Session)


def test_fetch_primary():
    client = CelesTrakClient()
    with patch.object(client._session, "get", return_value=_make_response(200, FEED_TEXT)) as get:
        text = client.fetch_element_sets("stations")

    assert text == FEED_TEXT
    get.assert_called_once()
    args, kwargs = get.call_args
    assert args[0] == CelesTrakClient.PRIMARY_URL
    assert kwargs["params"] == {"GROUP": "stations", "FORMAT": "tle"}
    assert kwargs["headers"]["User-Agent"] == "AstraShield/1.0"
    assert kwargs["timeout"] == 30.0


def test_fetch_falls_back_on_connection_error():
    client = CelesTrakClient()
    responses = [requests.ConnectionError("down"), _make_response(200, FEED_TEXT)]
    with patch.object(client._session, "get", side_effect=responses) as get:
        text = client.fetch_element_sets()

    assert text == FEED_TEXT
    assert get.call_count == 2
    assert get.call_args_list[1][0][0] == CelesTrakClient.FALLBACK_URL


def test_fetch_falls_back_on_http_error():
    client = CelesTrakClient()
    responses = [_make_response(503, "unavailable"), _make_response(200, FEED_TEXT)]
    with patch.object(client._session, "get", side_effect=responses):
        assert client.fetch_element_sets() == FEED_TEXT


def test_fetch_all_sources_fail():
    client = CelesTrakClient()
    with patch.object(client._session, "get", side_effect=requests.Timeout("slow")):
        with pytest.raises(FetchError):
            client.fetch_element_sets()


def test_ingest_counts():
    client = CelesTrakClient()
    store = InMemoryObjectStore()
    with patch.object(client._session, "get", return_value=_make_response(200, FEED_TEXT)):
        first = client.ingest(store)
        second = client.ingest(store)

    assert (first.inserted, first.updated, first.total) == (2, 0, 2)
    assert (second.inserted, second.updated, second.total) == (0, 2, 2)
    assert len(store) == 2
    assert store.find_by_id(48274).name == "CSS (TIANHE)"


def test_ingest_counts_skipped():
    client = CelesTrakClient()
    store = InMemoryObjectStore()
    text = FEED_TEXT + "BROKEN\n1 99999U short\n2 99999 short\n"
    with patch.object(client._session, "get", return_value=_make_response(200, text)):
        summary = client.ingest(store)
    assert summary.skipped == 1
    assert summary.total == 2


def test_ingest_empty_feed():
    client = CelesTrakClient()
    store = InMemoryObjectStore()
    with patch.object(client._session, "get", return_value=_make_response(200, "")):
        with pytest.raises(FetchError, match="No valid element sets"):
            client.ingest(store)
    assert len(store) == 0
