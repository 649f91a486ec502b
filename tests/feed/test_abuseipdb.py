from __future__ import annotations

import json

import httpx
import pytest

from blacklist_sync.config import FeedConfig
from blacklist_sync.entry import SourceBackend
from blacklist_sync.errors import FeedParseError
from blacklist_sync.feed import AbuseIpDbClient


def _client(handler, **config) -> AbuseIpDbClient:
    config.setdefault("api_key", "test-key")
    transport = httpx.MockTransport(handler)
    return AbuseIpDbClient(FeedConfig(**config), client=httpx.Client(transport=transport))


def _score(value) -> str:
    return json.dumps({"data": {"ipAddress": "1.2.3.4", "abuseConfidenceScore": value}})


def test_requires_api_key() -> None:
    with pytest.raises(ValueError):
        AbuseIpDbClient(FeedConfig())


def test_fetch_snapshot_sends_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="1.2.3.4\n5.6.7.8\n")

    client = _client(handler)

    assert client.fetch_snapshot() == "1.2.3.4\n5.6.7.8\n"
    assert client.backend is SourceBackend.ABUSEIPDB
    [request] = seen
    assert str(request.url) == "https://api.abuseipdb.com/api/v2/blacklist"
    assert request.headers["Key"] == "test-key"
    assert request.headers["Accept"] == "text/plain"


def test_check_address_query_and_threshold() -> None:
    scores = {"1.2.3.4": 100, "5.6.7.8": 50}
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=_score(scores[request.url.params["ipAddress"]]))

    client = _client(handler, base_url="https://feed.test/api/v2/")

    assert client.check_address("1.2.3.4") is True
    assert client.check_address("5.6.7.8") is False
    assert seen[0].url.path == "/api/v2/check"
    assert seen[0].headers["Accept"] == "application/json"


def test_threshold_is_configurable() -> None:
    client = _client(lambda request: httpx.Response(200, text=_score(75)), confidence_threshold=75)
    assert client.check_address("1.2.3.4") is True


@pytest.mark.parametrize("status", [401, 422, 429])
def test_client_errors_return_none(status: int) -> None:
    client = _client(lambda request: httpx.Response(status, text="slow down"))

    assert client.fetch_snapshot() is None
    assert client.check_address("1.2.3.4") is None


@pytest.mark.parametrize("status", [500, 503])
def test_server_errors_return_none(status: int) -> None:
    client = _client(lambda request: httpx.Response(status))

    assert client.fetch_snapshot() is None
    assert client.check_address("1.2.3.4") is None


def test_transport_errors_return_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)

    assert client.fetch_snapshot() is None
    assert client.check_address("1.2.3.4") is None


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        json.dumps([1, 2]),
        json.dumps({"data": None}),
        json.dumps({"data": {}}),
        _score("100"),
        _score(True),
    ],
)
def test_malformed_check_response_raises(body: str) -> None:
    client = _client(lambda request: httpx.Response(200, text=body))
    with pytest.raises(FeedParseError, match="1.2.3.4"):
        client.check_address("1.2.3.4")


def test_injected_client_is_not_closed() -> None:
    http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    with AbuseIpDbClient(FeedConfig(api_key="k"), client=http):
        pass
    assert not http.is_closed


def test_owned_client_is_closed() -> None:
    client = AbuseIpDbClient(FeedConfig(api_key="k"))
    client.close()
    assert client._client.is_closed
