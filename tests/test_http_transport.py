"""Tests for the HTTP transport's failure classification.

Requests go to a local fake Bitstamp server, so no external network
access is needed.  Metrics are recorded into a private registry per test.
"""

from __future__ import annotations

import pytest  # type: ignore
from prometheus_client import CollectorRegistry

from exchanges.src.exchanges.config import NetworkConfig
from exchanges.src.exchanges.errors import ExchangeNetworkException, ExchangeRejection, UnexpectedError
from exchanges.src.exchanges.mapper import BitstampResponseMapper
from exchanges.src.exchanges.metrics import RequestMetrics
from exchanges.src.exchanges.transport import HttpTransport
from tests.helpers.fake_bitstamp import FakeBitstamp


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def transport(registry: CollectorRegistry) -> HttpTransport:
    return HttpTransport(
        NetworkConfig(connection_timeout=2),
        error_parser=BitstampResponseMapper().parse_error_body,
        metrics=RequestMetrics(registry),
    )


def _count(registry: CollectorRegistry, endpoint: str, outcome: str) -> float:
    value = registry.get_sample_value(
        "exchange_requests_total", {"exchange": "bitstamp", "endpoint": endpoint, "outcome": outcome}
    )
    return value or 0.0


@pytest.mark.asyncio  # type: ignore
async def test_success_returns_response(fake_bitstamp: FakeBitstamp, transport, registry) -> None:
    fake_bitstamp.respond("GET", "ticker/btcusd/", '{"last": "1"}')
    response = await transport.send(fake_bitstamp.base_url + "ticker/btcusd/", "GET", endpoint="ticker")
    assert response.status_code == 200
    assert response.payload == '{"last": "1"}'
    assert response.headers["Content-Type"].startswith("application/json")
    assert _count(registry, "ticker", "ok") == 1.0


@pytest.mark.asyncio  # type: ignore
async def test_non_fatal_status_is_network_error(fake_bitstamp: FakeBitstamp, transport, registry) -> None:
    fake_bitstamp.respond("GET", "ticker/btcusd/", "Service Unavailable", status=503)
    with pytest.raises(ExchangeNetworkException):
        await transport.send(fake_bitstamp.base_url + "ticker/btcusd/", "GET", endpoint="ticker")
    assert _count(registry, "ticker", "network_error") == 1.0


@pytest.mark.asyncio  # type: ignore
async def test_exchange_error_body_is_rejection(fake_bitstamp: FakeBitstamp, transport, registry) -> None:
    fake_bitstamp.respond(
        "POST", "buy/btcusd/", '{"status": "error", "reason": "Minimum order size is 10.0 USD.", "code": "API0011"}',
        status=400,
    )
    with pytest.raises(ExchangeRejection) as excinfo:
        await transport.send(fake_bitstamp.base_url + "buy/btcusd/", "POST", "amount=0.0001", endpoint="buy")
    assert excinfo.value.reason == "Minimum order size is 10.0 USD."
    assert excinfo.value.status_code == 400
    assert _count(registry, "buy", "rejected") == 1.0


@pytest.mark.asyncio  # type: ignore
async def test_unrecognised_error_status_is_unexpected(fake_bitstamp: FakeBitstamp, transport, registry) -> None:
    fake_bitstamp.respond("GET", "ticker/btcusd/", "<html>Internal error</html>", status=500)
    with pytest.raises(UnexpectedError):
        await transport.send(fake_bitstamp.base_url + "ticker/btcusd/", "GET", endpoint="ticker")
    assert _count(registry, "ticker", "unexpected") == 1.0


@pytest.mark.asyncio  # type: ignore
async def test_connection_refused_is_network_error(transport) -> None:
    fake = FakeBitstamp()
    await fake.start()
    url = fake.base_url + "ticker/btcusd/"
    await fake.close()
    with pytest.raises(ExchangeNetworkException):
        await transport.send(url, "GET", endpoint="ticker")


@pytest.mark.asyncio  # type: ignore
async def test_timeout_is_network_error(fake_bitstamp: FakeBitstamp, registry) -> None:
    fake_bitstamp.respond("GET", "ticker/btcusd/", '{"last": "1"}', delay=1.0)
    transport = HttpTransport(NetworkConfig(connection_timeout=0.2), metrics=RequestMetrics(registry))
    with pytest.raises(ExchangeNetworkException):
        await transport.send(fake_bitstamp.base_url + "ticker/btcusd/", "GET", endpoint="ticker")


@pytest.mark.asyncio  # type: ignore
async def test_url_without_host_is_unexpected(transport) -> None:
    with pytest.raises(UnexpectedError):
        await transport.send("http:///ticker/btcusd/", "GET", endpoint="ticker")
