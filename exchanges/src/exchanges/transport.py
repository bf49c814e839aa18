"""
HTTP transport for exchange adapters.

Sends exactly one request per call with aiohttp and classifies every way
it can go wrong:

* connectivity, DNS, TLS and timeout failures, plus HTTP statuses listed
  in ``non_fatal_error_codes``, raise :class:`ExchangeNetworkException`;
* a non-2xx response whose body the exchange-specific ``error_parser``
  recognises raises the :class:`ExchangeRejection` it returns;
* anything else raises :class:`UnexpectedError`.

There are no retries here.  Whether a network failure is retried is the
engine's decision.  A new ``ClientSession`` is opened per request, so no
connection is pooled across calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

import aiohttp

from .config import NetworkConfig
from .errors import ExchangeNetworkException, ExchangeRejection, UnexpectedError
from .metrics import (
    OUTCOME_NETWORK_ERROR,
    OUTCOME_OK,
    OUTCOME_REJECTED,
    OUTCOME_UNEXPECTED,
    RequestMetrics,
    get_default_metrics,
)

logger = logging.getLogger(__name__)

UNEXPECTED_IO_ERROR_MSG = "Failed to connect to Exchange due to unexpected IO error."

ErrorParser = Callable[[str, int], Optional[ExchangeRejection]]


@dataclass(frozen=True)
class ExchangeHttpResponse:
    """Status, body and headers of one exchange response."""

    status_code: int
    payload: str
    headers: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"ExchangeHttpResponse(status_code={self.status_code}, payload={self.payload[:200]!r})"


class HttpTransport:
    """Send requests and turn failures into the adapter's error taxonomy."""

    def __init__(
        self,
        network: NetworkConfig,
        *,
        exchange: str = "bitstamp",
        error_parser: Optional[ErrorParser] = None,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.network = network
        self.exchange = exchange
        self.error_parser = error_parser
        self.metrics = metrics or get_default_metrics()

    async def send(
        self,
        url: str,
        method: str,
        body: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        *,
        endpoint: str = "",
    ) -> ExchangeHttpResponse:
        """Issue one request and return the 2xx response.

        :param endpoint: short label used for metrics, e.g. ``"ticker"``.
        """
        outcome = OUTCOME_UNEXPECTED
        started = time.monotonic()
        try:
            response = await self._request(url, method, body, headers)
            self._check_status(response)
            outcome = OUTCOME_OK
            return response
        except ExchangeNetworkException:
            outcome = OUTCOME_NETWORK_ERROR
            raise
        except ExchangeRejection:
            outcome = OUTCOME_REJECTED
            raise
        finally:
            self.metrics.observe(self.exchange, endpoint or method, outcome, time.monotonic() - started)

    async def _request(
        self,
        url: str,
        method: str,
        body: Optional[str],
        headers: Optional[Mapping[str, str]],
    ) -> ExchangeHttpResponse:
        timeout = aiohttp.ClientTimeout(total=self.network.connection_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method,
                    url,
                    data=body,
                    headers=dict(headers or {}),
                    proxy=self.network.proxy,
                ) as resp:
                    payload = await resp.text()
                    return ExchangeHttpResponse(resp.status, payload, dict(resp.headers))
        except aiohttp.InvalidURL as exc:
            logger.error("%s Invalid URL %s", UNEXPECTED_IO_ERROR_MSG, url, exc_info=exc)
            raise UnexpectedError(f"{UNEXPECTED_IO_ERROR_MSG} Invalid URL: {url}") from exc
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as exc:
            # Covers DNS, TLS, refused connections, disconnects and timeouts.
            error_msg = f"Failed to connect to Exchange: {type(exc).__name__}: {exc}"
            logger.warning("%s (url=%s)", error_msg, url)
            raise ExchangeNetworkException(error_msg) from exc
        except (aiohttp.ClientError, OSError, ValueError) as exc:
            if self._is_non_fatal_message(str(exc)):
                error_msg = f"Failed to connect to Exchange: {exc}"
                logger.warning("%s (url=%s)", error_msg, url)
                raise ExchangeNetworkException(error_msg) from exc
            logger.error(UNEXPECTED_IO_ERROR_MSG, exc_info=exc)
            raise UnexpectedError(f"{UNEXPECTED_IO_ERROR_MSG} {type(exc).__name__}: {exc}") from exc

    def _check_status(self, response: ExchangeHttpResponse) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        truncated = response.payload[:200] if response.payload else ""
        if status in self.network.non_fatal_error_codes:
            error_msg = f"Exchange returned non-fatal HTTP status {status}"
            logger.warning("%s: %s", error_msg, truncated)
            raise ExchangeNetworkException(error_msg)
        rejection = self.error_parser(response.payload, status) if self.error_parser else None
        if rejection is not None:
            logger.warning("Exchange rejected request with HTTP %s: %s", status, rejection.reason)
            raise rejection
        logger.error("REST API error %s: %s", status, truncated)
        raise UnexpectedError(f"REST API error {status}: {truncated}")

    def _is_non_fatal_message(self, text: str) -> bool:
        return any(message in text for message in self.network.non_fatal_error_messages)


__all__ = ["ExchangeHttpResponse", "HttpTransport", "ErrorParser"]
