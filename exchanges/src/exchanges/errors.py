"""Typed exception hierarchy for exchange adapter operations.

Callers (the trading engine) need to tell apart failures they may retry
from failures they must not.  The hierarchy is split accordingly:

* :class:`ConfigurationError` is raised at ``init`` time and means the
  adapter must refuse to start.
* :class:`ExchangeNetworkException` covers connectivity, DNS, TLS and
  timeout failures.  The adapter never retries internally; the engine
  decides whether and when to try again.
* :class:`TradingApiException` and its subclasses are per-call failures.
  :class:`ExchangeRejection` carries the exchange's own reason text.
  :class:`StaleNonceRejection` is the one rejection where a verbatim retry
  is always wrong: the request has to be re-signed with a fresh nonce.

Every error can carry the name of the failing operation and the market id
so that a log line is enough to diagnose the failure.
"""

from __future__ import annotations

from typing import Optional


class ExchangeAdapterError(Exception):
    """Base class for all adapter errors."""

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        market_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.market_id = market_id

    def annotate(self, operation: str, market_id: Optional[str] = None) -> "ExchangeAdapterError":
        """Fill in call context unless a deeper layer already did."""
        if self.operation is None:
            self.operation = operation
        if self.market_id is None:
            self.market_id = market_id
        return self

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.market_id:
            context.append(f"market_id={self.market_id}")
        if not context:
            return self.message
        return f"{self.message} [{', '.join(context)}]"


class ConfigurationError(ExchangeAdapterError):
    """Missing or invalid credentials, bad secret encoding, no HMAC-SHA256."""


class ExchangeNetworkException(ExchangeAdapterError):
    """Recoverable network failure; safe for the caller to retry with backoff."""


NetworkError = ExchangeNetworkException


class TradingApiException(ExchangeAdapterError):
    """A call failed for a reason other than the network."""


class ExchangeRejection(TradingApiException):
    """The exchange understood the request and refused it.

    ``reason`` is the exchange's raw reason text, ``code`` its error code
    when one was supplied and ``status_code`` the HTTP status.
    """

    def __init__(
        self,
        reason: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        operation: Optional[str] = None,
        market_id: Optional[str] = None,
    ) -> None:
        super().__init__(reason, operation=operation, market_id=market_id)
        self.reason = reason
        self.code = code
        self.status_code = status_code


class StaleNonceRejection(ExchangeRejection):
    """The exchange refused the nonce.

    Retrying the same request body will fail again; build a new request so
    a fresh nonce is minted and signed.
    """


class MappingError(TradingApiException):
    """A payload did not have the expected shape or date format."""

    def __init__(
        self,
        message: str,
        *,
        payload: Optional[str] = None,
        operation: Optional[str] = None,
        market_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, operation=operation, market_id=market_id)
        self.payload = payload


class UnexpectedError(TradingApiException):
    """Anything that does not fit the other categories."""


class AdapterNotInitialisedError(RuntimeError):
    """An authenticated call was made before ``init`` completed."""


__all__ = [
    "ExchangeAdapterError",
    "ConfigurationError",
    "ExchangeNetworkException",
    "NetworkError",
    "TradingApiException",
    "ExchangeRejection",
    "StaleNonceRejection",
    "MappingError",
    "UnexpectedError",
    "AdapterNotInitialisedError",
]
