"""
Exchange adapters.

:class:`ExchangeAdapter` is the canonical trading API the engine talks to.
:class:`BitstampExchangeAdapter` implements it against the Bitstamp HTTP
API v2 (https://www.bitstamp.net/api/).

Lifecycle: construct the adapter, then call :meth:`init` with the
exchange config (or use :meth:`BitstampExchangeAdapter.create`).  ``init``
reads the credentials, seeds the nonce from the wall clock and sets up the
HMAC key.  Any problem there raises :class:`ConfigurationError` and the
adapter is unusable.  Calling a trading operation before ``init``
succeeded raises :class:`AdapterNotInitialisedError`.

Every operation sends exactly one request.  Errors leave the adapter as
one of:

* :class:`ExchangeNetworkException` - retry later, with backoff;
* :class:`ExchangeRejection` - the exchange said no, ``reason`` says why
  (:class:`StaleNonceRejection` needs a new request, never a resend);
* :class:`MappingError` / :class:`UnexpectedError` - logged with the
  operation name and market id before they are raised.
"""

from __future__ import annotations

import logging
import time
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar, Union
from urllib.parse import urlencode

from .config import ExchangeConfig
from .errors import (
    AdapterNotInitialisedError,
    ConfigurationError,
    ExchangeAdapterError,
    UnexpectedError,
)
from .mapper import BitstampResponseMapper, percent_to_fraction
from .metrics import RequestMetrics
from .models import BalanceInfo, MarketOrderBook, OpenOrder, OrderType, Ticker
from .nonce import FileNonceStore, NonceGenerator
from .signer import MessageSigner, bitstamp_auth_message
from .transport import ExchangeHttpResponse, HttpTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExchangeAdapter:
    """Canonical trading operations every exchange adapter provides."""

    def init(self, config: ExchangeConfig) -> None:
        raise NotImplementedError

    async def get_market_orders(self, market_id: str) -> MarketOrderBook:
        raise NotImplementedError

    async def get_latest_market_price(self, market_id: str) -> Decimal:
        raise NotImplementedError

    async def get_ticker(self, market_id: str) -> Ticker:
        raise NotImplementedError

    async def get_your_open_orders(self, market_id: str) -> List[OpenOrder]:
        raise NotImplementedError

    async def create_order(
        self, market_id: str, order_type: Union[OrderType, str], quantity: Decimal, price: Decimal
    ) -> str:
        raise NotImplementedError

    async def cancel_order(self, order_id: str, market_id: Optional[str] = None) -> bool:
        raise NotImplementedError

    async def get_balance_info(self) -> BalanceInfo:
        raise NotImplementedError

    async def get_percentage_of_buy_order_taken_for_exchange_fee(self, market_id: str) -> Decimal:
        raise NotImplementedError

    async def get_percentage_of_sell_order_taken_for_exchange_fee(self, market_id: str) -> Decimal:
        raise NotImplementedError

    def get_impl_name(self) -> str:
        raise NotImplementedError


class BitstampExchangeAdapter(ExchangeAdapter):
    """Bitstamp HTTP API v2 adapter."""

    API_BASE_URL = "https://www.bitstamp.net/api/v2/"

    UNEXPECTED_ERROR_MSG = "Unexpected error has occurred in Bitstamp Exchange Adapter."

    CLIENT_ID_PROPERTY_NAME = "client-id"
    KEY_PROPERTY_NAME = "key"
    SECRET_PROPERTY_NAME = "secret"
    BUY_FEE_PROPERTY_NAME = "buy-fee"
    SELL_FEE_PROPERTY_NAME = "sell-fee"
    NONCE_STORE_PROPERTY_NAME = "nonce-store-path"

    AMOUNT_PRECISION = Decimal("0.00000001")
    PRICE_PRECISION = Decimal("0.01")

    def __init__(
        self,
        *,
        base_url: str = API_BASE_URL,
        clock: Callable[[], float] = time.time,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._clock = clock
        self._metrics = metrics
        self._mapper = BitstampResponseMapper()
        self._transport: Optional[HttpTransport] = None
        self._nonce: Optional[NonceGenerator] = None
        self._signer: Optional[MessageSigner] = None
        self._client_id = ""
        self._key = ""
        self._secret = ""
        self._buy_fee: Optional[Decimal] = None
        self._sell_fee: Optional[Decimal] = None
        self.initialized_mac_authentication = False

    @classmethod
    def create(cls, config: Union[ExchangeConfig, Mapping[str, Any]], **kwargs: Any) -> "BitstampExchangeAdapter":
        """Construct and initialise an adapter in one step."""
        adapter = cls(**kwargs)
        adapter.init(config)
        return adapter

    def init(self, config: Union[ExchangeConfig, Mapping[str, Any]]) -> None:
        """Apply ``config`` once; the nonce and key stay fixed for the adapter's lifetime."""
        if self._nonce is not None:
            raise ConfigurationError(
                "Bitstamp adapter is already initialised; create a new adapter to change its config"
            )
        self.initialized_mac_authentication = False
        if not isinstance(config, ExchangeConfig):
            config = ExchangeConfig.from_mapping(dict(config))
        logger.info("About to initialise Bitstamp ExchangeConfig: %s", config.masked())
        self._set_authentication_config(config)
        self._set_other_config(config)
        self._transport = HttpTransport(
            config.network,
            exchange="bitstamp",
            error_parser=self._mapper.parse_error_body,
            metrics=self._metrics,
        )
        store_path = config.other.get(self.NONCE_STORE_PROPERTY_NAME)
        store = FileNonceStore(store_path) if store_path else None
        self._nonce = NonceGenerator(clock=self._clock, store=store)
        self.init_secure_message_layer()

    def init_secure_message_layer(self) -> None:
        """Set up the MAC used to sign private requests; fails hard and fast."""
        try:
            self._signer = MessageSigner(self._secret)
        except ConfigurationError:
            logger.error("Failed to setup MAC security for Bitstamp adapter")
            raise
        self.initialized_mac_authentication = True

    # ------------------------------------------------------------------------------
    # Bitstamp API calls adapted to the trading API.
    # ------------------------------------------------------------------------------

    async def get_market_orders(self, market_id: str) -> MarketOrderBook:
        async def call() -> MarketOrderBook:
            response = await self._send_public_request(f"order_book/{market_id}", endpoint="order_book")
            logger.debug("Market Orders response: %s", response)
            return self._mapper.map_order_book(response.payload, market_id)

        return await self._guarded("get_market_orders", market_id, call)

    async def get_ticker(self, market_id: str) -> Ticker:
        async def call() -> Ticker:
            response = await self._send_public_request(f"ticker/{market_id}", endpoint="ticker")
            logger.debug("Ticker response: %s", response)
            return self._mapper.map_ticker(response.payload)

        return await self._guarded("get_ticker", market_id, call)

    async def get_latest_market_price(self, market_id: str) -> Decimal:
        async def call() -> Decimal:
            response = await self._send_public_request(f"ticker/{market_id}", endpoint="ticker")
            logger.debug("Latest Market Price response: %s", response)
            ticker = self._mapper.map_ticker(response.payload)
            if ticker.last is None:
                raise self._mapper.mapping_error("Ticker has no last price", response.payload)
            return ticker.last

        return await self._guarded("get_latest_market_price", market_id, call)

    async def get_your_open_orders(self, market_id: str) -> List[OpenOrder]:
        self._require_secure_layer()

        async def call() -> List[OpenOrder]:
            response = await self._send_authenticated_request(f"open_orders/{market_id}", endpoint="open_orders")
            logger.debug("Open Orders response: %s", response)
            return self._mapper.map_open_orders(response.payload, market_id)

        return await self._guarded("get_your_open_orders", market_id, call)

    async def create_order(
        self, market_id: str, order_type: Union[OrderType, str], quantity: Decimal, price: Decimal
    ) -> str:
        self._require_secure_layer()

        async def call() -> str:
            side = OrderType(order_type.upper()) if isinstance(order_type, str) else order_type
            params = {
                "amount": self._format_decimal(quantity, self.AMOUNT_PRECISION),
                "price": self._format_decimal(price, self.PRICE_PRECISION),
            }
            api_method = f"{'buy' if side is OrderType.BUY else 'sell'}/{market_id}"
            response = await self._send_authenticated_request(api_method, params, endpoint=side.value.lower())
            logger.debug("Create Order response: %s", response)
            return self._mapper.map_order_id(response.payload)

        return await self._guarded("create_order", market_id, call)

    async def cancel_order(self, order_id: str, market_id: Optional[str] = None) -> bool:
        """Cancel an order; Bitstamp does not need the market id."""
        self._require_secure_layer()

        async def call() -> bool:
            response = await self._send_authenticated_request(
                "cancel_order", {"id": str(order_id)}, endpoint="cancel_order"
            )
            logger.debug("Cancel Order response: %s", response)
            return self._mapper.map_cancel(response.payload)

        return await self._guarded("cancel_order", market_id, call)

    async def get_balance_info(self) -> BalanceInfo:
        self._require_secure_layer()

        async def call() -> BalanceInfo:
            response = await self._send_authenticated_request("balance", endpoint="balance")
            logger.debug("Balance Info response: %s", response)
            return self._mapper.map_balance_info(response.payload)

        return await self._guarded("get_balance_info", None, call)

    async def get_percentage_of_buy_order_taken_for_exchange_fee(self, market_id: str) -> Decimal:
        if self._buy_fee is not None:
            return self._buy_fee
        return await self._get_fee("get_percentage_of_buy_order_taken_for_exchange_fee", market_id)

    async def get_percentage_of_sell_order_taken_for_exchange_fee(self, market_id: str) -> Decimal:
        if self._sell_fee is not None:
            return self._sell_fee
        return await self._get_fee("get_percentage_of_sell_order_taken_for_exchange_fee", market_id)

    def get_impl_name(self) -> str:
        return "Bitstamp HTTP API v2"

    async def _get_fee(self, operation: str, market_id: str) -> Decimal:
        self._require_secure_layer()

        async def call() -> Decimal:
            response = await self._send_authenticated_request("balance", endpoint="balance")
            logger.debug("Fee response: %s", response)
            return self._mapper.map_fee(response.payload, market_id)

        return await self._guarded(operation, market_id, call)

    # ------------------------------------------------------------------------------
    # Transport layer methods
    # ------------------------------------------------------------------------------

    async def _send_public_request(self, api_method: str, *, endpoint: str) -> ExchangeHttpResponse:
        transport = self._require_transport()
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        # MUST have the trailing slash even if no params, else the exchange rejects the call.
        url = f"{self.base_url}{api_method}/"
        return await transport.send(url, "GET", None, headers, endpoint=endpoint)

    async def _send_authenticated_request(
        self,
        api_method: str,
        params: Optional[Dict[str, str]] = None,
        *,
        endpoint: str,
    ) -> ExchangeHttpResponse:
        transport = self._require_transport()
        nonce_generator = self._require_nonce()
        # Mint and sign under the generator's lock: the signed nonce is the one sent.
        auth_params: Dict[str, str] = nonce_generator.issue_with(self._build_auth_params)  # type: ignore[assignment]
        form = dict(auth_params)
        form.update(params or {})
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        url = f"{self.base_url}{api_method}/"
        return await transport.send(url, "POST", urlencode(form), headers, endpoint=endpoint)

    def _build_auth_params(self, nonce: int) -> Dict[str, str]:
        if self._signer is None:
            raise AdapterNotInitialisedError(
                "Authenticated call attempted before the secure message layer was initialised"
            )
        signature = self._signer.sign_hex_upper(bitstamp_auth_message(nonce, self._client_id, self._key))
        return {"key": self._key, "signature": signature, "nonce": str(nonce)}

    async def _guarded(self, operation: str, market_id: Optional[str], call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except ExchangeAdapterError as exc:
            exc.annotate(operation, market_id)
            if isinstance(exc, UnexpectedError):
                logger.error(
                    "%s operation=%s market_id=%s: %s", self.UNEXPECTED_ERROR_MSG, operation, market_id, exc.message
                )
            raise
        except AdapterNotInitialisedError:
            raise
        except Exception as exc:
            logger.error(
                "%s operation=%s market_id=%s", self.UNEXPECTED_ERROR_MSG, operation, market_id, exc_info=exc
            )
            raise UnexpectedError(
                f"{self.UNEXPECTED_ERROR_MSG} {type(exc).__name__}: {exc}",
                operation=operation,
                market_id=market_id,
            ) from exc

    # ------------------------------------------------------------------------------
    # Config methods
    # ------------------------------------------------------------------------------

    def _set_authentication_config(self, config: ExchangeConfig) -> None:
        auth = config.authentication
        self._client_id = auth.client_id
        self._key = auth.key
        self._secret = auth.secret.get_secret_value()
        for name, value in (
            (self.CLIENT_ID_PROPERTY_NAME, self._client_id),
            (self.KEY_PROPERTY_NAME, self._key),
            (self.SECRET_PROPERTY_NAME, self._secret),
        ):
            if not value or not value.strip():
                raise ConfigurationError(f"Authentication config item '{name}' is missing")

    def _set_other_config(self, config: ExchangeConfig) -> None:
        self._buy_fee = self._parse_fee(config, self.BUY_FEE_PROPERTY_NAME)
        self._sell_fee = self._parse_fee(config, self.SELL_FEE_PROPERTY_NAME)

    @staticmethod
    def _parse_fee(config: ExchangeConfig, name: str) -> Optional[Decimal]:
        raw = config.other.get(name)
        if raw is None:
            return None
        try:
            percent = Decimal(raw)
        except InvalidOperation as exc:
            raise ConfigurationError(f"Other config item '{name}' is not a number: {raw!r}") from exc
        if not percent.is_finite() or percent < 0:
            raise ConfigurationError(f"Other config item '{name}' must be a non-negative percentage: {raw!r}")
        return percent_to_fraction(percent)

    # ------------------------------------------------------------------------------
    # Util methods
    # ------------------------------------------------------------------------------

    def _require_transport(self) -> HttpTransport:
        if self._transport is None:
            raise AdapterNotInitialisedError("Bitstamp adapter used before init() was called")
        return self._transport

    def _require_nonce(self) -> NonceGenerator:
        if self._nonce is None:
            raise AdapterNotInitialisedError("Bitstamp adapter used before init() was called")
        return self._nonce

    def _require_secure_layer(self) -> None:
        if not self.initialized_mac_authentication or self._signer is None:
            raise AdapterNotInitialisedError(
                "Authenticated call attempted before the secure message layer was initialised"
            )

    @staticmethod
    def _format_decimal(value: Decimal, precision: Decimal) -> str:
        """Plain notation, rounded to ``precision``, without trailing zeros."""
        quantized = Decimal(value).quantize(precision, rounding=ROUND_HALF_EVEN)
        return format(quantized.normalize(), "f")


__all__ = ["ExchangeAdapter", "BitstampExchangeAdapter"]
