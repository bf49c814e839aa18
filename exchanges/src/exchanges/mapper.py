"""
Bitstamp response mapping.

Raw Bitstamp payloads are first validated against small Pydantic schema
models that describe exactly what the exchange sends, then converted to
the canonical models in :mod:`.models`.  Each payload shape has its own
mapping method so it can be tested in isolation.

Bitstamp quirks handled here:

* Order book levels arrive as ``[price, amount]`` lists (sometimes with a
  trailing order id); only the first two elements are used and ``total``
  is always recomputed.
* Ticker and order book timestamps are unix seconds, sent as strings.
* Private payloads carry dates as ``yyyy-MM-dd HH:mm:ss`` (optionally with
  fractional seconds) and no zone.  Bitstamp documents them as UTC.
* Business errors can arrive with HTTP 200 as
  ``{"status": "error", "reason": ..., "code": ...}`` or, on older
  endpoints, ``{"error": ...}``.

Anything that does not match raises :class:`MappingError`, logged together
with the offending payload.  JSON numbers are parsed straight into
``Decimal`` so no value passes through a binary float.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .errors import ExchangeRejection, MappingError, StaleNonceRejection
from .models import BalanceInfo, MarketOrder, MarketOrderBook, OpenOrder, OrderType, Ticker

logger = logging.getLogger(__name__)

BITSTAMP_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f")

# Bitstamp order type codes used in private payloads.
BITSTAMP_ORDER_TYPES = {"0": OrderType.BUY, "1": OrderType.SELL}

FEE_PRECISION = Decimal("0.00000001")

_DECIMAL = TypeAdapter(Decimal)


def parse_bitstamp_date(value: Any) -> datetime:
    """Parse a Bitstamp ``yyyy-MM-dd HH:mm:ss`` date as an aware UTC datetime.

    :raises ValueError: if ``value`` is not a string in one of the known formats.
    """
    if not isinstance(value, str):
        raise ValueError(f"Bitstamp date must be a string, got {type(value).__name__}")
    for fmt in BITSTAMP_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Unparseable Bitstamp date: {value!r}")


def parse_unix_timestamp(value: Any) -> datetime:
    """Parse unix seconds as an aware UTC datetime.

    Accepts ints, numeric strings and integral decimals such as
    ``1400943488.0``; a fractional second is rejected.
    """
    if isinstance(value, bool):
        raise ValueError("Timestamp must be unix seconds, got a boolean")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Timestamp must be unix seconds, got {value!r}") from None
    if not number.is_finite() or number != number.to_integral_value():
        raise ValueError(f"Timestamp must be whole unix seconds, got {value!r}")
    seconds = int(number)
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"Timestamp out of range: {value!r}") from exc


# ------------------------------------------------------------------------------
# Bitstamp payload schemas
# ------------------------------------------------------------------------------


class BitstampOrderBook(BaseModel):
    """
    Order book from ``order_book/{pair}/``::

        {
          "timestamp": "1400943488",
          "bids": [["521.86", "0.00017398"], ["519.58", "0.25100000"]],
          "asks": [["521.88", "10.00000000"], ["522.00", "310.24504478"]]
        }
    """

    model_config = ConfigDict(extra="ignore")

    timestamp: Optional[datetime] = None
    bids: List[List[Decimal]]
    asks: List[List[Decimal]]

    @field_validator("timestamp", mode="before")
    @classmethod
    def _unix_seconds(cls, value: Any) -> Optional[datetime]:
        return None if value is None else parse_unix_timestamp(value)

    @field_validator("bids", "asks")
    @classmethod
    def _price_and_amount(cls, levels: List[List[Decimal]]) -> List[List[Decimal]]:
        for level in levels:
            if len(level) < 2:
                raise ValueError(f"Order book level must be [price, amount], got {level!r}")
        return levels


class BitstampTicker(BaseModel):
    """Ticker from ``ticker/{pair}/``; any field may be missing or null."""

    model_config = ConfigDict(extra="ignore")

    last: Optional[Decimal] = None
    bid: Optional[Decimal] = None
    ask: Optional[Decimal] = None
    low: Optional[Decimal] = None
    high: Optional[Decimal] = None
    open: Optional[Decimal] = None
    volume: Optional[Decimal] = None
    vwap: Optional[Decimal] = None
    timestamp: Optional[datetime] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _unix_seconds(cls, value: Any) -> Optional[datetime]:
        return None if value is None else parse_unix_timestamp(value)


class BitstampOrder(BaseModel):
    """An order as returned by ``open_orders``, ``buy`` and ``sell``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    created: datetime = Field(alias="datetime")
    type: OrderType
    price: Decimal
    amount: Decimal
    currency_pair: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        if value is None or isinstance(value, (dict, list, bool)):
            raise ValueError(f"Order id must be a scalar, got {value!r}")
        return str(value)

    @field_validator("created", mode="before")
    @classmethod
    def _bitstamp_date(cls, value: Any) -> datetime:
        return parse_bitstamp_date(value)

    @field_validator("type", mode="before")
    @classmethod
    def _order_type(cls, value: Any) -> OrderType:
        order_type = BITSTAMP_ORDER_TYPES.get(str(value))
        if order_type is None:
            raise ValueError(f"Unknown Bitstamp order type: {value!r}")
        return order_type


_OPEN_ORDERS = TypeAdapter(List[BitstampOrder])


# ------------------------------------------------------------------------------
# Mapper
# ------------------------------------------------------------------------------


class BitstampResponseMapper:
    """Turns raw Bitstamp payloads into canonical models."""

    def load(self, payload: str) -> Any:
        """Decode JSON and raise any business error the payload reports."""
        try:
            data = json.loads(payload, parse_float=Decimal)
        except (TypeError, ValueError) as exc:
            raise self.mapping_error("Response is not valid JSON", payload, exc) from exc
        rejection = self.find_rejection(data)
        if rejection is not None:
            logger.warning("Exchange rejected request: %s (code=%s)", rejection.reason, rejection.code)
            raise rejection
        return data

    def find_rejection(self, data: Any, status_code: Optional[int] = None) -> Optional[ExchangeRejection]:
        """Return the rejection encoded in ``data``, if it is a Bitstamp error body."""
        if not isinstance(data, dict):
            return None
        if data.get("status") == "error":
            reason = _flatten_reason(data.get("reason"))
        elif "error" in data and len(data) <= 2:
            reason = _flatten_reason(data.get("error"))
        else:
            return None
        code = data.get("code")
        code = None if code is None else str(code)
        error_cls = StaleNonceRejection if "nonce" in reason.lower() else ExchangeRejection
        return error_cls(reason, code=code, status_code=status_code)

    def parse_error_body(self, payload: str, status_code: int) -> Optional[ExchangeRejection]:
        """Parse the body of a non-2xx response; ``None`` when it is not a Bitstamp error."""
        try:
            data = json.loads(payload, parse_float=Decimal)
        except (TypeError, ValueError):
            return None
        return self.find_rejection(data, status_code=status_code)

    def map_order_book(self, payload: str, market_id: str) -> MarketOrderBook:
        book = self._validate(BitstampOrderBook, payload)
        buy_orders = [MarketOrder(type=OrderType.BUY, price=level[0], quantity=level[1]) for level in book.bids]
        sell_orders = [MarketOrder(type=OrderType.SELL, price=level[0], quantity=level[1]) for level in book.asks]
        return MarketOrderBook(
            market_id=market_id,
            sell_orders=sell_orders,
            buy_orders=buy_orders,
            timestamp=book.timestamp,
        )

    def map_ticker(self, payload: str) -> Ticker:
        ticker = self._validate(BitstampTicker, payload)
        return Ticker(**ticker.model_dump())

    def map_open_orders(self, payload: str, market_id: str) -> List[OpenOrder]:
        data = self.load(payload)
        try:
            orders = _OPEN_ORDERS.validate_python(data)
        except ValidationError as exc:
            raise self.mapping_error("Unexpected open orders payload", payload, exc) from exc
        return [
            OpenOrder(
                id=order.id,
                creation_date=order.created,
                market_id=market_id,
                type=order.type,
                price=order.price,
                quantity=order.amount,
            )
            for order in orders
        ]

    def map_order_id(self, payload: str) -> str:
        data = self.load(payload)
        order_id = data.get("id") if isinstance(data, dict) else None
        if order_id is None or isinstance(order_id, (dict, list, bool)) or str(order_id) == "":
            raise self.mapping_error("Order response carries no order id", payload)
        return str(order_id)

    def map_cancel(self, payload: str) -> bool:
        data = self.load(payload)
        if data is True:
            return True
        if isinstance(data, dict) and data.get("id") is not None:
            return True
        raise self.mapping_error("Unexpected cancel order payload", payload)

    def map_balance_info(self, payload: str) -> BalanceInfo:
        """Map the flat ``balance/`` payload.

        ``{ccy}_available`` feeds ``available`` and ``{ccy}_reserved`` feeds
        ``on_order``; currency codes are upper-cased.
        """
        data = self.load(payload)
        if not isinstance(data, dict):
            raise self.mapping_error("Balance payload is not an object", payload)
        available = {}
        on_order = {}
        try:
            for name, value in data.items():
                if name.endswith("_available"):
                    available[name[: -len("_available")].upper()] = _DECIMAL.validate_python(value)
                elif name.endswith("_reserved"):
                    on_order[name[: -len("_reserved")].upper()] = _DECIMAL.validate_python(value)
        except ValidationError as exc:
            raise self.mapping_error("Unexpected balance value", payload, exc) from exc
        return BalanceInfo(available=available, on_order=on_order)

    def map_fee(self, payload: str, market_id: str) -> Decimal:
        """Read the market's fee percentage from ``balance/`` and return it as a fraction."""
        data = self.load(payload)
        if not isinstance(data, dict):
            raise self.mapping_error("Balance payload is not an object", payload)
        raw_fee = data.get(f"{market_id.lower()}_fee", data.get("fee"))
        if raw_fee is None:
            raise self.mapping_error(f"Balance payload has no fee for market {market_id}", payload)
        try:
            return percent_to_fraction(_DECIMAL.validate_python(raw_fee))
        except (ValidationError, ValueError) as exc:
            raise self.mapping_error("Unexpected fee value", payload, exc) from exc

    def _validate(self, schema: type, payload: str) -> Any:
        data = self.load(payload)
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            raise self.mapping_error(f"Unexpected {schema.__name__} payload", payload, exc) from exc

    @staticmethod
    def mapping_error(message: str, payload: str, exc: Optional[Exception] = None) -> MappingError:
        truncated = payload[:200] if payload else ""
        logger.error("%s: %s (payload=%s)", message, exc or "", truncated)
        return MappingError(message if exc is None else f"{message}: {exc}", payload=payload)


def percent_to_fraction(percent: Decimal) -> Decimal:
    """``0.25`` (percent) becomes ``0.0025``, rounded to 8 places."""
    try:
        return (percent / Decimal(100)).quantize(FEE_PRECISION, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid fee percentage: {percent!r}") from exc


def _flatten_reason(reason: Any) -> str:
    if reason is None:
        return "Unknown error"
    if isinstance(reason, str):
        return reason
    if isinstance(reason, list):
        return "; ".join(_flatten_reason(item) for item in reason)
    if isinstance(reason, dict):
        parts = []
        for field, messages in reason.items():
            text = _flatten_reason(messages)
            parts.append(text if field == "__all__" else f"{field}: {text}")
        return "; ".join(parts)
    return str(reason)


__all__ = [
    "BITSTAMP_DATE_FORMATS",
    "BitstampOrderBook",
    "BitstampTicker",
    "BitstampOrder",
    "BitstampResponseMapper",
    "parse_bitstamp_date",
    "parse_unix_timestamp",
    "percent_to_fraction",
]
