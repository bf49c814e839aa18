"""
Canonical trading models using Pydantic.

These are the exchange-agnostic shapes the trading engine consumes,
whatever adapter produced them.  All prices, quantities and balances are
:class:`~decimal.Decimal`; binary floats never enter the model.  Optional
ticker fields stay ``None`` when the exchange did not send them, so
"unknown" is never confused with zero.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


class OrderType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class MarketOrder(BaseModel):
    """One price level of an order book.

    ``total`` is always ``price * quantity``; it cannot be supplied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: OrderType
    price: Decimal
    quantity: Decimal

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


class MarketOrderBook(BaseModel):
    """Bids and asks for a market, in the order the exchange returned them."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    sell_orders: List[MarketOrder] = Field(default_factory=list)
    buy_orders: List[MarketOrder] = Field(default_factory=list)
    timestamp: Optional[datetime] = None

    @property
    def asks(self) -> List[MarketOrder]:
        return self.sell_orders

    @property
    def bids(self) -> List[MarketOrder]:
        return self.buy_orders


class Ticker(BaseModel):
    """Snapshot of recent market activity; every field may be absent."""

    model_config = ConfigDict(frozen=True)

    last: Optional[Decimal] = None
    bid: Optional[Decimal] = None
    ask: Optional[Decimal] = None
    low: Optional[Decimal] = None
    high: Optional[Decimal] = None
    open: Optional[Decimal] = None
    volume: Optional[Decimal] = None
    vwap: Optional[Decimal] = None
    timestamp: Optional[datetime] = None


class BalanceInfo(BaseModel):
    """Available and on-order balances per currency.

    Both mappings always carry the same currency keys; a currency present
    in only one of them is added to the other with a zero balance.
    Validates from the camel-case JSON shape as well
    (``{"available": {...}, "onOrder": {...}}``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    available: Dict[str, Decimal] = Field(default_factory=dict)
    on_order: Dict[str, Decimal] = Field(default_factory=dict, alias="onOrder")

    @model_validator(mode="after")
    def _complete_currency_keys(self) -> "BalanceInfo":
        for currency in set(self.available) - set(self.on_order):
            self.on_order[currency] = Decimal("0")
        for currency in set(self.on_order) - set(self.available):
            self.available[currency] = Decimal("0")
        return self


class OpenOrder(BaseModel):
    """An order still open on the exchange.

    The adapter never caches these; every call reflects the exchange's
    current view.  ``original_quantity`` is ``None`` when the exchange does
    not report it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    creation_date: datetime
    market_id: str
    type: OrderType
    price: Decimal
    quantity: Decimal
    original_quantity: Optional[Decimal] = None

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


__all__ = [
    "OrderType",
    "MarketOrder",
    "MarketOrderBook",
    "Ticker",
    "BalanceInfo",
    "OpenOrder",
]
