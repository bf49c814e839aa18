"""
Exchange adapter package for the trading engine.

This package lets the engine talk to an external exchange through one
canonical interface.  It contains the authenticated transport (nonce
generation, HMAC signing, HTTP with classified failures), the mapping of
raw exchange payloads onto canonical trading models, and the Bitstamp
adapter that composes them.
"""

from .adapter import BitstampExchangeAdapter, ExchangeAdapter  # noqa: F401
from .config import AuthenticationConfig, ExchangeConfig, NetworkConfig  # noqa: F401
from .errors import (  # noqa: F401
    AdapterNotInitialisedError,
    ConfigurationError,
    ExchangeAdapterError,
    ExchangeNetworkException,
    ExchangeRejection,
    MappingError,
    NetworkError,
    StaleNonceRejection,
    TradingApiException,
    UnexpectedError,
)
from .models import BalanceInfo, MarketOrder, MarketOrderBook, OpenOrder, OrderType, Ticker  # noqa: F401
