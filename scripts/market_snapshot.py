#!/usr/bin/env python
"""
Print a market snapshot from Bitstamp.

Shows the top of the order book and the ticker for a market and, with
``--balances``, the account balances.  Credentials are read from the
environment (``BITSTAMP_CLIENT_ID``, ``BITSTAMP_API_KEY``,
``BITSTAMP_API_SECRET`` or their ``*_FILE`` variants); the adapter refuses
to start without them.  Operators can use this to check that credentials
and connectivity work before starting the engine.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from exchanges.src.exchanges import BitstampExchangeAdapter, ExchangeAdapterError, ExchangeConfig


async def snapshot(market_id: str, depth: int, balances: bool) -> None:
    adapter = BitstampExchangeAdapter.create(ExchangeConfig.from_env())
    print(f"Adapter: {adapter.get_impl_name()}")
    book = await adapter.get_market_orders(market_id)
    print(f"Order book {market_id} (top {depth}):")
    for ask in reversed(book.asks[:depth]):
        print(f"  ask {ask.price:>14} x {ask.quantity:<16} = {ask.total}")
    for bid in book.bids[:depth]:
        print(f"  bid {bid.price:>14} x {bid.quantity:<16} = {bid.total}")
    ticker = await adapter.get_ticker(market_id)
    print("Ticker:")
    for name, value in ticker.model_dump().items():
        print(f"  {name}: {'n/a' if value is None else value}")
    if balances:
        info = await adapter.get_balance_info()
        print("Balances (available / on order):")
        for currency in sorted(info.available):
            print(f"  {currency}: {info.available[currency]} / {info.on_order[currency]}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Print a Bitstamp market snapshot.")
    parser.add_argument("market", help="Bitstamp market id, e.g. btcusd.")
    parser.add_argument("--depth", type=int, default=5, help="Order book levels to show per side.")
    parser.add_argument("--balances", action="store_true", help="Also fetch account balances (authenticated).")
    args = parser.parse_args()
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "WARNING"))
    try:
        asyncio.run(snapshot(args.market, args.depth, args.balances))
    except ExchangeAdapterError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
