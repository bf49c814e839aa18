"""Pytest configuration: path setup and shared fixtures.

The test suite imports the adapter as ``exchanges.src.exchanges``.  When
pytest is executed as an installed script, the repository root is not
automatically added to ``sys.path``; this file makes sure it is.  It also
provides a fake Bitstamp server and a ready-made exchange config.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import pytest_asyncio

ROOT = Path(__file__).resolve().parents[1]

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from exchanges.src.exchanges.config import ExchangeConfig  # noqa: E402
from tests.helpers.fake_bitstamp import FakeBitstamp  # noqa: E402


@pytest_asyncio.fixture
async def fake_bitstamp():
    fake = FakeBitstamp()
    await fake.start()
    yield fake
    await fake.close()


@pytest.fixture
def exchange_config() -> ExchangeConfig:
    return ExchangeConfig.from_mapping(
        {
            "authentication": {"client-id": "123456", "key": "api-key", "secret": "api-secret"},
            "network": {"connection-timeout": 5},
        }
    )
