"""Tests for exchange config loading and the env/file secrets manager."""

from __future__ import annotations

import pytest  # type: ignore

from exchanges.src.exchanges.config import DEFAULT_NON_FATAL_ERROR_CODES, ExchangeConfig
from exchanges.src.exchanges.errors import ConfigurationError
from exchanges.src.exchanges.secrets_manager import EnvFileSecretsManager


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "BITSTAMP_CLIENT_ID",
        "BITSTAMP_CLIENT_ID_FILE",
        "BITSTAMP_API_KEY",
        "BITSTAMP_API_KEY_FILE",
        "BITSTAMP_API_SECRET",
        "BITSTAMP_API_SECRET_FILE",
        "EXCHANGE_CONNECTION_TIMEOUT",
        "EXCHANGE_PROXY",
        "EXCHANGE_BUY_FEE",
        "EXCHANGE_SELL_FEE",
        "EXCHANGE_NONCE_STORE",
        "SECRETS_BASE_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


def test_config_file_spelling_is_accepted() -> None:
    config = ExchangeConfig.from_mapping(
        {
            "authentication": {"client-id": "42", "key": "k", "secret": "s"},
            "network": {"connection-timeout": 15, "non-fatal-error-codes": [502]},
            "other": {"buy-fee": "0.25"},
        }
    )
    assert config.authentication.client_id == "42"
    assert config.authentication.secret.get_secret_value() == "s"
    assert config.network.connection_timeout == 15
    assert config.network.non_fatal_error_codes == [502]
    assert config.other["buy-fee"] == "0.25"


def test_network_defaults() -> None:
    config = ExchangeConfig()
    assert config.network.non_fatal_error_codes == DEFAULT_NON_FATAL_ERROR_CODES
    assert config.network.proxy is None


def test_invalid_config_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        ExchangeConfig.from_mapping({"network": {"connection-timeout": -1}})


def test_masked_config_hides_secret() -> None:
    config = ExchangeConfig.from_mapping({"authentication": {"secret": "top-secret"}})
    assert "top-secret" not in str(config.masked())
    assert "top-secret" not in repr(config)


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("BITSTAMP_CLIENT_ID", "123456")
    monkeypatch.setenv("BITSTAMP_API_KEY", "api-key")
    monkeypatch.setenv("BITSTAMP_API_SECRET", "api-secret")
    monkeypatch.setenv("EXCHANGE_CONNECTION_TIMEOUT", "7.5")
    monkeypatch.setenv("EXCHANGE_SELL_FEE", "0.1")
    config = ExchangeConfig.from_env()
    assert config.authentication.client_id == "123456"
    assert config.authentication.key == "api-key"
    assert config.authentication.secret.get_secret_value() == "api-secret"
    assert config.network.connection_timeout == 7.5
    assert config.other == {"sell-fee": "0.1"}


def test_secret_file_takes_precedence(monkeypatch, tmp_path) -> None:
    secret_file = tmp_path / "secret.txt"
    secret_file.write_text("from-file\n")
    monkeypatch.setenv("BITSTAMP_API_SECRET", "from-env")
    monkeypatch.setenv("BITSTAMP_API_SECRET_FILE", str(secret_file))
    mgr = EnvFileSecretsManager()
    assert mgr.get_secret("BITSTAMP_API_SECRET") == "from-file"


def test_relative_secret_file_uses_base_path(monkeypatch, tmp_path) -> None:
    (tmp_path / "secret.txt").write_text("relative")
    monkeypatch.setenv("BITSTAMP_API_SECRET_FILE", "secret.txt")
    mgr = EnvFileSecretsManager(base_path=tmp_path)
    assert mgr.get_secret("BITSTAMP_API_SECRET") == "relative"


def test_unreadable_secret_file_yields_none(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("BITSTAMP_API_SECRET_FILE", str(tmp_path / "missing.txt"))
    mgr = EnvFileSecretsManager()
    assert mgr.get_secret("BITSTAMP_API_SECRET") is None
