"""
Exchange configuration models.

The engine hands each adapter an :class:`ExchangeConfig` once, at
``init`` time; the adapter never re-reads it.  The models mirror the
sections of the engine's exchange config: authentication items, network
settings and a free-form ``other`` map for exchange-specific options.
Keys may be given in the config-file spelling (``client-id``,
``connection-timeout``) or as Python field names.

Loading config files is the engine's job.  For scripts and containers
:meth:`ExchangeConfig.from_env` builds a config from environment variables
through the secrets manager.
"""

from __future__ import annotations

import os
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from .errors import ConfigurationError
from .secrets_manager import BaseSecretsManager, get_default_secrets_manager

DEFAULT_NON_FATAL_ERROR_CODES = [502, 503, 504, 520, 522, 525]

DEFAULT_NON_FATAL_ERROR_MESSAGES = [
    "Connection reset",
    "Connection refused",
    "Remote host closed connection during handshake",
    "Unexpected end of file from server",
]


class AuthenticationConfig(BaseModel):
    """Credentials used to sign private requests."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    client_id: str = Field("", alias="client-id")
    key: str = ""
    secret: SecretStr = SecretStr("")


class NetworkConfig(BaseModel):
    """Transport settings: timeout, proxy and which failures count as network errors."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    connection_timeout: float = Field(30.0, alias="connection-timeout", gt=0)
    non_fatal_error_codes: List[int] = Field(
        default_factory=lambda: list(DEFAULT_NON_FATAL_ERROR_CODES), alias="non-fatal-error-codes"
    )
    non_fatal_error_messages: List[str] = Field(
        default_factory=lambda: list(DEFAULT_NON_FATAL_ERROR_MESSAGES), alias="non-fatal-error-messages"
    )
    proxy: Optional[str] = None


class ExchangeConfig(BaseModel):
    """Complete adapter configuration."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = "Bitstamp"
    authentication: AuthenticationConfig = Field(default_factory=AuthenticationConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    other: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: dict) -> "ExchangeConfig":
        """Validate a plain mapping, turning validation failures into :class:`ConfigurationError`."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid exchange config: {exc}") from exc

    @classmethod
    def from_env(cls, secrets: Optional[BaseSecretsManager] = None) -> "ExchangeConfig":
        """Build a config from environment variables.

        Recognised variables:

        * ``BITSTAMP_CLIENT_ID``, ``BITSTAMP_API_KEY``, ``BITSTAMP_API_SECRET``
          (each may instead be supplied via the matching ``*_FILE`` variable)
        * ``EXCHANGE_CONNECTION_TIMEOUT`` (seconds)
        * ``EXCHANGE_PROXY``
        * ``EXCHANGE_BUY_FEE`` / ``EXCHANGE_SELL_FEE`` (percent)
        * ``EXCHANGE_NONCE_STORE`` (path of the nonce high-water mark file)
        """
        secrets = secrets or get_default_secrets_manager()
        data: dict = {
            "authentication": {
                "client-id": secrets.get_secret("BITSTAMP_CLIENT_ID") or "",
                "key": secrets.get_secret("BITSTAMP_API_KEY") or "",
                "secret": secrets.get_secret("BITSTAMP_API_SECRET") or "",
            },
            "network": {},
            "other": {},
        }
        timeout = os.environ.get("EXCHANGE_CONNECTION_TIMEOUT")
        if timeout:
            data["network"]["connection-timeout"] = timeout
        proxy = os.environ.get("EXCHANGE_PROXY")
        if proxy:
            data["network"]["proxy"] = proxy
        for env_name, other_key in (
            ("EXCHANGE_BUY_FEE", "buy-fee"),
            ("EXCHANGE_SELL_FEE", "sell-fee"),
            ("EXCHANGE_NONCE_STORE", "nonce-store-path"),
        ):
            value = os.environ.get(env_name)
            if value:
                data["other"][other_key] = value
        return cls.from_mapping(data)

    def masked(self) -> dict:
        """Dump the config for logging; the secret is never included."""
        dumped = self.model_dump(by_alias=True)
        dumped["authentication"]["secret"] = "**********"
        return dumped


__all__ = [
    "AuthenticationConfig",
    "NetworkConfig",
    "ExchangeConfig",
    "DEFAULT_NON_FATAL_ERROR_CODES",
    "DEFAULT_NON_FATAL_ERROR_MESSAGES",
]
