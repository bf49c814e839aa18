"""
HMAC-SHA256 request signing.

The key is built from the configured secret once, when the adapter
initialises its secure message layer.  Anything wrong at that point (an
empty secret, a secret that cannot be UTF-8 encoded, a runtime without
SHA-256) is a configuration error and the adapter refuses to start.

What gets signed is exchange specific.  For Bitstamp the message is the
decimal nonce followed by the client id and the API key, and the
signature is sent as an upper-case hex digest.  The exchange silently
rejects anything that differs by a single byte, so the output format is
part of the signer's contract.
"""

from __future__ import annotations

import hashlib
import hmac
from typing import Union

from .errors import ConfigurationError


def sign(secret: Union[str, bytes], message: bytes) -> bytes:
    """Return the raw HMAC-SHA256 of ``message`` keyed with ``secret``."""
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    return hmac.new(key, message, hashlib.sha256).digest()


class MessageSigner:
    """Holds the HMAC key for one adapter instance.

    The prepared HMAC object is never updated in place; each call works on
    a copy, so a signer can be shared between threads.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ConfigurationError("Failed to setup MAC security. Secret key is missing!")
        try:
            key = secret.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ConfigurationError("Failed to setup MAC security. Secret key seems invalid!") from exc
        if "sha256" not in hashlib.algorithms_available:
            raise ConfigurationError("Failed to setup MAC security. HINT: Is HMAC-SHA256 available?")
        try:
            self._mac = hmac.new(key, digestmod=hashlib.sha256)
        except ValueError as exc:
            raise ConfigurationError(f"Failed to setup MAC security: {exc}") from exc

    def sign(self, message: bytes) -> bytes:
        mac = self._mac.copy()
        mac.update(message)
        return mac.digest()

    def sign_hex_upper(self, message: bytes) -> str:
        """Signature in the encoding Bitstamp expects."""
        return self.sign(message).hex().upper()


def bitstamp_auth_message(nonce: int, client_id: str, key: str) -> bytes:
    """Build the byte string Bitstamp signs: ``nonce + client_id + key``."""
    return f"{nonce}{client_id}{key}".encode("utf-8")


__all__ = ["sign", "MessageSigner", "bitstamp_auth_message"]
