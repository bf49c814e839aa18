"""Tests for HMAC-SHA256 signing and the Bitstamp signature message."""

from __future__ import annotations

import pytest  # type: ignore

from exchanges.src.exchanges.errors import ConfigurationError
from exchanges.src.exchanges.signer import MessageSigner, bitstamp_auth_message, sign


def test_known_hmac_sha256_vector() -> None:
    # RFC 4231, test case 2
    signer = MessageSigner("Jefe")
    digest = signer.sign(b"what do ya want for nothing?")
    assert digest.hex() == "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"


def test_signing_is_deterministic() -> None:
    signer = MessageSigner("api-secret")
    message = bitstamp_auth_message(1_700_000_000, "123456", "api-key")
    assert signer.sign(message) == signer.sign(message)
    assert MessageSigner("api-secret").sign(message) == signer.sign(message)


def test_one_byte_change_changes_signature() -> None:
    signer = MessageSigner("api-secret")
    original = b"1700000000123456api-key"
    changed = b"1700000001123456api-key"
    assert signer.sign(original) != signer.sign(changed)


def test_module_level_sign_matches_signer() -> None:
    message = b"payload"
    assert sign("api-secret", message) == MessageSigner("api-secret").sign(message)
    assert sign(b"api-secret", message) == sign("api-secret", message)


def test_hex_signature_is_upper_case() -> None:
    signature = MessageSigner("api-secret").sign_hex_upper(b"payload")
    assert len(signature) == 64
    assert signature == signature.upper()
    assert signature.lower() == sign("api-secret", b"payload").hex()


def test_bitstamp_message_layout() -> None:
    assert bitstamp_auth_message(1000, "123456", "api-key") == b"1000123456api-key"


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        MessageSigner("")


def test_unencodable_secret_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        MessageSigner("bad-\ud800-secret")
