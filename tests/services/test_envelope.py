import base64

import pytest

from teasr_stage.services.envelope import (
    AUTH_TAG_LENGTH_BYTES,
    IV_LENGTH_BYTES,
    CryptoEnvelope,
    EnvelopeData,
    derive_master_key,
    unpack_blob,
)
from teasr_stage.services.errors import IntegrityError


@pytest.fixture
def envelope() -> CryptoEnvelope:
    return CryptoEnvelope("unit-test-secret")


def test_master_key_is_padded_with_ascii_zeros():
    assert derive_master_key("abc") == b"abc" + b"0" * 29


def test_master_key_is_truncated_to_32_bytes():
    secret = "x" * 40
    assert derive_master_key(secret) == b"x" * 32


def test_master_key_uses_utf8_bytes():
    key = derive_master_key("é")
    assert key[:2] == "é".encode("utf-8")
    assert len(key) == 32


def test_master_key_requires_a_secret():
    with pytest.raises(ValueError):
        derive_master_key("")


def test_seal_and_open_round_trip(envelope: CryptoEnvelope):
    key = envelope.generate_content_key()
    sealed = envelope.seal(b"hidden pixels", key)

    assert len(sealed.iv) == IV_LENGTH_BYTES
    assert len(sealed.auth_tag) == AUTH_TAG_LENGTH_BYTES
    assert envelope.open(sealed.ciphertext, key, sealed.iv, sealed.auth_tag) == b"hidden pixels"


def test_seal_uses_a_fresh_iv_each_call(envelope: CryptoEnvelope):
    key = envelope.generate_content_key()
    first = envelope.seal(b"same", key)
    second = envelope.seal(b"same", key)
    assert first.iv != second.iv
    assert first.ciphertext != second.ciphertext


def test_tampered_ciphertext_is_rejected(envelope: CryptoEnvelope):
    key = envelope.generate_content_key()
    sealed = envelope.seal(b"payload", key)
    tampered = bytes([sealed.ciphertext[0] ^ 0x01]) + sealed.ciphertext[1:]

    with pytest.raises(IntegrityError):
        envelope.open(tampered, key, sealed.iv, sealed.auth_tag)


def test_tampered_tag_is_rejected(envelope: CryptoEnvelope):
    key = envelope.generate_content_key()
    sealed = envelope.seal(b"payload", key)
    tag = sealed.auth_tag[:-1] + bytes([sealed.auth_tag[-1] ^ 0xFF])

    with pytest.raises(IntegrityError):
        envelope.open(sealed.ciphertext, key, sealed.iv, tag)


def test_wrong_key_is_rejected(envelope: CryptoEnvelope):
    sealed = envelope.seal(b"payload", envelope.generate_content_key())
    with pytest.raises(IntegrityError):
        envelope.open(sealed.ciphertext, envelope.generate_content_key(), sealed.iv, sealed.auth_tag)


def test_media_blob_layout_is_iv_ciphertext_tag(envelope: CryptoEnvelope):
    key = envelope.generate_content_key()
    blob = envelope.seal_media(b"0123456789", key)

    assert len(blob) == IV_LENGTH_BYTES + 10 + AUTH_TAG_LENGTH_BYTES
    parts = unpack_blob(blob)
    assert envelope.open(parts.ciphertext, key, parts.iv, parts.auth_tag) == b"0123456789"
    assert envelope.open_media(blob, key) == b"0123456789"


def test_short_blob_is_an_integrity_error(envelope: CryptoEnvelope):
    with pytest.raises(IntegrityError):
        envelope.open_media(b"too short", envelope.generate_content_key())


def test_content_key_envelope_round_trip(envelope: CryptoEnvelope):
    key = envelope.generate_content_key()
    sealed = envelope.seal_content_key(key)

    for field in (sealed.encrypted_key, sealed.iv, sealed.auth_tag):
        base64.b64decode(field, validate=True)
    assert envelope.open_content_key(sealed) == key


def test_content_key_cannot_be_opened_with_another_secret(envelope: CryptoEnvelope):
    sealed = envelope.seal_content_key(envelope.generate_content_key())
    with pytest.raises(IntegrityError):
        CryptoEnvelope("a-different-secret").open_content_key(sealed)


def test_malformed_envelope_fields_are_integrity_errors(envelope: CryptoEnvelope):
    bad = EnvelopeData(encrypted_key="not base64!!", iv="AAAA", auth_tag="AAAA")
    with pytest.raises(IntegrityError):
        envelope.open_content_key(bad)
