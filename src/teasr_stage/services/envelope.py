# src/teasr_stage/services/envelope.py
"""Authenticated envelope encryption for post media and content keys."""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from teasr_stage.services.errors import IntegrityError

KEY_LENGTH_BYTES = 32
IV_LENGTH_BYTES = 12
AUTH_TAG_LENGTH_BYTES = 16
MASTER_KEY_PAD_BYTE = b"0"


@dataclass(frozen=True)
class SealedData:
    """Output of a single AES-256-GCM encryption."""

    ciphertext: bytes
    iv: bytes
    auth_tag: bytes


@dataclass(frozen=True)
class EnvelopeData:
    """Content key sealed under the master key, as stored on the post row."""

    encrypted_key: str
    iv: str
    auth_tag: str


def derive_master_key(secret: str) -> bytes:
    """Derive the 256-bit master key from the configured secret.

    The UTF-8 encoding of ``secret`` is right-padded with ASCII ``"0"`` bytes to
    32 bytes and then truncated to its first 32 bytes. Envelopes written under one
    secret can only be opened by a process configured with the same secret.
    """
    if not secret:
        raise ValueError("A non-empty secret is required to derive the master key")
    raw = secret.encode("utf-8")
    return raw.ljust(KEY_LENGTH_BYTES, MASTER_KEY_PAD_BYTE)[:KEY_LENGTH_BYTES]


def pack_blob(sealed: SealedData) -> bytes:
    """Serialize sealed media as ``[12-byte IV][ciphertext][16-byte tag]``."""
    return sealed.iv + sealed.ciphertext + sealed.auth_tag


def unpack_blob(blob: bytes) -> SealedData:
    """Split a stored media blob back into its IV, ciphertext and tag."""
    if len(blob) < IV_LENGTH_BYTES + AUTH_TAG_LENGTH_BYTES:
        raise IntegrityError("Encrypted blob is shorter than its IV and tag")
    return SealedData(
        ciphertext=blob[IV_LENGTH_BYTES:-AUTH_TAG_LENGTH_BYTES],
        iv=blob[:IV_LENGTH_BYTES],
        auth_tag=blob[-AUTH_TAG_LENGTH_BYTES:],
    )


def _b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as err:
        raise IntegrityError(f"Invalid base64 envelope field: {err}") from err


class CryptoEnvelope:
    """AES-256-GCM sealing for media bytes and for per-post content keys.

    The master key is read-only after construction, so a single instance is
    safe to share across concurrent requests.
    """

    def __init__(self, secret: str) -> None:
        self._master_key = derive_master_key(secret)

    @staticmethod
    def generate_content_key() -> bytes:
        """Return a fresh random 256-bit content key."""
        return secrets.token_bytes(KEY_LENGTH_BYTES)

    @staticmethod
    def seal(plaintext: bytes, key: bytes) -> SealedData:
        """Encrypt ``plaintext`` under ``key`` with a fresh random IV."""
        if len(key) != KEY_LENGTH_BYTES:
            raise ValueError("Content keys must be 32 bytes")
        iv = secrets.token_bytes(IV_LENGTH_BYTES)
        combined = AESGCM(key).encrypt(iv, plaintext, None)
        return SealedData(
            ciphertext=combined[:-AUTH_TAG_LENGTH_BYTES],
            iv=iv,
            auth_tag=combined[-AUTH_TAG_LENGTH_BYTES:],
        )

    @staticmethod
    def open(ciphertext: bytes, key: bytes, iv: bytes, auth_tag: bytes) -> bytes:
        """Decrypt and authenticate.

        Raises:
            IntegrityError: If the tag does not verify, the key is wrong, or the
                inputs are malformed. Partial plaintext is never returned.
        """
        if len(key) != KEY_LENGTH_BYTES:
            raise IntegrityError("Content keys must be 32 bytes")
        if len(iv) != IV_LENGTH_BYTES or len(auth_tag) != AUTH_TAG_LENGTH_BYTES:
            raise IntegrityError("Malformed IV or authentication tag")
        try:
            return AESGCM(key).decrypt(iv, ciphertext + auth_tag, None)
        except InvalidTag as err:
            raise IntegrityError("Authentication tag verification failed") from err

    def seal_content_key(self, key: bytes) -> EnvelopeData:
        """Wrap a content key under the master key for storage on the post."""
        sealed = self.seal(key, self._master_key)
        return EnvelopeData(
            encrypted_key=base64.b64encode(sealed.ciphertext).decode("ascii"),
            iv=base64.b64encode(sealed.iv).decode("ascii"),
            auth_tag=base64.b64encode(sealed.auth_tag).decode("ascii"),
        )

    def open_content_key(self, envelope: EnvelopeData) -> bytes:
        """Unwrap a content key previously sealed with :meth:`seal_content_key`."""
        key = self.open(
            _b64decode(envelope.encrypted_key),
            self._master_key,
            _b64decode(envelope.iv),
            _b64decode(envelope.auth_tag),
        )
        if len(key) != KEY_LENGTH_BYTES:
            raise IntegrityError("Unwrapped content key has the wrong length")
        return key

    def seal_media(self, plaintext: bytes, key: bytes) -> bytes:
        """Seal media bytes and serialize them in the on-disk blob format."""
        return pack_blob(self.seal(plaintext, key))

    def open_media(self, blob: bytes, key: bytes) -> bytes:
        """Open a blob written by :meth:`seal_media`."""
        sealed = unpack_blob(blob)
        return self.open(sealed.ciphertext, key, sealed.iv, sealed.auth_tag)
