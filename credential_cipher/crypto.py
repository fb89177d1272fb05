"""
Cipher Crypto Core - Key derivation, envelope framing, encryption/decryption
and value serialization.

Every call derives a fresh key:
    scrypt(MASTER_SECRET, salt[32]) → AES-256-GCM(nonce[16]) → envelope

Envelope wire format (positional, not self-describing):
    base64( salt[32] | nonce[16] | tag[16] | ciphertext[*] )

Security Note:
    Never log plaintext, ciphertext, salts, nonces or derived keys.
    Nonces are random 128-bit and salts random 256-bit, so no key/nonce pair
    repeats across calls.
"""
import os
import base64
from typing import Any
from dataclasses import dataclass

import orjson
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import DEFAULT_SCRYPT_N, DEFAULT_SCRYPT_R, DEFAULT_SCRYPT_P
from .exceptions import (
    CryptoError,
    DecryptionError,
    MalformedEnvelopeError,
    SerializationError,
)

SALT_SIZE = 32  # 256-bit salt
NONCE_SIZE = 16  # 128-bit IV
TAG_SIZE = 16  # GCM tag
KEY_LENGTH = 32  # AES-256
HEADER_SIZE = SALT_SIZE + NONCE_SIZE + TAG_SIZE

_BYTES_MARKER = "__cipher_bytes_b64__"


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def random_bytes(size: int) -> bytes:
    """Return ``size`` bytes from the OS CSPRNG.

    Raises:
        CryptoError: If no secure random source is available.
    """
    try:
        return os.urandom(size)
    except (NotImplementedError, OSError) as err:
        raise CryptoError("Secure random source unavailable") from err


def derive_key(
    secret: bytes,
    salt: bytes,
    n: int = DEFAULT_SCRYPT_N,
    r: int = DEFAULT_SCRYPT_R,
    p: int = DEFAULT_SCRYPT_P,
) -> bytes:
    """Derive a 32-byte encryption key using scrypt.

    Args:
        secret: Master secret bytes.
        salt: Per-envelope random salt.
        n: CPU/memory cost (power of two).
        r: Block size.
        p: Parallelization.

    Returns:
        32-byte derived key.

    Raises:
        CryptoError: If scrypt is not supported by the crypto backend, or
            the cost parameters exceed available memory.
    """
    try:
        kdf = Scrypt(salt=salt, length=KEY_LENGTH, n=n, r=r, p=p)
        return kdf.derive(secret)
    except UnsupportedAlgorithm as err:
        raise CryptoError("scrypt key derivation unavailable") from err
    except (MemoryError, ValueError) as err:
        raise CryptoError("scrypt key derivation failed") from err


def _aead(key: bytes) -> AESGCM:
    try:
        return AESGCM(key)
    except UnsupportedAlgorithm as err:
        raise CryptoError("AES-256-GCM cipher unavailable") from err


# ---------------------------------------------------------------------------
# Envelope framing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Envelope:
    """Decoded parts of an encrypted envelope."""
    salt: bytes
    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        return self.salt + self.nonce + self.tag + self.ciphertext

    def pack(self) -> str:
        """Encode as the base64 text persisted by callers."""
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @classmethod
    def unpack(cls, data: str) -> "Envelope":
        """Split a base64 envelope by fixed offsets.

        Structural checks run before any cryptographic work.

        Raises:
            MalformedEnvelopeError: Not a string, invalid base64, or shorter
                than salt + nonce + tag.
        """
        if not isinstance(data, str):
            raise MalformedEnvelopeError()
        try:
            raw = base64.b64decode(data.strip(), validate=True)
        except ValueError:
            raise MalformedEnvelopeError() from None
        if len(raw) < HEADER_SIZE:
            raise MalformedEnvelopeError()
        return cls(
            salt=raw[:SALT_SIZE],
            nonce=raw[SALT_SIZE:SALT_SIZE + NONCE_SIZE],
            tag=raw[SALT_SIZE + NONCE_SIZE:HEADER_SIZE],
            ciphertext=raw[HEADER_SIZE:],
        )


# ---------------------------------------------------------------------------
# Encryption / decryption
# ---------------------------------------------------------------------------

def seal(
    plaintext: bytes,
    secret: bytes,
    n: int = DEFAULT_SCRYPT_N,
    r: int = DEFAULT_SCRYPT_R,
    p: int = DEFAULT_SCRYPT_P,
) -> Envelope:
    """Encrypt plaintext under a key freshly derived from ``secret``.

    Args:
        plaintext: Data to encrypt.
        secret: Master secret bytes.

    Returns:
        Envelope with new salt, nonce, tag and ciphertext.
    """
    salt = random_bytes(SALT_SIZE)
    nonce = random_bytes(NONCE_SIZE)
    key = derive_key(secret, salt, n, r, p)
    # AESGCM appends the tag to the ciphertext; the envelope stores it first.
    sealed = _aead(key).encrypt(nonce, plaintext, None)
    return Envelope(
        salt=salt,
        nonce=nonce,
        tag=sealed[-TAG_SIZE:],
        ciphertext=sealed[:-TAG_SIZE],
    )


def open_envelope(
    envelope: Envelope,
    secret: bytes,
    n: int = DEFAULT_SCRYPT_N,
    r: int = DEFAULT_SCRYPT_R,
    p: int = DEFAULT_SCRYPT_P,
) -> bytes:
    """Authenticate and decrypt an envelope.

    Args:
        envelope: Envelope from ``Envelope.unpack``.
        secret: Master secret bytes.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        DecryptionError: Tag mismatch, wrong secret or corrupted envelope.
    """
    key = derive_key(secret, envelope.salt, n, r, p)
    try:
        return _aead(key).decrypt(
            envelope.nonce, envelope.ciphertext + envelope.tag, None,
        )
    except InvalidTag:
        raise DecryptionError() from None


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def _wrap_bytes(value: Any) -> Any:
    """Replace bytes at any depth with a reserved-key marker object."""
    if isinstance(value, (bytes, bytearray)):
        return {_BYTES_MARKER: base64.b64encode(value).decode("ascii")}
    if isinstance(value, dict):
        if _BYTES_MARKER in value:
            raise SerializationError(f"{_BYTES_MARKER!r} is a reserved key")
        return {k: _wrap_bytes(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_wrap_bytes(v) for v in value]
    return value


def _unwrap_bytes(value: Any) -> Any:
    if isinstance(value, dict):
        if _BYTES_MARKER not in value:
            return {k: _unwrap_bytes(v) for k, v in value.items()}
        encoded = value[_BYTES_MARKER]
        if len(value) != 1 or not isinstance(encoded, str):
            raise DecryptionError()
        try:
            return base64.b64decode(encoded, validate=True)
        except ValueError:
            raise DecryptionError() from None
    if isinstance(value, list):
        return [_unwrap_bytes(v) for v in value]
    return value


def serialize_value(value: Any) -> bytes:
    """Encode a token bundle as JSON bytes.

    Anything orjson handles natively is accepted, plus bytes nested at any
    depth. Tuples come back as lists.

    Raises:
        SerializationError: If the value uses the reserved marker key or
            holds a type orjson cannot encode.
    """
    try:
        return orjson.dumps(_wrap_bytes(value))
    except orjson.JSONEncodeError as err:
        raise SerializationError(f"Cannot serialize value: {err}") from None


def deserialize_value(data: bytes) -> Any:
    """Decode bytes produced by ``serialize_value``.

    Raises:
        DecryptionError: If the payload is not JSON or a bytes marker is
            malformed.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError:
        raise DecryptionError() from None
    return _unwrap_bytes(parsed)
