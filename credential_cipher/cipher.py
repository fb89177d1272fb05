"""
CredentialCipher - Authenticated encryption of access tokens at rest.

Provides the public API used by credential-storage code:
- ``encrypt(plaintext)`` - seal a token into a base64 envelope
- ``decrypt(envelope)`` - authenticate and recover the token
- ``verify_config()`` - startup self-test, fails fast on a broken setup
- ``encrypt_value(value)`` / ``decrypt_value(envelope)`` - same envelope for
  structured token bundles

Security Note:
    Never log plaintext, envelopes or key material. Only operation names
    and outcomes are logged.
"""
import time
import logging
from typing import Any

from .config import CipherConfig
from .crypto import (
    Envelope,
    seal,
    open_envelope,
    serialize_value,
    deserialize_value,
)
from .exceptions import DecryptionError, SelfTestError

logger = logging.getLogger("credential.cipher")


class CredentialCipher:
    """scrypt + AES-256-GCM cipher bound to one master secret.

    Stateless across calls: every ``encrypt`` draws a new salt and nonce and
    derives a new key; nothing is cached, so instances are safe to share
    between threads. The scrypt cost blocks the calling thread.
    """

    def __init__(self, config: CipherConfig):
        self._config = config

    @classmethod
    def from_env(cls) -> "CredentialCipher":
        """Build a cipher from ``ENCRYPTION_KEY`` and friends."""
        return cls(CipherConfig.from_env())

    @property
    def config(self) -> CipherConfig:
        return self._config

    def _kdf_params(self) -> tuple[int, int, int]:
        cfg = self._config
        return cfg.scrypt_n, cfg.scrypt_r, cfg.scrypt_p

    # ------------------------------------------------------------------
    # Bytes layer
    # ------------------------------------------------------------------

    def _seal(self, data: bytes) -> str:
        secret = self._config.require_secret()
        return seal(data, secret, *self._kdf_params()).pack()

    def _open(self, envelope: str) -> bytes:
        secret = self._config.require_secret()
        parts = Envelope.unpack(envelope)
        return open_envelope(parts, secret, *self._kdf_params())

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a token.

        Args:
            plaintext: Text to protect, e.g. an OAuth access token.

        Returns:
            Base64 envelope ``salt | nonce | tag | ciphertext``. Two calls
            with the same plaintext never return the same envelope.

        Raises:
            ConfigurationError: If the master secret is absent.
            CryptoError: If the random source or cipher is unavailable.
        """
        return self._seal(plaintext.encode("utf-8"))

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by ``encrypt``.

        Args:
            envelope: Stored base64 envelope.

        Returns:
            The original plaintext.

        Raises:
            ConfigurationError: If the master secret is absent.
            MalformedEnvelopeError: Invalid encoding or too short.
            DecryptionError: Authentication failed.
        """
        data = self._open(envelope)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionError() from None

    def encrypt_value(self, value: Any) -> str:
        """Serialize and encrypt a structured value (e.g. a token bundle).

        Raises:
            SerializationError: If the value cannot be encoded.
        """
        return self._seal(serialize_value(value))

    def decrypt_value(self, envelope: str) -> Any:
        """Decrypt an envelope produced by ``encrypt_value``."""
        return deserialize_value(self._open(envelope))

    def verify_config(self) -> None:
        """Fail fast on a missing secret, then run one round-trip self-test.

        Raises:
            ConfigurationError: If the master secret is absent. Raised
                before any cryptographic work.
            SelfTestError: If the round trip fails or does not match.
        """
        self._config.require_secret()
        probe = f"encryption-test-{int(time.time() * 1000)}"
        try:
            result = self.decrypt(self.encrypt(probe))
        except Exception as err:
            logger.error("Cipher self-test failed: %s", type(err).__name__)
            raise SelfTestError("Encryption self-test failed") from err
        if result != probe:
            logger.error("Cipher self-test failed: round trip mismatch")
            raise SelfTestError("Encryption self-test failed")
        logger.debug("Cipher self-test passed")
