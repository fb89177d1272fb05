"""
Credential Cipher errors.

Security Note:
    Error messages must never carry plaintext, master secret, derived keys,
    salts or nonces. DecryptionError and MalformedEnvelopeError share one
    message so a caller probing ciphertexts cannot tell them apart.
"""

DECRYPTION_FAILED = "Unable to decrypt credential"


class CipherError(Exception):
    """Base class for all Credential Cipher failures."""

    http_status: int = 500


class ConfigurationError(CipherError):
    """Master secret is missing. Fatal, the service must not start."""

    http_status = 503


class CryptoError(CipherError):
    """Random source or cipher primitive is unavailable."""


class SerializationError(CipherError):
    """Value cannot be encoded for ``encrypt_value``."""


class DecryptionError(CipherError):
    """Authentication failed: tampered envelope, wrong secret or corruption."""

    def __init__(self, message: str = DECRYPTION_FAILED):
        super().__init__(message)


class MalformedEnvelopeError(DecryptionError):
    """Envelope has an invalid encoding or is too short."""


class SelfTestError(CipherError):
    """Startup encrypt/decrypt round trip failed."""

    http_status = 503
