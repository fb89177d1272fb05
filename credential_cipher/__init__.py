"""Credential Cipher - Encrypted storage of third-party access tokens.

Security Note (Threat Model):
    Tokens are protected at rest only. Plaintext exists in process memory
    while a caller uses it, and anyone holding ENCRYPTION_KEY can decrypt
    every stored envelope. Key rotation is out of scope.
"""

from .version import __version__
from .cipher import CredentialCipher
from .config import CipherConfig, generate_master_secret
from .crypto import Envelope
from .exceptions import (
    CipherError,
    ConfigurationError,
    CryptoError,
    DecryptionError,
    MalformedEnvelopeError,
    SelfTestError,
    SerializationError,
)


def encrypt(plaintext: str) -> str:
    """Encrypt with the master secret currently in the environment."""
    return CredentialCipher.from_env().encrypt(plaintext)


def decrypt(envelope: str) -> str:
    """Decrypt with the master secret currently in the environment."""
    return CredentialCipher.from_env().decrypt(envelope)


def verify_config() -> None:
    """Startup self-test against the environment configuration."""
    CredentialCipher.from_env().verify_config()


__all__ = [
    "__version__",
    "CredentialCipher",
    "CipherConfig",
    "Envelope",
    "generate_master_secret",
    "encrypt",
    "decrypt",
    "verify_config",
    "CipherError",
    "ConfigurationError",
    "CryptoError",
    "DecryptionError",
    "MalformedEnvelopeError",
    "SelfTestError",
    "SerializationError",
]
