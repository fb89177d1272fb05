"""
Cipher Configuration - Master secret loading and validated settings.

Reads the master secret from the environment:
    ENCRYPTION_KEY = <long-lived secret, e.g. base64 of 32 random bytes>

Optional scrypt cost overrides:
    ENCRYPTION_SCRYPT_N, ENCRYPTION_SCRYPT_R, ENCRYPTION_SCRYPT_P

Security Note:
    Never log the master secret. It is kept as a SecretStr so it is masked
    in reprs and validation errors.
"""
import os
import base64
import secrets
import logging
from typing import Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

from .exceptions import ConfigurationError

logger = logging.getLogger("credential.cipher")

MASTER_SECRET_ENV = "ENCRYPTION_KEY"

# Stored envelopes were derived with these; changing them breaks decryption.
DEFAULT_SCRYPT_N = 2 ** 14
DEFAULT_SCRYPT_R = 8
DEFAULT_SCRYPT_P = 1

_MISSING_SECRET = (
    f"Missing {MASTER_SECRET_ENV} environment variable. "
    "Generate one with: openssl rand -base64 32"
)


def generate_master_secret() -> str:
    """Generate a random 32-byte master secret and return as base64 string.

    This is a utility for operators to provision ``ENCRYPTION_KEY``.

    Returns:
        Base64-encoded 32-byte secret string.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer") from None


class CipherConfig(BaseModel):
    """Validated cipher configuration."""

    master_secret: Optional[SecretStr] = None
    scrypt_n: int = Field(default=DEFAULT_SCRYPT_N, gt=1)
    scrypt_r: int = Field(default=DEFAULT_SCRYPT_R, ge=1)
    scrypt_p: int = Field(default=DEFAULT_SCRYPT_P, ge=1)

    model_config = {"frozen": True}

    @field_validator("scrypt_n")
    @classmethod
    def validate_power_of_two(cls, v: int) -> int:
        """scrypt requires the CPU/memory cost to be a power of two."""
        if v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two, got {v}")
        return v

    @property
    def has_secret(self) -> bool:
        return bool(
            self.master_secret is not None
            and self.master_secret.get_secret_value()
        )

    def require_secret(self) -> bytes:
        """Return the master secret as UTF-8 bytes.

        Raises:
            ConfigurationError: If the master secret is absent or empty.
        """
        if not self.has_secret:
            raise ConfigurationError(_MISSING_SECRET)
        return self.master_secret.get_secret_value().encode("utf-8")

    @classmethod
    def from_env(cls) -> "CipherConfig":
        """Create CipherConfig by loading values from environment.

        A missing ``ENCRYPTION_KEY`` is not an error here; it is reported
        by the first operation that needs the secret.

        Returns:
            Populated CipherConfig instance.

        Raises:
            ConfigurationError: If a scrypt override is not a valid setting.
        """
        secret = os.environ.get(MASTER_SECRET_ENV) or None
        try:
            config = cls(
                master_secret=secret,
                scrypt_n=_env_int("ENCRYPTION_SCRYPT_N", DEFAULT_SCRYPT_N),
                scrypt_r=_env_int("ENCRYPTION_SCRYPT_R", DEFAULT_SCRYPT_R),
                scrypt_p=_env_int("ENCRYPTION_SCRYPT_P", DEFAULT_SCRYPT_P),
            )
        except ValidationError as err:
            fields = ", ".join(
                str(e["loc"][0]) for e in err.errors() if e.get("loc")
            )
            raise ConfigurationError(
                f"Invalid cipher settings in environment: {fields}"
            ) from None
        logger.debug(
            "Loaded cipher config (secret set: %s, scrypt n=%d r=%d p=%d)",
            config.has_secret, config.scrypt_n, config.scrypt_r, config.scrypt_p,
        )
        return config
