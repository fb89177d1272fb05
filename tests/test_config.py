"""Tests for CipherConfig and master secret handling."""
import base64

import pytest
from pydantic import ValidationError

import credential_cipher
from credential_cipher import CipherConfig, ConfigurationError, generate_master_secret
from credential_cipher.config import MASTER_SECRET_ENV


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        MASTER_SECRET_ENV,
        "ENCRYPTION_SCRYPT_N",
        "ENCRYPTION_SCRYPT_R",
        "ENCRYPTION_SCRYPT_P",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestCipherConfig:

    def test_defaults(self):
        config = CipherConfig(master_secret="s3cret")
        assert config.scrypt_n == 2 ** 14
        assert config.scrypt_r == 8
        assert config.scrypt_p == 1

    def test_secret_is_masked(self):
        config = CipherConfig(master_secret="s3cret")
        assert "s3cret" not in repr(config)
        assert "s3cret" not in str(config)

    def test_require_secret_returns_utf8(self):
        config = CipherConfig(master_secret="clé")
        assert config.require_secret() == "clé".encode("utf-8")

    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret(self, secret):
        config = CipherConfig(master_secret=secret)
        assert config.has_secret is False
        with pytest.raises(ConfigurationError) as exc:
            config.require_secret()
        assert MASTER_SECRET_ENV in str(exc.value)

    @pytest.mark.parametrize("n", [0, 1, 3, 1000])
    def test_invalid_scrypt_n(self, n):
        with pytest.raises(ValidationError):
            CipherConfig(master_secret="x", scrypt_n=n)

    def test_invalid_scrypt_r(self):
        with pytest.raises(ValidationError):
            CipherConfig(master_secret="x", scrypt_r=0)

    def test_frozen(self):
        config = CipherConfig(master_secret="x")
        with pytest.raises(ValidationError):
            config.scrypt_n = 2 ** 10


class TestFromEnv:

    def test_reads_secret(self, clean_env):
        clean_env.setenv(MASTER_SECRET_ENV, "from-env")
        config = CipherConfig.from_env()
        assert config.require_secret() == b"from-env"

    def test_unset_secret_is_deferred(self, clean_env):
        config = CipherConfig.from_env()
        assert config.has_secret is False

    def test_scrypt_overrides(self, clean_env):
        clean_env.setenv("ENCRYPTION_SCRYPT_N", "1024")
        clean_env.setenv("ENCRYPTION_SCRYPT_R", "4")
        clean_env.setenv("ENCRYPTION_SCRYPT_P", "2")
        config = CipherConfig.from_env()
        assert (config.scrypt_n, config.scrypt_r, config.scrypt_p) == (1024, 4, 2)

    @pytest.mark.parametrize("name,value", [
        ("ENCRYPTION_SCRYPT_N", "3"),
        ("ENCRYPTION_SCRYPT_N", "abc"),
        ("ENCRYPTION_SCRYPT_R", "0"),
        ("ENCRYPTION_SCRYPT_P", "1.5"),
    ])
    def test_invalid_override_is_configuration_error(self, clean_env, name, value):
        clean_env.setenv(MASTER_SECRET_ENV, "from-env")
        clean_env.setenv(name, value)
        with pytest.raises(ConfigurationError) as exc:
            CipherConfig.from_env()
        assert "from-env" not in str(exc.value)

    def test_invalid_override_fails_startup_check(self, clean_env):
        clean_env.setenv(MASTER_SECRET_ENV, "from-env")
        clean_env.setenv("ENCRYPTION_SCRYPT_N", "3")
        with pytest.raises(ConfigurationError):
            credential_cipher.verify_config()


class TestGenerateMasterSecret:

    def test_is_32_random_bytes(self):
        secret = generate_master_secret()
        assert len(base64.b64decode(secret)) == 32

    def test_unique(self):
        assert generate_master_secret() != generate_master_secret()
