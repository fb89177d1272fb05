"""Tests for the aiohttp startup hook and error middleware."""
import asyncio

import orjson
import pytest
from aiohttp import web
from aiohttp.test_utils import make_mocked_request

from credential_cipher import (
    CipherConfig,
    ConfigurationError,
    DecryptionError,
    MalformedEnvelopeError,
    SelfTestError,
)
from credential_cipher.web import (
    CIPHER_KEY,
    cipher_error_middleware,
    setup_cipher,
    verify_cipher_on_startup,
)


class TestSetupCipher:

    def test_registers_cipher_and_hook(self):
        app = web.Application()
        cipher = setup_cipher(app, CipherConfig(master_secret="x", scrypt_n=16))
        assert app[CIPHER_KEY] is cipher
        assert verify_cipher_on_startup in app.on_startup

    def test_startup_self_test_passes(self):
        app = web.Application()
        setup_cipher(app, CipherConfig(master_secret="x", scrypt_n=16))
        asyncio.run(verify_cipher_on_startup(app))

    def test_startup_aborts_without_secret(self):
        app = web.Application()
        setup_cipher(app, CipherConfig())
        with pytest.raises(ConfigurationError):
            asyncio.run(verify_cipher_on_startup(app))

    def test_loads_from_env(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_KEY", "env-secret")
        app = web.Application()
        cipher = setup_cipher(app)
        assert cipher.config.require_secret() == b"env-secret"


class TestCipherErrorMiddleware:

    def _run(self, exc):
        async def handler(request):
            raise exc

        request = make_mocked_request("GET", "/merchants/M1/token")
        return asyncio.run(cipher_error_middleware(request, handler))

    @pytest.mark.parametrize("exc,status", [
        (ConfigurationError("Missing ENCRYPTION_KEY"), 503),
        (SelfTestError("Encryption self-test failed"), 503),
        (DecryptionError(), 500),
        (MalformedEnvelopeError(), 500),
    ])
    def test_status_mapping(self, exc, status):
        response = self._run(exc)
        assert response.status == status

    def test_body_is_generic(self):
        response = self._run(ConfigurationError("Missing ENCRYPTION_KEY"))
        body = orjson.loads(response.body)
        assert body == {"error": "Service unavailable"}

    def test_passes_through_success(self):
        async def handler(request):
            return web.json_response({"ok": True})

        request = make_mocked_request("GET", "/")
        response = asyncio.run(cipher_error_middleware(request, handler))
        assert response.status == 200

    def test_other_errors_propagate(self):
        with pytest.raises(KeyError):
            self._run(KeyError("merchant"))
