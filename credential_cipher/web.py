"""
aiohttp integration - startup self-test and error mapping.

``setup_cipher(app)`` stores a CredentialCipher on the application and runs
its self-test on startup, so a missing or broken master secret aborts the
server before it serves traffic.
"""
import asyncio
import logging
from typing import Optional

from aiohttp import web

from .cipher import CredentialCipher
from .config import CipherConfig
from .exceptions import CipherError, ConfigurationError, SelfTestError

logger = logging.getLogger("credential.cipher")

CIPHER_KEY = web.AppKey("credential_cipher", CredentialCipher)


async def verify_cipher_on_startup(app: web.Application) -> None:
    """Run the cipher self-test off the event loop (scrypt blocks)."""
    cipher = app[CIPHER_KEY]
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, cipher.verify_config)
    logger.info("Credential cipher ready")


def setup_cipher(
    app: web.Application,
    config: Optional[CipherConfig] = None,
) -> CredentialCipher:
    """Attach a cipher to ``app`` and register the startup self-test.

    Args:
        app: aiohttp application.
        config: Explicit configuration; loaded from environment if omitted.

    Returns:
        The cipher stored under ``CIPHER_KEY``.
    """
    if config is None:
        config = CipherConfig.from_env()
    cipher = CredentialCipher(config)
    app[CIPHER_KEY] = cipher
    app.on_startup.append(verify_cipher_on_startup)
    return cipher


@web.middleware
async def cipher_error_middleware(request: web.Request, handler):
    """Map cipher failures to generic JSON errors.

    Configuration and self-test failures become 503, everything else 500.
    The body never carries the exception message.
    """
    try:
        return await handler(request)
    except CipherError as err:
        logger.error(
            "Cipher failure on %s %s: %s",
            request.method, request.path, type(err).__name__,
        )
        if isinstance(err, (ConfigurationError, SelfTestError)):
            reason = "Service unavailable"
        else:
            reason = "Internal server error"
        return web.json_response({"error": reason}, status=err.http_status)
