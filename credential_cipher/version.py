"""Credential Cipher Meta information.
   Credential Cipher protects third-party access tokens at rest.
"""
__title__ = 'credential_cipher'
__description__ = (
   'Credential Cipher protects third-party access tokens at rest '
   'with scrypt-derived AES-256-GCM envelopes.'
)
__version__ = '1.0.0'
__license__ = 'Apache-2.0'
