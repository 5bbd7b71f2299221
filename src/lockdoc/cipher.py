"""
Payload encryption: PBKDF2-HMAC-SHA256 key derivation and AES-256-GCM.

Ciphertext layout is iv(12) || ciphertext || tag(16).

The derivation secret is the recipient's public key as an integer, used
until wallets expose native encryption. It is public material: the cipher
hides the payload from casual readers of the ledger, not from anyone who
knows the recipient's key. The legacy salt is sixteen zero bytes; records
written with the explicit encryption flag use a per-record salt instead.
"""

import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lockdoc.errors import AuthenticationFailure, DecryptError

LEGACY_SALT = bytes(16)
DEFAULT_ITERATIONS = 100_000
KEY_LENGTH = 32
NONCE_SIZE = 12
TAG_SIZE = 16


def secret_from_public_key(public_key: bytes) -> int:
    return int.from_bytes(public_key, "big")


def record_salt(recipient_identity: bytes, deadline: int) -> bytes:
    """Salt bound to the record's own immutable fields."""
    h = hashes.Hash(hashes.SHA256())
    h.update(b"lockdoc-kdf" + recipient_identity + deadline.to_bytes(8, "big"))
    return h.finalize()[:16]


def derive_key(secret: int, salt: bytes = LEGACY_SALT, iterations: int = DEFAULT_ITERATIONS) -> bytes:
    if secret <= 0:
        raise ValueError("key material must be a positive integer")
    material = secret.to_bytes((secret.bit_length() + 7) // 8, "big")
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=KEY_LENGTH, salt=salt, iterations=iterations)
    return kdf.derive(material)


class PayloadCipher:
    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError(f"key must be {KEY_LENGTH} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_secret(
        cls, secret: int, salt: Optional[bytes] = None, iterations: int = DEFAULT_ITERATIONS,
    ) -> "PayloadCipher":
        return cls(derive_key(secret, LEGACY_SALT if salt is None else salt, iterations))

    def encrypt(self, plaintext: bytes) -> bytes:
        iv = os.urandom(NONCE_SIZE)
        return iv + self._aead.encrypt(iv, plaintext, None)

    def decrypt(self, data: bytes) -> bytes:
        if len(data) < NONCE_SIZE:
            raise DecryptError(f"ciphertext too short: {len(data)} bytes, need at least {NONCE_SIZE}")
        iv, body = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            return self._aead.decrypt(iv, body, None)
        except InvalidTag:
            raise AuthenticationFailure()
