"""
Signers: the authorization collaborator. The custody flows only consume
the identity and signatures they hand back.
"""

from typing import Optional, Protocol

from pydantic import BaseModel

from lockdoc.keys import PrivateKey
from lockdoc.models.record import Network
from lockdoc.transaction import SIGHASH_ALL_FORKID


class AuthResult(BaseModel):
    is_authenticated: bool
    error: Optional[str] = None


class Signer(Protocol):
    async def request_auth(self) -> AuthResult: ...

    async def get_network(self) -> Network: ...

    async def get_default_identity(self) -> bytes:
        """Compressed public key of the default signing key."""
        ...

    async def sign(self, commitment: bytes) -> bytes:
        """Signature over a 32-byte transaction commitment, sighash type appended."""
        ...


class LocalKeySigner:
    """Signs with a private key held in memory (imported from WIF)."""

    def __init__(self, key: PrivateKey):
        self._key = key

    @classmethod
    def from_wif(cls, wif: str) -> "LocalKeySigner":
        return cls(PrivateKey.from_wif(wif))

    @property
    def address(self) -> str:
        return self._key.address

    async def request_auth(self) -> AuthResult:
        return AuthResult(is_authenticated=True)

    async def get_network(self) -> Network:
        return self._key.network

    async def get_default_identity(self) -> bytes:
        return self._key.public_key

    async def sign(self, commitment: bytes) -> bytes:
        if len(commitment) != 32:
            raise ValueError("commitment must be a 32-byte digest")
        return self._key.sign_digest(commitment) + bytes([SIGHASH_ALL_FORKID])
