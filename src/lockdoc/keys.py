"""
Keys and identities on secp256k1: hash160 identities, Base58Check
addresses, WIF private keys, and DER signatures over 32-byte digests.
"""

import hashlib
from typing import Optional

import base58
from bsv.hash import hash160
from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.keys import BadSignatureError, MalformedPointError
from ecdsa.util import sigdecode_der, sigencode_der_canonize

from lockdoc.models.record import Network

IDENTITY_SIZE = 20

ADDRESS_VERSIONS = {Network.MAIN: 0x00, Network.TEST: 0x6F}
WIF_VERSIONS = {Network.MAIN: 0x80, Network.TEST: 0xEF}


def identity_to_address(identity: bytes, network: Network) -> str:
    if len(identity) != IDENTITY_SIZE:
        raise ValueError(f"identity must be {IDENTITY_SIZE} bytes")
    return base58.b58encode_check(bytes([ADDRESS_VERSIONS[network]]) + identity).decode("ascii")


def address_to_identity(address: str, network: Optional[Network] = None) -> bytes:
    """Decode a P2PKH address, optionally insisting on its network."""
    try:
        raw = base58.b58decode_check(address.strip())
    except ValueError as e:
        raise ValueError(f"invalid address {address!r}: {e}") from e
    if len(raw) != 1 + IDENTITY_SIZE:
        raise ValueError(f"invalid address {address!r}: unexpected length")
    by_version = {v: n for n, v in ADDRESS_VERSIONS.items()}
    addr_network = by_version.get(raw[0])
    if addr_network is None:
        raise ValueError(f"invalid address {address!r}: unknown version 0x{raw[0]:02x}")
    if network is not None and addr_network != network:
        raise ValueError(f"address {address!r} belongs to the {addr_network.value} network")
    return raw[1:]


class PrivateKey:
    """secp256k1 private key. Public keys are always used compressed."""

    def __init__(self, secret: bytes, network: Network = Network.MAIN):
        if len(secret) != 32:
            raise ValueError("private key must be 32 bytes")
        self._sk = SigningKey.from_string(secret, curve=SECP256k1)
        self.network = network

    @classmethod
    def from_int(cls, n: int, network: Network = Network.MAIN) -> "PrivateKey":
        return cls(n.to_bytes(32, "big"), network)

    @classmethod
    def from_wif(cls, wif: str) -> "PrivateKey":
        try:
            raw = base58.b58decode_check(wif.strip())
        except ValueError as e:
            raise ValueError(f"invalid WIF: {e}") from e
        by_version = {v: n for n, v in WIF_VERSIONS.items()}
        network = by_version.get(raw[0])
        if network is None:
            raise ValueError(f"invalid WIF version 0x{raw[0]:02x}")
        if len(raw) == 34 and raw[-1] == 0x01:
            return cls(raw[1:33], network)
        if len(raw) == 33:
            return cls(raw[1:33], network)
        raise ValueError(f"invalid WIF length {len(raw)}")

    def to_wif(self) -> str:
        raw = bytes([WIF_VERSIONS[self.network]]) + self._sk.to_string() + b"\x01"
        return base58.b58encode_check(raw).decode("ascii")

    @property
    def public_key(self) -> bytes:
        return self._sk.get_verifying_key().to_string("compressed")

    @property
    def identity(self) -> bytes:
        return hash160(self.public_key)

    @property
    def address(self) -> str:
        return identity_to_address(self.identity, self.network)

    def sign_digest(self, digest: bytes) -> bytes:
        """Deterministic low-S DER signature over a precomputed digest."""
        return self._sk.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_der_canonize,
        )


def verify_digest(public_key: bytes, digest: bytes, der_signature: bytes) -> bool:
    try:
        vk = VerifyingKey.from_string(public_key, curve=SECP256k1)
        return vk.verify_digest(der_signature, digest, sigdecode=sigdecode_der)
    except (BadSignatureError, MalformedPointError, ValueError):
        return False
