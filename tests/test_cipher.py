import pytest

from lockdoc.cipher import (
    LEGACY_SALT,
    NONCE_SIZE,
    TAG_SIZE,
    PayloadCipher,
    derive_key,
    record_salt,
    secret_from_public_key,
)
from lockdoc.errors import AuthenticationFailure, DecryptError

from conftest import PDF_BYTES

FAST = 1_000


def test_round_trip_layout(alice):
    cipher = PayloadCipher.from_secret(secret_from_public_key(alice.public_key), iterations=FAST)
    sealed = cipher.encrypt(PDF_BYTES)
    assert len(sealed) == NONCE_SIZE + len(PDF_BYTES) + TAG_SIZE
    assert cipher.decrypt(sealed) == PDF_BYTES


def test_fresh_iv_per_encryption():
    cipher = PayloadCipher.from_secret(42, iterations=FAST)
    assert cipher.encrypt(b"same") != cipher.encrypt(b"same")


def test_tamper_is_detected():
    cipher = PayloadCipher.from_secret(42, iterations=FAST)
    sealed = bytearray(cipher.encrypt(b"document body"))
    sealed[NONCE_SIZE] ^= 0x01
    with pytest.raises(AuthenticationFailure):
        cipher.decrypt(bytes(sealed))


def test_wrong_key(alice, bob):
    sealed = PayloadCipher.from_secret(secret_from_public_key(alice.public_key), iterations=FAST).encrypt(b"x")
    with pytest.raises(AuthenticationFailure):
        PayloadCipher.from_secret(secret_from_public_key(bob.public_key), iterations=FAST).decrypt(sealed)


def test_too_short():
    cipher = PayloadCipher.from_secret(42, iterations=FAST)
    with pytest.raises(DecryptError):
        cipher.decrypt(b"\x00" * (NONCE_SIZE - 1))


def test_iv_only_fails_authentication():
    cipher = PayloadCipher.from_secret(42, iterations=FAST)
    with pytest.raises(AuthenticationFailure):
        cipher.decrypt(b"\x00" * NONCE_SIZE)


def test_derive_key():
    key = derive_key(42, iterations=FAST)
    assert len(key) == 32
    assert derive_key(42, LEGACY_SALT, FAST) == key
    assert derive_key(43, iterations=FAST) != key
    assert derive_key(42, b"\x01" * 16, FAST) != key
    with pytest.raises(ValueError):
        derive_key(0)


def test_record_salt_binds_identity_and_deadline(alice, bob):
    salt = record_salt(alice.identity, 1_800_000_000)
    assert len(salt) == 16
    assert salt != LEGACY_SALT
    assert record_salt(alice.identity, 1_800_000_000) == salt
    assert record_salt(bob.identity, 1_800_000_000) != salt
    assert record_salt(alice.identity, 1_800_000_001) != salt


def test_salted_ciphertext_needs_salt():
    salt = record_salt(bytes(20), 900_000)
    sealed = PayloadCipher.from_secret(42, salt, FAST).encrypt(b"x")
    with pytest.raises(AuthenticationFailure):
        PayloadCipher.from_secret(42, iterations=FAST).decrypt(sealed)
    assert PayloadCipher.from_secret(42, salt, FAST).decrypt(sealed) == b"x"


def test_bad_key_length():
    with pytest.raises(ValueError):
        PayloadCipher(b"\x00" * 16)
