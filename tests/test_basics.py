"""Basic unit tests for the lockdoc package."""

import pytest

from lockdoc import (
    AsyncLockdoc,
    Lockdoc,
    LockdocError,
    MalformedEnvelope,
    UnsupportedScriptShape,
    LockNotExpired,
    IdentityMismatch,
    SignatureInvalid,
    AuthenticationFailure,
    DecryptError,
    RecordNotFound,
    RecordAlreadySpent,
    InsufficientFunds,
    ProviderUnavailable,
    AuthError,
    RecordRef,
    Network,
    __version__,
)


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert Lockdoc is not None
    assert AsyncLockdoc is not None


def test_error_hierarchy():
    for cls in (
        MalformedEnvelope, UnsupportedScriptShape, LockNotExpired, IdentityMismatch,
        SignatureInvalid, AuthenticationFailure, DecryptError, RecordNotFound,
        RecordAlreadySpent, InsufficientFunds, ProviderUnavailable, AuthError,
    ):
        assert issubclass(cls, LockdocError)


def test_error_attributes():
    err = LockdocError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None

    err_with_details = RecordNotFound("no such output", details={"vout": 3})
    assert err_with_details.code == "record_not_found"
    assert err_with_details.details == {"vout": 3}

    assert IdentityMismatch().code == "identity_mismatch"
    assert SignatureInvalid().code == "signature_invalid"


def test_record_ref_parse_and_format():
    txid = "ab" * 32
    ref = RecordRef.parse(f"main/{txid}/0")
    assert ref.network is Network.MAIN
    assert ref.vout == 0
    assert str(ref) == f"main/{txid}/0"
    assert ref.explorer_url == f"https://whatsonchain.com/tx/{txid}"
    assert RecordRef.parse(f"test/{txid.upper()}/2").txid == txid


def test_record_ref_rejects_bad_input():
    with pytest.raises(ValueError):
        RecordRef.parse("main/abc/0")
    with pytest.raises(ValueError):
        RecordRef.parse("main/" + "ab" * 32)
    with pytest.raises(ValueError):
        RecordRef.parse("regtest/" + "ab" * 32 + "/0")
