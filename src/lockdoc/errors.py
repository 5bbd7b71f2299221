"""
Lockdoc error types: one class per failure a custody flow can end in.
"""

from typing import Any, Optional


class LockdocError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ScriptError(LockdocError):
    """Script parsing or evaluation failure. Parsers rewrap it into a domain error."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("script_error", message, details)


class MalformedEnvelope(LockdocError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("malformed_envelope", message, details)


class UnsupportedScriptShape(LockdocError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("unsupported_script_shape", message, details)


class LockNotExpired(LockdocError):
    def __init__(self, message: str = "lock not yet expired", details: Optional[dict[str, Any]] = None):
        super().__init__("lock_not_expired", message, details)


class IdentityMismatch(LockdocError):
    def __init__(self, message: str = "pub key does not belong to address", details: Optional[dict[str, Any]] = None):
        super().__init__("identity_mismatch", message, details)


class SignatureInvalid(LockdocError):
    def __init__(self, message: str = "signature check failed", details: Optional[dict[str, Any]] = None):
        super().__init__("signature_invalid", message, details)


class AuthenticationFailure(LockdocError):
    def __init__(self, message: str = "payload authentication tag did not verify"):
        super().__init__("authentication_failure", message)


class DecryptError(LockdocError):
    def __init__(self, message: str):
        super().__init__("decrypt_error", message)


class RecordNotFound(LockdocError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("record_not_found", message, details)


class RecordAlreadySpent(LockdocError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("record_already_spent", message, details)


class InsufficientFunds(LockdocError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("insufficient_funds", message, details)


class ProviderUnavailable(LockdocError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("provider_unavailable", message, details)


class AuthError(LockdocError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)
