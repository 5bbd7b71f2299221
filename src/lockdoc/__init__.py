"""
lockdoc: time-locked document custody on Bitcoin SV.

Inscribe a file into a ledger output that only a chosen key can move, and
only after a deadline.
"""

# bsv-sdk puts its own package directory on sys.path when imported, which
# would shadow the base58 distribution with bsv/base58.py; load it first.
import base58  # noqa: F401

from lockdoc.client import Lockdoc, AsyncLockdoc, ResolvedRecord
from lockdoc.context import LedgerContext
from lockdoc.contract import ContractState, CustodyContract, EvaluationContext
from lockdoc.builder import WithdrawalTxBuilder, DepositTxBuilder, choose_lock_time
from lockdoc.cipher import PayloadCipher, derive_key
from lockdoc.scanner import RecordScanner
from lockdoc.errors import (
    LockdocError,
    ScriptError,
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
)
from lockdoc.models.envelope import EnvelopeFrame
from lockdoc.models.record import Network, RecordRef

__version__ = "0.1.0"
__all__ = [
    "Lockdoc",
    "AsyncLockdoc",
    "ResolvedRecord",
    "LedgerContext",
    "ContractState",
    "CustodyContract",
    "EvaluationContext",
    "WithdrawalTxBuilder",
    "DepositTxBuilder",
    "choose_lock_time",
    "PayloadCipher",
    "derive_key",
    "RecordScanner",
    "LockdocError",
    "ScriptError",
    "MalformedEnvelope",
    "UnsupportedScriptShape",
    "LockNotExpired",
    "IdentityMismatch",
    "SignatureInvalid",
    "AuthenticationFailure",
    "DecryptError",
    "RecordNotFound",
    "RecordAlreadySpent",
    "InsufficientFunds",
    "ProviderUnavailable",
    "AuthError",
    "EnvelopeFrame",
    "Network",
    "RecordRef",
]
