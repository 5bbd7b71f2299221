"""
Custody contract: the spending condition of a custody record.

Condition script, fields in record order:

    <recipient identity> <deadline> <condition body>

The body is fixed. It is spent with `<sig> <pubkey> <preimage>`, where
`preimage` is the signature digest preimage of the spending input:

- nSequence (preimage[-44:-40]) must be non-final;
- nLockTime (preimage[-8:-4]) must be the same kind as the deadline
  (height or timestamp) and not below it;
- the preimage must be the spending transaction's own. The script derives
  a signature over it with private key 1 and nonce 1 and checks it against
  the generator point with OP_CHECKSIGVERIFY, which the interpreter
  verifies against the real transaction digest;
- the rest is P2PKH for the recipient identity.

Timelock opcodes are no-ops on this ledger, so the deadline is read from
the signed preimage. The contract never reads a clock; the ledger
separately refuses transactions whose locktime is still in the future.
"""

import copy
from enum import Enum
from typing import Optional

from bsv import Script, Transaction
from bsv.constants import OpCode
from bsv.curve import curve
from bsv.hash import hash256
from bsv.transaction_preimage import tx_preimage
from bsv.utils import encode_int, encode_pushdata, get_pushdata_code, unsigned_to_varint

from lockdoc import envelope
from lockdoc.errors import IdentityMismatch, LockNotExpired, ScriptError, SignatureInvalid, UnsupportedScriptShape
from lockdoc.keys import IDENTITY_SIZE, hash160, verify_digest
from lockdoc.models.envelope import EnvelopeFrame
from lockdoc.models.record import RecordRef
from lockdoc.script import ScriptReader
from lockdoc.transaction import LOCKTIME_THRESHOLD, SEQUENCE_FINAL, SIGHASH_ALL_FORKID, is_height, push_script

CUSTODY_SATOSHIS = 1
MAX_DEADLINE = 0xFFFFFFFF

GENERATOR_X = curve.g.x
CURVE_ORDER = curve.n
GENERATOR_PUBKEY = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")

# <sig(72)+type(1)> <compressed pubkey(33)> with their push opcodes
SIGNATURE_PUSHES_SIZE = 1 + 73 + 1 + 33
# preimage bytes around the script code: version, hashPrevouts, hashSequence,
# outpoint ... value, nSequence, hashOutputs, nLockTime, sighash type
PREIMAGE_FIXED_SIZE = 4 + 32 + 32 + 36 + 8 + 4 + 32 + 4 + 4

_DER_PREFIX = bytes.fromhex("30440220") + GENERATOR_X.to_bytes(32, "big") + bytes.fromhex("0220")
_REVERSE_32 = (OpCode.OP_1 + OpCode.OP_SPLIT) * 31 + (OpCode.OP_SWAP + OpCode.OP_CAT) * 31

CONDITION_BODY = b"".join([
    # [sig pubkey preimage identity deadline] -> identity to the alt stack
    OpCode.OP_SWAP, OpCode.OP_TOALTSTACK,
    # nSequence and nLockTime out of a copy of the preimage
    OpCode.OP_OVER, OpCode.OP_SIZE, encode_int(44), OpCode.OP_SUB, OpCode.OP_SPLIT, OpCode.OP_NIP,
    OpCode.OP_4, OpCode.OP_SPLIT, encode_int(32), OpCode.OP_SPLIT, OpCode.OP_NIP,
    OpCode.OP_4, OpCode.OP_SPLIT, OpCode.OP_DROP,
    encode_pushdata(b"\x00"), OpCode.OP_CAT, OpCode.OP_BIN2NUM,
    OpCode.OP_SWAP, encode_pushdata(SEQUENCE_FINAL.to_bytes(4, "little")), OpCode.OP_EQUAL, OpCode.OP_NOT,
    OpCode.OP_VERIFY,
    OpCode.OP_2DUP, encode_int(LOCKTIME_THRESHOLD), OpCode.OP_LESSTHAN,
    OpCode.OP_SWAP, encode_int(LOCKTIME_THRESHOLD), OpCode.OP_LESSTHAN, OpCode.OP_NUMEQUALVERIFY,
    OpCode.OP_LESSTHANOREQUAL, OpCode.OP_VERIFY,
    # s = hash256(preimage) + Gx mod n, low-S, as 32 big-endian bytes
    OpCode.OP_HASH256, _REVERSE_32,
    encode_pushdata(b"\x00"), OpCode.OP_CAT, OpCode.OP_BIN2NUM,
    encode_int(GENERATOR_X), OpCode.OP_ADD, encode_int(CURVE_ORDER), OpCode.OP_MOD,
    OpCode.OP_DUP, encode_int(CURVE_ORDER // 2), OpCode.OP_GREATERTHAN,
    OpCode.OP_IF, encode_int(CURVE_ORDER), OpCode.OP_SWAP, OpCode.OP_SUB, OpCode.OP_ENDIF,
    encode_int(32), OpCode.OP_NUM2BIN, _REVERSE_32,
    encode_pushdata(_DER_PREFIX), OpCode.OP_SWAP, OpCode.OP_CAT,
    encode_pushdata(bytes([SIGHASH_ALL_FORKID])), OpCode.OP_CAT,
    encode_pushdata(GENERATOR_PUBKEY), OpCode.OP_CHECKSIGVERIFY,
    # recipient
    OpCode.OP_DUP, OpCode.OP_HASH160, OpCode.OP_FROMALTSTACK, OpCode.OP_EQUALVERIFY, OpCode.OP_CHECKSIG,
])


class ContractState(str, Enum):
    LOCKED = "locked"
    SPENT = "spent"


def preimage_s(preimage: bytes) -> int:
    """The low-S value the condition body derives from `preimage`."""
    s = (int.from_bytes(hash256(preimage), "big") + GENERATOR_X) % CURVE_ORDER
    return CURVE_ORDER - s if s > CURVE_ORDER // 2 else s


def preimage_is_signable(preimage: bytes) -> bool:
    """Whether the derived s fits the body's fixed 32-byte DER slot.

    Roughly one preimage in 128 fails; changing the custody input's
    sequence yields a new one.
    """
    s = preimage_s(preimage).to_bytes(32, "big")
    return s[0] != 0 or s[1] >= 0x80


def preimage_size(locking_script: bytes) -> int:
    return PREIMAGE_FIXED_SIZE + len(unsigned_to_varint(len(locking_script))) + len(locking_script)


class EvaluationContext:
    """The spending transaction as seen by the input under evaluation."""

    __slots__ = ("tx", "input_index")

    def __init__(self, tx: Transaction, input_index: int = 0):
        self.tx = tx
        self.input_index = input_index

    @property
    def lock_time(self) -> int:
        return self.tx.locktime

    @property
    def sequence(self) -> int:
        return self.tx.inputs[self.input_index].sequence

    def preimage(self, locking_script: Script, satoshis: int) -> bytes:
        """Signature digest preimage of the input, spending the given output."""
        spending = copy.copy(self.tx.inputs[self.input_index])
        spending.locking_script = locking_script
        spending.satoshis = satoshis
        inputs = list(self.tx.inputs)
        inputs[self.input_index] = spending
        return tx_preimage(self.input_index, inputs, self.tx.outputs, self.tx.version, self.tx.locktime)


class AuthorizationResult:
    __slots__ = ("identity", "lock_time", "preimage", "sighash")

    def __init__(self, identity: bytes, lock_time: int, preimage: bytes):
        self.identity = identity
        self.lock_time = lock_time
        self.preimage = preimage
        self.sighash = hash256(preimage)

    def __repr__(self) -> str:
        return f"AuthorizationResult(identity={self.identity.hex()}, lock_time={self.lock_time})"


def time_lock_satisfied(deadline: int, lock_time: int, sequence: int) -> bool:
    if sequence == SEQUENCE_FINAL:
        return False
    if is_height(deadline) != is_height(lock_time):
        return False
    return lock_time >= deadline


class CustodyContract:
    def __init__(
        self,
        recipient_identity: bytes,
        deadline: int,
        envelope_frame: Optional[EnvelopeFrame] = None,
        origin: Optional[RecordRef] = None,
        satoshis: int = CUSTODY_SATOSHIS,
    ):
        if len(recipient_identity) != IDENTITY_SIZE:
            raise ValueError(f"recipient identity must be {IDENTITY_SIZE} bytes")
        if not 0 <= deadline <= MAX_DEADLINE:
            raise ValueError(f"deadline {deadline} does not fit the 32-bit locktime field")
        self._recipient_identity = bytes(recipient_identity)
        self._deadline = deadline
        self.envelope = envelope_frame
        self.origin = origin
        self.satoshis = satoshis
        self.state = ContractState.LOCKED

    @property
    def recipient_identity(self) -> bytes:
        return self._recipient_identity

    @property
    def deadline(self) -> int:
        return self._deadline

    @property
    def deadline_is_height(self) -> bool:
        return is_height(self._deadline)

    def condition_script(self) -> Script:
        return Script(encode_pushdata(self._recipient_identity) + encode_int(self._deadline) + CONDITION_BODY)

    def locking_script(self) -> Script:
        """Full output script: envelope (if any) followed by the condition."""
        prefix = envelope.encode_frame(self.envelope) if self.envelope is not None else b""
        return Script(prefix + self.condition_script().serialize())

    @classmethod
    def from_condition_script(
        cls,
        script: bytes,
        envelope_frame: Optional[EnvelopeFrame] = None,
        origin: Optional[RecordRef] = None,
        satoshis: int = CUSTODY_SATOSHIS,
    ) -> "CustodyContract":
        reader = ScriptReader(script)
        try:
            identity = reader.read_push()
            if len(identity) != IDENTITY_SIZE:
                raise UnsupportedScriptShape(
                    f"recipient identity push is {len(identity)} bytes, expected {IDENTITY_SIZE}",
                )
            deadline = reader.read_number()
        except ScriptError as e:
            raise UnsupportedScriptShape(str(e), details={"offset": reader.pos}) from e
        if script[reader.pos:] != CONDITION_BODY:
            raise UnsupportedScriptShape("condition body does not match", details={"offset": reader.pos})
        if not 0 <= deadline <= MAX_DEADLINE:
            raise UnsupportedScriptShape(f"deadline {deadline} out of locktime range")
        return cls(identity, deadline, envelope_frame, origin, satoshis)

    def withdraw(self, public_key: bytes, signature: bytes, context: EvaluationContext) -> AuthorizationResult:
        """Check a withdrawal proof against the spending transaction.

        Mirrors what the condition script enforces on the ledger. Success
        only proves eligibility. The record becomes spent when the ledger
        accepts the transaction.
        """
        if not time_lock_satisfied(self._deadline, context.lock_time, context.sequence):
            raise LockNotExpired(details={
                "deadline": self._deadline,
                "lock_time": context.lock_time,
                "sequence": context.sequence,
            })

        identity = hash160(public_key)
        if identity != self._recipient_identity:
            raise IdentityMismatch(details={
                "expected": self._recipient_identity.hex(),
                "got": identity.hex(),
            })

        if not signature or signature[-1] != SIGHASH_ALL_FORKID:
            raise SignatureInvalid("signature must end with the SIGHASH_ALL|FORKID type byte")
        preimage = context.preimage(self.locking_script(), self.satoshis)
        if not preimage_is_signable(preimage):
            raise SignatureInvalid(
                "transaction preimage cannot be committed to; change the custody input sequence",
                details={"sequence": context.sequence},
            )
        result = AuthorizationResult(identity, context.lock_time, preimage)
        if not verify_digest(public_key, result.sighash, signature[:-1]):
            raise SignatureInvalid()
        return result

    def unlocking_script(self, signature: bytes, public_key: bytes, preimage: bytes) -> Script:
        return push_script(signature, public_key, preimage)

    def unlocking_script_size(self) -> int:
        """Upper bound on the size of `unlocking_script` for this record."""
        n = preimage_size(self.locking_script().serialize())
        return SIGNATURE_PUSHES_SIZE + len(get_pushdata_code(n)) + n

    def is_spendable(self, now: int, height: Optional[int] = None) -> bool:
        """Whether the deadline has passed by wall clock or chain height."""
        if self.deadline_is_height:
            return height is not None and height >= self._deadline
        return now >= self._deadline

    def mark_spent(self) -> None:
        self.state = ContractState.SPENT

    def __repr__(self) -> str:
        return (
            f"CustodyContract(recipient={self._recipient_identity.hex()}, "
            f"deadline={self._deadline}, state={self.state.value})"
        )
