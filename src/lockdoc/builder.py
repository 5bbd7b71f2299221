"""
Transaction builders for the two authorized actions: depositing a custody
record and withdrawing it after the deadline.

Withdrawal shape:
- input 0 spends the custody output with a non-final sequence (0 unless
  the preimage needs another one), which makes the transaction subject to
  its locktime;
- the transaction locktime is at least the deadline;
- output 0 pays one satoshi to the destination;
- funding inputs from the withdrawing wallet pay the fee, any change goes
  back to the change identity.
"""

import logging
import time
from typing import Optional, Sequence

from bsv import SatoshisPerKilobyte, Script, Transaction, TransactionOutput
from bsv.script.unlocking_template import UnlockingScriptTemplate

from lockdoc.contract import (
    CUSTODY_SATOSHIS,
    ContractState,
    CustodyContract,
    preimage_is_signable,
    time_lock_satisfied,
)
from lockdoc.errors import InsufficientFunds, LockNotExpired, RecordAlreadySpent
from lockdoc.keys import hash160
from lockdoc.models.utxo import Utxo
from lockdoc.models.withdrawal import WithdrawalProof
from lockdoc.transaction import SEQUENCE_FINAL, is_height, p2pkh_script, spending_input, verify_input

logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = 50  # satoshis per 1000 bytes
DEFAULT_LOCKTIME_MARGIN = 10_000  # seconds
DUST_LIMIT = 1

# <sig(72)+type(1)> <compressed pubkey(33)> with their push opcodes
P2PKH_UNLOCKING_SIZE = 1 + 73 + 1 + 33


def choose_lock_time(deadline: int, now: Optional[int] = None, margin: int = DEFAULT_LOCKTIME_MARGIN) -> int:
    """Locktime for a withdrawal: never below the deadline.

    Timestamp deadlines use `now - margin` so nodes whose clocks lag behind
    ours still treat the transaction as final. Height deadlines use the
    deadline itself.
    """
    if is_height(deadline):
        return deadline
    if now is None:
        now = int(time.time())
    return max(deadline, now - margin)


class PendingUnlock(UnlockingScriptTemplate):
    """Size of an unlocking script the signer attaches later."""

    def __init__(self, size: int):
        self.size = size

    def sign(self, tx, input_index) -> Script:
        raise NotImplementedError("unlocking scripts are attached from signer output")

    def estimated_unlocking_byte_length(self) -> int:
        return self.size


class UnsignedSpend:
    """An unsigned transaction whose inputs know the outputs they spend."""

    def __init__(self, tx: Transaction):
        self.tx = tx

    def preimage(self, index: int) -> bytes:
        return self.tx.preimage(index)

    def sighash(self, index: int) -> bytes:
        return self.tx.signature_hash(index)

    def set_unlocking_script(self, index: int, script: Script) -> None:
        self.tx.inputs[index].unlocking_script = script

    @property
    def fee(self) -> int:
        return sum(i.satoshis for i in self.tx.inputs) - sum(o.satoshis for o in self.tx.outputs)


class _FeeBuilder:
    def __init__(self, fee_rate: int = DEFAULT_FEE_RATE, dust_limit: int = DUST_LIMIT):
        self.fee_rate = fee_rate
        self.dust_limit = dust_limit

    def fee_for(self, tx: Transaction) -> int:
        return SatoshisPerKilobyte(self.fee_rate).compute_fee(tx)

    def _add_funding(self, tx: Transaction, funding: Sequence[Utxo], identity: bytes) -> None:
        script = p2pkh_script(identity)
        for u in funding:
            inp = spending_input(u.txid, u.vout, script, u.satoshis)
            inp.unlocking_script_template = PendingUnlock(P2PKH_UNLOCKING_SIZE)
            tx.inputs.append(inp)

    def _settle(self, tx: Transaction, change: Optional[bytes]) -> None:
        """Check the fee is covered and append change if worth keeping."""
        total_in = sum(i.satoshis for i in tx.inputs)
        total_out = sum(o.satoshis for o in tx.outputs)

        fee = self.fee_for(tx)
        if total_in - total_out < fee:
            raise InsufficientFunds(
                f"inputs carry {total_in} sat, need {total_out + fee} sat",
                details={"available": total_in, "required": total_out + fee},
            )
        if change is None:
            return

        change_output = TransactionOutput(p2pkh_script(change), 0)
        tx.outputs.append(change_output)
        amount = total_in - total_out - self.fee_for(tx)
        if amount >= self.dust_limit:
            change_output.satoshis = amount
        else:
            tx.outputs.pop()


class WithdrawalTxBuilder(_FeeBuilder):
    def build(
        self,
        contract: CustodyContract,
        proof: WithdrawalProof,
        destination: bytes,
        change: Optional[bytes] = None,
        funding: Sequence[Utxo] = (),
    ) -> UnsignedSpend:
        """Unsigned withdrawal for `contract`.

        Funding outputs must be P2PKH outputs of the proof's key. The custody
        input's sequence is raised from `proof.input_sequence` until the
        preimage is one the condition can commit to, and written back to
        the proof.
        """
        if contract.origin is None:
            raise ValueError("contract has no origin outpoint; resolve it from the ledger first")
        if contract.state is ContractState.SPENT:
            raise RecordAlreadySpent(f"record {contract.origin} is already spent")
        if proof.input_sequence == SEQUENCE_FINAL:
            raise ValueError("custody input sequence must be non-final")
        if not time_lock_satisfied(contract.deadline, proof.proposed_lock_time, proof.input_sequence):
            raise LockNotExpired(
                f"locktime {proof.proposed_lock_time} does not satisfy deadline {contract.deadline}",
                details={"deadline": contract.deadline, "lock_time": proof.proposed_lock_time},
            )

        tx = Transaction(locktime=proof.proposed_lock_time)
        custody = spending_input(
            contract.origin.txid, contract.origin.vout, contract.locking_script(), contract.satoshis,
            sequence=proof.input_sequence,
        )
        custody.unlocking_script_template = PendingUnlock(contract.unlocking_script_size())
        tx.inputs.append(custody)
        self._add_funding(tx, funding, hash160(proof.identity_public_key))

        tx.outputs.append(TransactionOutput(p2pkh_script(destination), CUSTODY_SATOSHIS))
        self._settle(tx, change)

        for sequence in range(proof.input_sequence, SEQUENCE_FINAL):
            custody.sequence = sequence
            if preimage_is_signable(tx.preimage(0)):
                break
        else:
            raise ValueError("no non-final sequence gives a committable preimage")
        proof.input_sequence = custody.sequence

        logger.debug(f"Built withdrawal of {contract.origin} with sequence {custody.sequence}")
        return UnsignedSpend(tx)

    def finalize(self, unsigned: UnsignedSpend, contract: CustodyContract, proof: WithdrawalProof) -> Transaction:
        """Attach the custody input's unlocking script from a signed proof.

        The custody input is run through the script interpreter before the
        transaction is handed back.
        """
        if proof.signature is None:
            raise ValueError("withdrawal proof is not signed")
        unlocking = contract.unlocking_script(proof.signature, proof.identity_public_key, unsigned.preimage(0))
        unsigned.set_unlocking_script(0, unlocking)
        verify_input(unsigned.tx, 0)
        return unsigned.tx


class DepositTxBuilder(_FeeBuilder):
    def build(
        self,
        contract: CustodyContract,
        funding: Sequence[Utxo],
        funding_identity: bytes,
        change: Optional[bytes] = None,
    ) -> UnsignedSpend:
        """Unsigned transaction whose output 0 is the custody record."""
        if not funding:
            raise InsufficientFunds("no unspent outputs to fund the deposit")
        tx = Transaction()
        self._add_funding(tx, funding, funding_identity)
        tx.outputs.append(TransactionOutput(contract.locking_script(), contract.satoshis))
        self._settle(tx, funding_identity if change is None else change)
        return UnsignedSpend(tx)
