"""
Transaction helpers over bsv-sdk: P2PKH scripts, inputs that remember the
output they spend, strict hex parsing and local script verification.
"""

from bsv import P2PKH, Script, Transaction, TransactionInput
from bsv.constants import SIGHASH
from bsv.script.spend import Spend
from bsv.utils import encode_pushdata

from lockdoc.errors import ScriptError

SEQUENCE_FINAL = 0xFFFFFFFF
LOCKTIME_THRESHOLD = 500_000_000
SIGHASH_ALL_FORKID = int(SIGHASH.ALL_FORKID)


def is_height(lock_time: int) -> bool:
    """Locktime values below the threshold are block heights, the rest UNIX timestamps."""
    return lock_time < LOCKTIME_THRESHOLD


def p2pkh_script(identity: bytes) -> Script:
    return P2PKH().lock(bytes(identity))


def push_script(*items: bytes) -> Script:
    """Unlocking script made of minimal data pushes."""
    return Script(b"".join(encode_pushdata(item) for item in items))


def spending_input(
    txid: str, vout: int, locking_script: Script, satoshis: int, sequence: int = SEQUENCE_FINAL,
) -> TransactionInput:
    """Input spending `txid:vout`, carrying the spent output so it can be signed."""
    inp = TransactionInput(source_txid=txid, source_output_index=vout, sequence=sequence)
    inp.locking_script = locking_script
    inp.satoshis = satoshis
    return inp


def parse_transaction(raw: str) -> Transaction:
    raw = raw.strip()
    tx = Transaction.from_hex(raw)
    if tx is None:
        raise ValueError("malformed transaction hex")
    if tx.hex() != raw.lower():
        raise ValueError("trailing bytes after transaction")
    return tx


def verify_input(tx: Transaction, index: int) -> None:
    """Run input `index` through the script interpreter.

    The input must carry the locking script and value of the output it
    spends. Raises ScriptError when the ledger would reject it.
    """
    inp = tx.inputs[index]
    if inp.locking_script is None or inp.satoshis is None:
        raise ValueError(f"input {index} does not know the output it spends")
    if inp.unlocking_script is None:
        raise ScriptError(f"input {index} is not signed")
    spend = Spend({
        "sourceTXID": inp.source_txid,
        "sourceOutputIndex": inp.source_output_index,
        "sourceSatoshis": inp.satoshis,
        "lockingScript": inp.locking_script,
        "transactionVersion": tx.version,
        "otherInputs": [other for i, other in enumerate(tx.inputs) if i != index],
        "outputs": tx.outputs,
        "inputIndex": index,
        "unlockingScript": inp.unlocking_script,
        "inputSequence": inp.sequence,
        "lockTime": tx.locktime,
    })
    try:
        valid = spend.validate()
    except RuntimeError as e:
        raise ScriptError(str(e), details={"input": index}) from e
    if not valid:
        raise ScriptError(f"input {index} failed script evaluation", details={"input": index})
