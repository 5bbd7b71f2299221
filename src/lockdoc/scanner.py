"""
Record scanner: turns a record reference into a contract and its envelope.
"""

import logging
from typing import Optional

from bsv import Transaction

from lockdoc import envelope
from lockdoc.context import LedgerContext
from lockdoc.contract import CustodyContract
from lockdoc.errors import RecordNotFound
from lockdoc.models.envelope import EnvelopeFrame
from lockdoc.models.record import RecordRef

logger = logging.getLogger(__name__)


def scan_output(tx: Transaction, ref: RecordRef) -> tuple[CustodyContract, Optional[EnvelopeFrame]]:
    """Decode the custody output `ref.vout` of an already fetched transaction."""
    if ref.vout >= len(tx.outputs):
        raise RecordNotFound(
            f"transaction {ref.txid} has {len(tx.outputs)} outputs, no output {ref.vout}",
            details={"txid": ref.txid, "vout": ref.vout},
        )
    output = tx.outputs[ref.vout]
    frame, condition = envelope.split(output.locking_script.serialize())
    contract = CustodyContract.from_condition_script(
        condition, envelope_frame=frame, origin=ref, satoshis=output.satoshis,
    )
    return contract, frame


class RecordScanner:
    def __init__(self, context: LedgerContext):
        self._context = context

    async def resolve(self, ref: RecordRef) -> tuple[CustodyContract, Optional[EnvelopeFrame]]:
        if ref.network != self._context.network:
            raise ValueError(
                f"record is on the {ref.network.value} network, context is {self._context.network.value}"
            )
        tx = await self._context.provider.get_transaction(ref.txid)
        contract, frame = scan_output(tx, ref)
        logger.info(f"Resolved {ref}: {contract!r}")
        return contract, frame
