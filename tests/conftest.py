"""Shared fixtures: deterministic keys and an in-memory ledger."""

import pytest

from lockdoc.context import LedgerContext
from lockdoc.errors import RecordAlreadySpent, RecordNotFound
from lockdoc.keys import PrivateKey, address_to_identity
from lockdoc.models.record import Network
from lockdoc.models.utxo import Utxo
from lockdoc.signer import LocalKeySigner
from lockdoc.transaction import p2pkh_script, verify_input
from bsv import Transaction, TransactionInput, TransactionOutput

PDF_BYTES = b"%PDF-1.4\n" + bytes(range(91))  # 100 bytes
NOW = 1_750_000_000

GENESIS_COINBASE = (
    "01000000010000000000000000000000000000000000000000000000000000000000000000ffffffff"
    "4d04ffff001d0104455468652054696d65732030332f4a616e2f32303039204368616e63656c6c6f72"
    "206f6e206272696e6b206f66207365636f6e64206261696c6f757420666f722062616e6b73ffffffff"
    "0100f2052a01000000434104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f"
    "61deb649f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac00000000"
)
GENESIS_TXID = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"


def unsigned_tx(*outputs: TransactionOutput, source_txid: str = "33" * 32) -> Transaction:
    """A transaction that only serves as the source of `outputs`."""
    return Transaction([TransactionInput(source_txid=source_txid, source_output_index=0)], list(outputs))


class FakeLedgerProvider:
    """Keeps transactions in memory, enforces single spends and runs the
    scripts of every input whose source transaction it holds."""

    def __init__(self, network: Network = Network.TEST, height: int = 800_000):
        self.network = network
        self.height = height
        self.transactions: dict[str, Transaction] = {}
        self.unspent: dict[str, list[Utxo]] = {}
        self.spent: set[tuple[str, int]] = set()
        self.broadcasts: list[Transaction] = []

    async def connect(self) -> None:
        pass

    async def get_network(self) -> Network:
        return self.network

    async def get_transaction(self, txid: str) -> Transaction:
        try:
            return self.transactions[txid]
        except KeyError:
            raise RecordNotFound(f"transaction {txid} not found")

    async def send_transaction(self, tx: Transaction) -> str:
        for index, inp in enumerate(tx.inputs):
            outpoint = (inp.source_txid, inp.source_output_index)
            if outpoint in self.spent:
                raise RecordAlreadySpent(f"{outpoint[0]}:{outpoint[1]} already spent")
            source = self.transactions.get(inp.source_txid)
            if source is not None:
                spent_output = source.outputs[inp.source_output_index]
                inp.locking_script = spent_output.locking_script
                inp.satoshis = spent_output.satoshis
                verify_input(tx, index)
        for inp in tx.inputs:
            outpoint = (inp.source_txid, inp.source_output_index)
            self.spent.add(outpoint)
            for utxos in self.unspent.values():
                utxos[:] = [u for u in utxos if (u.txid, u.vout) != outpoint]
        self.transactions[tx.txid()] = tx
        self.broadcasts.append(tx)
        return tx.txid()

    async def list_unspent(self, address: str) -> list[Utxo]:
        return list(self.unspent.get(address, []))

    async def get_block_height(self) -> int:
        return self.height

    def fund(self, address: str, satoshis: int) -> Utxo:
        identity = address_to_identity(address)
        nonce = len(self.transactions).to_bytes(4, "little").hex()
        tx = unsigned_tx(TransactionOutput(p2pkh_script(identity), satoshis), source_txid=nonce * 8)
        self.transactions[tx.txid()] = tx
        utxo = Utxo(txid=tx.txid(), vout=0, satoshis=satoshis, height=self.height)
        self.unspent.setdefault(address, []).append(utxo)
        return utxo


@pytest.fixture
def alice() -> PrivateKey:
    return PrivateKey.from_int(0xA11CE, Network.TEST)


@pytest.fixture
def bob() -> PrivateKey:
    return PrivateKey.from_int(0xB0B, Network.TEST)


@pytest.fixture
def ledger() -> FakeLedgerProvider:
    return FakeLedgerProvider()


@pytest.fixture
def context(ledger: FakeLedgerProvider, alice: PrivateKey) -> LedgerContext:
    return LedgerContext(Network.TEST, ledger, LocalKeySigner(alice))
