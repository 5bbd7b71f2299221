"""
Ledger data providers.

LedgerProvider is the capability the custody flows consume; the
WhatsOnChain binding is the default implementation.
"""

import logging
from typing import Optional, Protocol

from bsv import Transaction

from lockdoc.errors import LockNotExpired, ProviderUnavailable, RecordAlreadySpent, RecordNotFound
from lockdoc.models.record import Network
from lockdoc.models.utxo import Utxo
from lockdoc.transaction import parse_transaction
from lockdoc.transport.http import DEFAULT_BASE_URL, HttpClient, HttpStatusError

logger = logging.getLogger(__name__)

ORDINALS_API_URL = "https://ordinals.gorillapool.io/api"

# Substrings of node rejection messages, lower-cased.
SPENT_REJECTIONS = ("missing inputs", "mempool-conflict", "double spend", "txn-already-known", "inputs-missingorspent")
NON_FINAL_REJECTIONS = ("non-final", "non-bip68-final")


class LedgerProvider(Protocol):
    async def connect(self) -> None: ...

    async def get_network(self) -> Network: ...

    async def get_transaction(self, txid: str) -> Transaction: ...

    async def send_transaction(self, tx: Transaction) -> str: ...

    async def list_unspent(self, address: str) -> list[Utxo]: ...

    async def get_block_height(self) -> int: ...


class WhatsOnChainProvider:
    """WhatsOnChain REST binding (`/v1/bsv/{network}/...`).

    `proxy_url` points unspent-output lookups at a forwarding proxy
    exposing `GET /{network}/listUnspent/{address}`.
    """

    def __init__(
        self,
        network: Network = Network.TEST,
        base_url: str = DEFAULT_BASE_URL,
        proxy_url: Optional[str] = None,
        http: Optional[HttpClient] = None,
        proxy_http: Optional[HttpClient] = None,
    ):
        self._network = network
        self._http = http or HttpClient(base_url=base_url)
        self._proxy = proxy_http or (HttpClient(base_url=proxy_url) if proxy_url else None)

    async def connect(self) -> None:
        """Hit the API once so configuration errors surface before a flow starts."""
        await self._http.get(f"/{self._network.value}/chain/info")

    async def get_network(self) -> Network:
        return self._network

    async def get_transaction(self, txid: str) -> Transaction:
        try:
            raw_hex = await self._http.get_text(f"/{self._network.value}/tx/{txid}/hex")
        except HttpStatusError as e:
            if e.status_code == 404:
                raise RecordNotFound(f"transaction {txid} not found on {self._network.value}net",
                                     details={"txid": txid})
            raise
        try:
            return parse_transaction(raw_hex)
        except ValueError as e:
            raise ProviderUnavailable(f"provider returned an unparsable transaction for {txid}: {e}")

    async def send_transaction(self, tx: Transaction) -> str:
        try:
            result = await self._http.post(f"/{self._network.value}/tx/raw", {"txhex": tx.hex()})
        except HttpStatusError as e:
            message = e.body.lower()
            if any(m in message for m in SPENT_REJECTIONS):
                raise RecordAlreadySpent(f"broadcast rejected: {e.body[:200]}", details={"txid": tx.txid()})
            if any(m in message for m in NON_FINAL_REJECTIONS):
                raise LockNotExpired(f"broadcast rejected: {e.body[:200]}", details={"lock_time": tx.locktime})
            raise
        txid = result if isinstance(result, str) else tx.txid()
        logger.info(f"Broadcast {txid} on {self._network.value}net")
        return txid

    async def list_unspent(self, address: str) -> list[Utxo]:
        if self._proxy is not None:
            data = await self._proxy.get(f"/{self._network.value}/listUnspent/{address}")
        else:
            data = await self._http.get(f"/{self._network.value}/address/{address}/unspent")
        if isinstance(data, dict) and "result" in data:
            data = data["result"]
        return [Utxo.model_validate(u) for u in data]

    async def get_block_height(self) -> int:
        info = await self._http.get(f"/{self._network.value}/chain/info")
        return int(info["blocks"])

    async def close(self) -> None:
        await self._http.close()
        if self._proxy is not None:
            await self._proxy.close()


class OrdinalsIndex:
    """GorillaPool ordinals indexer, used only to show inscription ids."""

    def __init__(self, base_url: str = ORDINALS_API_URL, http: Optional[HttpClient] = None):
        self._http = http or HttpClient(base_url=base_url)

    async def inscription_id(self, txid: str) -> Optional[str]:
        """Best effort: None when the indexer has nothing or is unreachable."""
        try:
            result = await self._http.get(f"/inscriptions/txid/{txid}")
            if result:
                return str(result[0]["id"])
        except (ProviderUnavailable, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Inscription lookup for {txid} failed: {e}")
        return None

    async def close(self) -> None:
        await self._http.close()
