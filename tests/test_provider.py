import json

import httpx
import pytest
from bsv import Script, Transaction, TransactionInput, TransactionOutput

from lockdoc.errors import LockNotExpired, ProviderUnavailable, RecordAlreadySpent, RecordNotFound
from lockdoc.models.record import Network
from lockdoc.provider import OrdinalsIndex, WhatsOnChainProvider
from lockdoc.transport.http import HttpClient, HttpStatusError

from conftest import GENESIS_COINBASE, GENESIS_TXID


def make_provider(handler, proxy_handler=None) -> WhatsOnChainProvider:
    http = HttpClient(transport=httpx.MockTransport(handler))
    proxy = None
    if proxy_handler is not None:
        proxy = HttpClient(base_url="https://proxy.example", transport=httpx.MockTransport(proxy_handler))
    return WhatsOnChainProvider(network=Network.TEST, http=http, proxy_http=proxy)


def sample_tx() -> Transaction:
    return Transaction(
        [TransactionInput(source_txid="11" * 32, source_output_index=0, unlocking_script=Script("51"))],
        [TransactionOutput(Script("51"), 1)],
    )


class TestGetTransaction:
    @pytest.mark.asyncio
    async def test_fetches_hex(self):
        seen = []

        def handler(request):
            seen.append(request.url.path)
            return httpx.Response(200, text=GENESIS_COINBASE)

        tx = await make_provider(handler).get_transaction(GENESIS_TXID)
        assert tx.txid() == GENESIS_TXID
        assert seen == [f"/v1/bsv/test/tx/{GENESIS_TXID}/hex"]

    @pytest.mark.asyncio
    async def test_not_found(self):
        provider = make_provider(lambda request: httpx.Response(404, text="Not Found"))
        with pytest.raises(RecordNotFound):
            await provider.get_transaction(GENESIS_TXID)

    @pytest.mark.asyncio
    async def test_server_error(self):
        provider = make_provider(lambda request: httpx.Response(503, text="busy"))
        with pytest.raises(HttpStatusError) as exc:
            await provider.get_transaction(GENESIS_TXID)
        assert exc.value.status_code == 503
        assert exc.value.code == "provider_unavailable"

    @pytest.mark.asyncio
    async def test_garbage_body(self):
        provider = make_provider(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(ProviderUnavailable):
            await provider.get_transaction(GENESIS_TXID)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailable):
            await make_provider(handler).get_transaction(GENESIS_TXID)


class TestSendTransaction:
    @pytest.mark.asyncio
    async def test_posts_hex(self):
        tx = sample_tx()
        bodies = []

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/v1/bsv/test/tx/raw"
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=tx.txid())

        assert await make_provider(handler).send_transaction(tx) == tx.txid()
        assert bodies == [{"txhex": tx.hex()}]

    @pytest.mark.asyncio
    async def test_double_spend(self):
        provider = make_provider(lambda request: httpx.Response(400, text="258: txn-mempool-conflict, Missing inputs"))
        with pytest.raises(RecordAlreadySpent):
            await provider.send_transaction(sample_tx())

    @pytest.mark.asyncio
    async def test_non_final(self):
        provider = make_provider(lambda request: httpx.Response(400, text="64: non-final"))
        with pytest.raises(LockNotExpired):
            await provider.send_transaction(sample_tx())

    @pytest.mark.asyncio
    async def test_other_rejection(self):
        provider = make_provider(lambda request: httpx.Response(400, text="16: bad-txns-vout-empty"))
        with pytest.raises(HttpStatusError):
            await provider.send_transaction(sample_tx())


class TestUnspent:
    @pytest.mark.asyncio
    async def test_whatsonchain_listing(self):
        def handler(request):
            assert request.url.path == "/v1/bsv/test/address/mxyz/unspent"
            return httpx.Response(200, json=[{"height": 800000, "tx_pos": 1, "tx_hash": "ab" * 32, "value": 5000}])

        [utxo] = await make_provider(handler).list_unspent("mxyz")
        assert (utxo.txid, utxo.vout, utxo.satoshis, utxo.height) == ("ab" * 32, 1, 5000, 800000)

    @pytest.mark.asyncio
    async def test_proxy_listing(self):
        def woc(request):
            raise AssertionError("unspent lookups should go through the proxy")

        def proxy(request):
            assert request.url.path == "/test/listUnspent/mxyz"
            return httpx.Response(200, json={"result": [{"tx_pos": 0, "tx_hash": "cd" * 32, "value": 42}]})

        [utxo] = await make_provider(woc, proxy).list_unspent("mxyz")
        assert utxo.satoshis == 42
        assert utxo.height is None


@pytest.mark.asyncio
async def test_block_height():
    def handler(request):
        assert request.url.path == "/v1/bsv/test/chain/info"
        return httpx.Response(200, json={"chain": "test", "blocks": 1650123})

    assert await make_provider(handler).get_block_height() == 1650123


class TestOrdinalsIndex:
    @pytest.mark.asyncio
    async def test_found(self):
        def handler(request):
            assert request.url.path == f"/api/inscriptions/txid/{GENESIS_TXID}"
            return httpx.Response(200, json=[{"id": f"{GENESIS_TXID}_0", "num": 7}])

        index = OrdinalsIndex(http=HttpClient(
            base_url="https://ordinals.gorillapool.io/api", transport=httpx.MockTransport(handler),
        ))
        assert await index.inscription_id(GENESIS_TXID) == f"{GENESIS_TXID}_0"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(500, text="down"),
        httpx.Response(200, json=[]),
        httpx.Response(200, json={"unexpected": True}),
    ])
    async def test_failures_return_none(self, response):
        index = OrdinalsIndex(http=HttpClient(transport=httpx.MockTransport(lambda request: response)))
        assert await index.inscription_id(GENESIS_TXID) is None
