"""
Lockdoc / AsyncLockdoc: deposit, read and withdraw time-locked documents.
"""

import asyncio
import logging
import time
from typing import Any, Optional, Union

from lockdoc.builder import DEFAULT_FEE_RATE, DEFAULT_LOCKTIME_MARGIN, DepositTxBuilder, UnsignedSpend, WithdrawalTxBuilder, choose_lock_time
from lockdoc.cipher import LEGACY_SALT, PayloadCipher, record_salt, secret_from_public_key
from lockdoc.context import LedgerContext
from lockdoc.contract import CustodyContract, EvaluationContext
from lockdoc.errors import AuthError, AuthenticationFailure, DecryptError, IdentityMismatch, LockNotExpired, MalformedEnvelope
from lockdoc.keys import address_to_identity, hash160, identity_to_address
from lockdoc.models.envelope import PDF_CONTENT_TYPE, VERSION_ENCRYPTED, VERSION_PLAIN, EnvelopeFrame
from lockdoc.models.record import Network, RecordRef
from lockdoc.models.withdrawal import WithdrawalProof
from lockdoc.provider import OrdinalsIndex
from lockdoc.scanner import RecordScanner
from lockdoc.signer import LocalKeySigner, Signer
from lockdoc.transaction import is_height, push_script
from lockdoc.transport.http import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


class ResolvedRecord:
    __slots__ = ("ref", "contract", "envelope")

    def __init__(self, ref: RecordRef, contract: CustodyContract, envelope: Optional[EnvelopeFrame]):
        self.ref = ref
        self.contract = contract
        self.envelope = envelope

    def __repr__(self) -> str:
        return f"ResolvedRecord(ref={self.ref}, contract={self.contract!r})"


class AsyncLockdoc:
    """Async Lockdoc client (primary)."""

    def __init__(
        self,
        context: Optional[LedgerContext] = None,
        *,
        network: Network = Network.TEST,
        wif: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        proxy_url: Optional[str] = None,
        fee_rate: int = DEFAULT_FEE_RATE,
        locktime_margin: int = DEFAULT_LOCKTIME_MARGIN,
        ordinals: Optional[OrdinalsIndex] = None,
    ):
        if context is None:
            signer = LocalKeySigner.from_wif(wif) if wif else None
            context = LedgerContext.for_network(network, signer, base_url=base_url, proxy_url=proxy_url)
        self.context = context
        self.scanner = RecordScanner(context)
        self.deposits = DepositTxBuilder(fee_rate)
        self.withdrawals = WithdrawalTxBuilder(fee_rate)
        self.locktime_margin = locktime_margin
        self._ordinals = ordinals

    @property
    def network(self) -> Network:
        return self.context.network

    async def _authorize(self) -> tuple[Signer, bytes]:
        signer = self.context.signer
        if signer is None:
            raise AuthError("No signer configured. Import a key first.")
        result = await signer.request_auth()
        if not result.is_authenticated:
            raise AuthError(f"Failed to authenticate wallet: {result.error}")
        signer_network = await signer.get_network()
        if signer_network != self.network:
            raise AuthError(
                f"Signer is on the {signer_network.value} network, client is on {self.network.value}",
                code="network_mismatch",
            )
        return signer, await signer.get_default_identity()

    async def _sign_funding(self, unsigned: UnsignedSpend, signer: Signer, public_key: bytes, start: int) -> None:
        for i in range(start, len(unsigned.tx.inputs)):
            sig = await signer.sign(unsigned.sighash(i))
            unsigned.set_unlocking_script(i, push_script(sig, public_key))

    async def deposit(
        self,
        payload: bytes,
        deadline: int,
        content_type: str = PDF_CONTENT_TYPE,
        recipient: Optional[bytes] = None,
        encrypt: bool = False,
        now: Optional[int] = None,
    ) -> RecordRef:
        """Inscribe `payload` into a custody record locked until `deadline`.

        The recipient defaults to the signer's own identity. Encrypted
        payloads are keyed by the signer's public key. Timestamp deadlines
        must lie after `now`; block-height deadlines are not checked.
        """
        now = int(time.time()) if now is None else now
        if not is_height(deadline) and deadline <= now:
            raise ValueError(f"deadline {deadline} is not in the future (now {now})")
        signer, public_key = await self._authorize()
        identity = hash160(public_key)
        recipient = recipient or identity

        if encrypt:
            cipher = PayloadCipher.from_secret(
                secret_from_public_key(public_key), salt=record_salt(recipient, deadline),
            )
            payload = cipher.encrypt(payload)
        frame = EnvelopeFrame(
            content_type=content_type, payload=payload,
            version=VERSION_ENCRYPTED if encrypt else VERSION_PLAIN,
        )
        contract = CustodyContract(recipient, deadline, envelope_frame=frame)

        provider = self.context.provider
        funding = await provider.list_unspent(identity_to_address(identity, self.network))
        unsigned = self.deposits.build(contract, funding, identity)
        await self._sign_funding(unsigned, signer, public_key, start=0)
        txid = await provider.send_transaction(unsigned.tx)

        ref = RecordRef(network=self.network, txid=txid, vout=0)
        logger.info(f"Deposited {len(payload)} bytes as {ref}, locked until {deadline}")
        return ref

    async def resolve(self, ref: RecordRef) -> ResolvedRecord:
        contract, frame = await self.scanner.resolve(ref)
        return ResolvedRecord(ref, contract, frame)

    async def read_document(
        self, record: Union[RecordRef, ResolvedRecord], secret: Optional[int] = None,
    ) -> bytes:
        """Return the record's document, decrypting it when it is encrypted.

        Explicitly encrypted payloads must decrypt. Payloads that only look
        encrypted are returned as stored when decryption fails.
        """
        if isinstance(record, RecordRef):
            record = await self.resolve(record)
        frame = record.envelope
        if frame is None:
            raise MalformedEnvelope(f"record {record.ref} carries no envelope")
        if not frame.looks_encrypted():
            return frame.payload

        if secret is None:
            if self.context.signer is None and not frame.encrypted:
                logger.warning(f"{record.ref} looks encrypted but no signer is configured; returning it as stored")
                return frame.payload
            _, public_key = await self._authorize()
            secret = secret_from_public_key(public_key)

        contract = record.contract
        salt = record_salt(contract.recipient_identity, contract.deadline) if frame.encrypted else LEGACY_SALT
        try:
            return PayloadCipher.from_secret(secret, salt=salt).decrypt(frame.payload)
        except (AuthenticationFailure, DecryptError) as e:
            if frame.encrypted:
                raise
            logger.warning(f"Decrypting {record.ref} failed ({e.code}); treating payload as plaintext")
            return frame.payload

    async def withdraw(self, ref: RecordRef, destination: str, now: Optional[int] = None) -> str:
        """Move the custody record to `destination` once its deadline passed."""
        record = await self.resolve(ref)
        contract = record.contract
        provider = self.context.provider

        now = int(time.time()) if now is None else now
        height = await provider.get_block_height() if contract.deadline_is_height else None
        if not contract.is_spendable(now, height):
            raise LockNotExpired(details={"deadline": contract.deadline, "now": now, "height": height})

        destination_identity = address_to_identity(destination, self.network)
        signer, public_key = await self._authorize()
        identity = hash160(public_key)
        if identity != contract.recipient_identity:
            raise IdentityMismatch(details={
                "expected": contract.recipient_identity.hex(),
                "got": identity.hex(),
            })

        proof = WithdrawalProof(
            identity_public_key=public_key,
            proposed_lock_time=choose_lock_time(contract.deadline, now, self.locktime_margin),
            input_sequence=0,
        )
        funding = await provider.list_unspent(identity_to_address(identity, self.network))
        unsigned = self.withdrawals.build(
            contract, proof, destination_identity, change=identity, funding=funding,
        )

        proof.signature = await signer.sign(unsigned.sighash(0))
        contract.withdraw(public_key, proof.signature, EvaluationContext(unsigned.tx, 0))

        await self._sign_funding(unsigned, signer, public_key, start=1)
        tx = self.withdrawals.finalize(unsigned, contract, proof)
        txid = await provider.send_transaction(tx)
        contract.mark_spent()
        logger.info(f"Withdrew {ref} to {destination} in {txid}")
        return txid

    async def inscription_id(self, ref: RecordRef) -> Optional[str]:
        if self._ordinals is None:
            self._ordinals = OrdinalsIndex()
        return await self._ordinals.inscription_id(ref.txid)

    async def close(self) -> None:
        close = getattr(self.context.provider, "close", None)
        if close is not None:
            await close()
        if self._ordinals is not None:
            await self._ordinals.close()


class Lockdoc:
    """Sync wrapper around AsyncLockdoc. Runs the event loop internally."""

    def __init__(self, *args: Any, **kwargs: Any):
        self._async = AsyncLockdoc(*args, **kwargs)
        self._loop = asyncio.new_event_loop()

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def context(self) -> LedgerContext:
        return self._async.context

    def deposit(self, payload: bytes, deadline: int, **kwargs: Any) -> RecordRef:
        return self._run(self._async.deposit(payload, deadline, **kwargs))

    def resolve(self, ref: RecordRef) -> ResolvedRecord:
        return self._run(self._async.resolve(ref))

    def read_document(self, record: Union[RecordRef, ResolvedRecord], secret: Optional[int] = None) -> bytes:
        return self._run(self._async.read_document(record, secret))

    def withdraw(self, ref: RecordRef, destination: str, now: Optional[int] = None) -> str:
        return self._run(self._async.withdraw(ref, destination, now))

    def inscription_id(self, ref: RecordRef) -> Optional[str]:
        return self._run(self._async.inscription_id(ref))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()
