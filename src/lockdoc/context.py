"""
LedgerContext: the network, provider and signer a flow runs against.

Passed explicitly into every flow instead of being chosen per call site.
"""

from typing import Optional

from lockdoc.models.record import Network
from lockdoc.provider import LedgerProvider, WhatsOnChainProvider
from lockdoc.signer import Signer
from lockdoc.transport.http import DEFAULT_BASE_URL


class LedgerContext:
    def __init__(self, network: Network, provider: LedgerProvider, signer: Optional[Signer] = None):
        self.network = network
        self.provider = provider
        self.signer = signer

    @classmethod
    def for_network(
        cls,
        network: Network,
        signer: Optional[Signer] = None,
        base_url: str = DEFAULT_BASE_URL,
        proxy_url: Optional[str] = None,
    ) -> "LedgerContext":
        provider = WhatsOnChainProvider(network=network, base_url=base_url, proxy_url=proxy_url)
        return cls(network, provider, signer)

    def __repr__(self) -> str:
        return f"LedgerContext(network={self.network.value}, signer={'yes' if self.signer else 'no'})"
