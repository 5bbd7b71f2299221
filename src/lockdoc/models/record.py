"""
Record addressing models: a custody record is located by (network, txid, vout).
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator

EXPLORER_TX_URLS = {
    "main": "https://whatsonchain.com/tx/",
    "test": "https://test.whatsonchain.com/tx/",
}


class Network(str, Enum):
    MAIN = "main"
    TEST = "test"


class RecordRef(BaseModel):
    network: Network
    txid: str
    vout: int = Field(default=0, ge=0)

    model_config = {"frozen": True}

    @field_validator("txid")
    @classmethod
    def _check_txid(cls, v: str) -> str:
        v = v.lower()
        if len(v) != 64 or any(c not in "0123456789abcdef" for c in v):
            raise ValueError("txid must be 64 hex characters")
        return v

    @classmethod
    def parse(cls, text: str) -> "RecordRef":
        """Parse the `network/txid/vout` form used in record links."""
        parts = text.strip().strip("/").split("/")
        if len(parts) != 3:
            raise ValueError(f"expected network/txid/vout, got {text!r}")
        network, txid, vout = parts
        return cls(network=Network(network), txid=txid, vout=int(vout))

    @property
    def explorer_url(self) -> str:
        return EXPLORER_TX_URLS[self.network.value] + self.txid

    def __str__(self) -> str:
        return f"{self.network.value}/{self.txid}/{self.vout}"
