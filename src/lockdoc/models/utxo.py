"""
Unspent output as returned by WhatsOnChain `/address/{addr}/unspent`.
"""

from typing import Optional
from pydantic import BaseModel, Field


class Utxo(BaseModel):
    txid: str = Field(alias="tx_hash")
    vout: int = Field(alias="tx_pos")
    satoshis: int = Field(alias="value")
    height: Optional[int] = None

    model_config = {"populate_by_name": True}
