"""
Withdrawal proof: lives only while one withdrawal transaction is built.
"""

from typing import Optional
from pydantic import BaseModel, Field


class WithdrawalProof(BaseModel):
    identity_public_key: bytes
    proposed_lock_time: int = Field(ge=0, le=0xFFFFFFFF)
    input_sequence: int = Field(default=0, ge=0, le=0xFFFFFFFF)
    signature: Optional[bytes] = None
