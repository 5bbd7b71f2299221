"""
Inscription envelope frame: the decoded content of the non-executing block
at the head of a custody record's locking script.
"""

from pydantic import BaseModel

PDF_CONTENT_TYPE = "application/pdf"
PDF_MAGIC = b"%PDF-"

VERSION_PLAIN = 1
VERSION_ENCRYPTED = 2


class EnvelopeFrame(BaseModel):
    content_type: str
    payload: bytes
    version: int = VERSION_PLAIN

    model_config = {"frozen": True}

    @property
    def encrypted(self) -> bool:
        """Explicit flag carried in the format-version push."""
        return self.version == VERSION_ENCRYPTED

    def looks_encrypted(self) -> bool:
        """Explicit flag first, then the legacy PDF magic sniff.

        A version 1 PDF frame whose payload lacks the `%PDF-` signature is
        assumed to be ciphertext. Non-PDF version 1 frames are taken as
        plaintext; the sniff cannot tell them apart.
        """
        if self.encrypted:
            return True
        return self.content_type == PDF_CONTENT_TYPE and not self.payload.startswith(PDF_MAGIC)
