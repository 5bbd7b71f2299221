"""
Inscription envelope encoding and decoding.

Layout (1Sat Ordinals style, skipped by the interpreter as a no-op):

    OP_FALSE OP_IF "ord" <version> <content-type> OP_0 <payload> OP_ENDIF

The version push is OP_1 for plaintext payloads and OP_2 for payloads
encrypted by lockdoc.cipher.
"""

from typing import Optional

from bsv.constants import OpCode
from bsv.utils import encode_int, encode_pushdata

from lockdoc.errors import MalformedEnvelope, ScriptError
from lockdoc.models.envelope import EnvelopeFrame, VERSION_ENCRYPTED, VERSION_PLAIN
from lockdoc.script import ScriptReader, small_int

PROTOCOL_TAG = b"ord"
MARKER = OpCode.OP_FALSE + OpCode.OP_IF
SUPPORTED_VERSIONS = (VERSION_PLAIN, VERSION_ENCRYPTED)


def encode(content_type: str, payload: bytes, encrypted: bool = False) -> bytes:
    """Build the envelope bytes to prefix onto a locking script."""
    try:
        ct = content_type.encode("ascii")
    except UnicodeEncodeError:
        raise ValueError(f"content type must be ASCII: {content_type!r}")
    version = VERSION_ENCRYPTED if encrypted else VERSION_PLAIN
    return b"".join([
        MARKER,
        encode_pushdata(PROTOCOL_TAG),
        encode_int(version),
        encode_pushdata(ct),
        OpCode.OP_0,
        encode_pushdata(payload),
        OpCode.OP_ENDIF,
    ])


def encode_frame(frame: EnvelopeFrame) -> bytes:
    return encode(frame.content_type, frame.payload, encrypted=frame.encrypted)


def decode(script: bytes) -> tuple[EnvelopeFrame, int]:
    """Decode an envelope at the start of `script`.

    Returns the frame and the number of bytes it occupies, so the rest of the
    script can be parsed as the spending condition.
    """
    reader = ScriptReader(script)
    try:
        if script[:2] != MARKER:
            raise MalformedEnvelope("missing OP_FALSE OP_IF envelope marker")
        reader.expect_op(OpCode.OP_FALSE)
        reader.expect_op(OpCode.OP_IF)

        tag = reader.read_push()
        if tag != PROTOCOL_TAG:
            raise MalformedEnvelope(f"unexpected protocol tag {tag!r}")

        op = reader.read().op
        version = small_int(op)
        if version not in SUPPORTED_VERSIONS:
            raise MalformedEnvelope(
                f"unsupported envelope version opcode 0x{op.hex()}",
                details={"opcode": op[0]},
            )

        ct = reader.read_push()
        separator = reader.read_push()
        if separator:
            raise MalformedEnvelope("missing OP_0 separator after content type")
        payload = reader.read_push()

        op = reader.read().op
        if op != OpCode.OP_ENDIF:
            raise MalformedEnvelope(f"missing OP_ENDIF terminator, got opcode 0x{op.hex()}")
    except ScriptError as e:
        raise MalformedEnvelope(str(e), details={"offset": reader.pos}) from e

    try:
        content_type = ct.decode("ascii")
    except UnicodeDecodeError:
        raise MalformedEnvelope("content type is not ASCII")

    frame = EnvelopeFrame(content_type=content_type, payload=payload, version=version)
    return frame, reader.pos


def split(script: bytes) -> tuple[Optional[EnvelopeFrame], bytes]:
    """Separate an optional leading envelope from the condition script."""
    if not script.startswith(MARKER):
        return None, script
    frame, consumed = decode(script)
    return frame, script[consumed:]
