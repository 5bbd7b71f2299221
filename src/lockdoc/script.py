"""
Script reading helpers on top of bsv-sdk: a sequential chunk reader that
tracks byte offsets, and the push/number rules record scripts follow.
"""

from typing import Optional

from bsv import Script
from bsv.constants import OpCode
from bsv.script.spend import Spend

from lockdoc.errors import ScriptError

MAX_SCRIPT_NUM_SIZE = 5

_PUSHDATA_WIDTHS = {OpCode.OP_PUSHDATA1[0]: 1, OpCode.OP_PUSHDATA2[0]: 2, OpCode.OP_PUSHDATA4[0]: 4}
_OP_1 = OpCode.OP_1[0]
_OP_16 = OpCode.OP_16[0]


def small_int(op: bytes) -> Optional[int]:
    """Value of OP_0 / OP_1NEGATE / OP_1..OP_16, or None for any other opcode."""
    if op == OpCode.OP_0:
        return 0
    if op == OpCode.OP_1NEGATE:
        return -1
    if _OP_1 <= op[0] <= _OP_16:
        return op[0] - _OP_1 + 1
    return None


class ScriptReader:
    """Walks the chunks of a script in order, tracking the byte offset.

    Pushes whose declared length runs past the end of the script raise
    ScriptError instead of being silently shortened.
    """

    def __init__(self, script: bytes):
        self._script = bytes(script)
        self._chunks = Script(self._script).chunks
        self._index = 0
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self._script)

    def _chunk_size(self, op: bytes, data: Optional[bytes]) -> int:
        if op[0] > OpCode.OP_PUSHDATA4[0]:
            return 1 + len(data or b"")
        width = _PUSHDATA_WIDTHS.get(op[0], 0)
        if width and data is None:
            raise ScriptError(f"truncated push length at offset {self.pos}")
        declared = op[0] if not width else int.from_bytes(
            self._script[self.pos + 1:self.pos + 1 + width], "little",
        )
        size = 1 + width + declared
        if self.pos + size > len(self._script) or declared != len(data or b""):
            raise ScriptError(
                f"push of {declared} bytes at offset {self.pos} exceeds script length {len(self._script)}"
            )
        return size

    def read(self):
        """Return the next chunk: `.op` (one byte) and `.data` (None for non-push opcodes)."""
        if self.at_end() or self._index >= len(self._chunks):
            raise ScriptError(f"unexpected end of script at offset {self.pos}")
        chunk = self._chunks[self._index]
        size = self._chunk_size(chunk.op, chunk.data)
        self._index += 1
        self.pos += size
        return chunk

    def expect_op(self, op: bytes) -> None:
        got = self.read().op
        if got != op:
            raise ScriptError(f"expected opcode 0x{op.hex()}, got 0x{got.hex()} before offset {self.pos}")

    def read_push(self) -> bytes:
        """Data of the next push. Small-integer opcodes count as one-byte pushes."""
        chunk = self.read()
        if chunk.data is not None:
            return chunk.data
        value = small_int(chunk.op)
        if value is None:
            raise ScriptError(f"expected data push, got opcode 0x{chunk.op.hex()} before offset {self.pos}")
        if value == 0:
            return b""
        if value == -1:
            return b"\x81"
        return bytes([value])

    def read_number(self, max_size: int = MAX_SCRIPT_NUM_SIZE) -> int:
        chunk = self.read()
        value = small_int(chunk.op)
        if value is not None:
            return value
        data = chunk.data
        if data is None:
            raise ScriptError(f"expected number, got opcode 0x{chunk.op.hex()} before offset {self.pos}")
        if not Spend.is_chunk_minimal(chunk):
            raise ScriptError("script number push is not minimal")
        if len(data) > max_size:
            raise ScriptError(f"script number overflow: {len(data)} > {max_size} bytes")
        if not Spend.is_minimally_encoded_number(data):
            raise ScriptError("script number is not minimally encoded")
        return Spend.bin2num(data)
