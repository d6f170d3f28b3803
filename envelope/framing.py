# envelope/framing.py
"""
Big-endian, length-prefixed framing shared by the AAD encoding and the envelope codec.

Every variable-length field is written as a 4-byte unsigned length followed by the
field bytes, so no byte can be moved across a field boundary without changing a
length prefix.
"""
import struct

from .errors import FramingError

LENGTH_PREFIX = struct.Struct(">I")
U8 = struct.Struct(">B")
U64 = struct.Struct(">Q")

MAX_FIELD_LENGTH = 0xFFFFFFFF
MAX_U64 = 0xFFFFFFFFFFFFFFFF


def pack_u8(value: int) -> bytes:
    return U8.pack(value)


def pack_u64(value: int) -> bytes:
    return U64.pack(value)


def pack_bytes(value: bytes) -> bytes:
    """Length-prefix a byte string."""
    return LENGTH_PREFIX.pack(len(value)) + value


def frame_fields(*fields: bytes) -> bytes:
    """Concatenate length-prefixed fields."""
    return b"".join(pack_bytes(field) for field in fields)


class FrameReader:
    """
    Sequential reader over an immutable buffer.

    Lengths read from the buffer are always checked against the bytes actually
    remaining before anything is sliced, so an attacker-controlled length can
    never cause a read past the end or an oversized allocation.
    """

    def __init__(self, data: bytes):
        self._view = memoryview(bytes(data))
        self._offset = 0

    @property
    def remaining(self) -> int:
        return len(self._view) - self._offset

    def _take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise FramingError(
                f"Truncated {what}: need {size} bytes at offset {self._offset}, {self.remaining} remaining"
            )
        chunk = self._view[self._offset:self._offset + size].tobytes()
        self._offset += size
        return chunk

    def read_u8(self, what: str = "u8") -> int:
        return U8.unpack(self._take(U8.size, what))[0]

    def read_u64(self, what: str = "u64") -> int:
        return U64.unpack(self._take(U64.size, what))[0]

    def read_fixed(self, size: int, what: str = "fixed field") -> bytes:
        return self._take(size, what)

    def read_bytes(self, what: str = "field") -> bytes:
        (length,) = LENGTH_PREFIX.unpack(self._take(LENGTH_PREFIX.size, f"{what} length"))
        if length > self.remaining:
            raise FramingError(
                f"Length of {what} ({length}) exceeds the {self.remaining} bytes remaining"
            )
        return self._take(length, what)

    def finish(self) -> None:
        if self.remaining:
            raise FramingError(f"{self.remaining} trailing bytes after the last field")
