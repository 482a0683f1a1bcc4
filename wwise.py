import io
import struct

from dataclasses import dataclass
from typing import BinaryIO

from typing_extensions import Self

from const import DIDX_ENTRY_BYTES, INFINITE_LOOPS
from util import ByteRangeView


class WemDescriptor:
    """
    One DIDX entry. `offset` is relative to the start of the DATA payload.
    """

    def __init__(self, wem_id: int = 0, offset: int = 0, length: int = 0):
        self.wem_id = wem_id
        self.offset = offset
        self.length = length

    @classmethod
    def from_bytes(cls, data: bytes | bytearray) -> Self:
        if len(data) != DIDX_ENTRY_BYTES:
            raise ValueError(
                f"A wem descriptor is {DIDX_ENTRY_BYTES} bytes, got {len(data)}")
        return cls(*struct.unpack("<III", data))

    def get_data(self) -> bytes:
        return struct.pack("<III", self.wem_id, self.offset, self.length)

    def __eq__(self, other):
        if not isinstance(other, WemDescriptor):
            return NotImplemented
        return (self.wem_id, self.offset, self.length) == \
                (other.wem_id, other.offset, other.length)

    def __repr__(self):
        return f"WemDescriptor(id={self.wem_id}, offset={self.offset}, " \
               f"length={self.length})"


class Wem:
    """
    An embedded audio payload. The descriptor is shared with the data index so
    layout changes made through the DATA section show up in the DIDX.
    """

    def __init__(self,
                 descriptor: WemDescriptor,
                 payload: ByteRangeView,
                 padding: ByteRangeView):
        self.descriptor = descriptor
        self.payload = payload
        self.padding = padding

    def get_id(self) -> int:
        return self.descriptor.wem_id

    def read(self) -> bytes:
        return self.payload.read_all()

    def copy_to(self, sink: BinaryIO) -> int:
        return self.payload.copy_to(sink)

    def __repr__(self):
        return f"Wem({self.descriptor!r}, padding={self.padding.size()})"


class ReplacementWem:
    """
    A request to swap the payload of the wem at `wem_index` for `length` bytes
    read from `source`, starting at the source's current position. `source`
    may also be raw bytes.
    """

    def __init__(self,
                 wem_index: int,
                 source: BinaryIO | bytes | bytearray,
                 length: int | None = None):
        if isinstance(source, (bytes, bytearray)):
            if length == None:
                length = len(source)
            source = io.BytesIO(source)
        if length == None:
            raise ValueError("The length of a replacement source is required")
        self.wem_index = wem_index
        self.source: BinaryIO = source
        self.length = length

    def to_view(self) -> ByteRangeView:
        return ByteRangeView(self.source, self.source.tell(), self.length)

    def __repr__(self):
        return f"ReplacementWem(index={self.wem_index}, length={self.length})"


@dataclass
class LoopValue:

    loops: bool
    value: int = INFINITE_LOOPS

    def is_infinite(self) -> bool:
        return self.loops and self.value == INFINITE_LOOPS
