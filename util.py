import io
import struct

from math import ceil
from typing import BinaryIO

from const import COPY_CHUNK_SIZE


class MemoryStream:
    '''
    Modified from https://github.com/kboykboy2/io_scene_helldivers2 with permission from kboykboy
    '''
    def __init__(self, Data=b""):
        self.location = 0
        self.data = bytearray(Data)
        self.endian = "<"

    def seek(self, location): # Go To Position In Stream
        self.location = location

    def tell(self): # Get Position In Stream
        return self.location

    def remaining(self) -> int:
        return len(self.data) - self.location

    def read(self, length=-1): # read Bytes From Stream
        if length == -1:
            length = len(self.data) - self.location
        if self.location + length > len(self.data):
            raise ValueError(
                f"reading past end of stream: {length} bytes requested at "
                f"offset {self.location}, {self.remaining()} available"
            )

        newData = self.data[self.location:self.location+length]
        self.location += length
        return bytes(newData)

    def advance(self, offset):
        self.location += offset
        if self.location < 0:
            self.location = 0
        if self.location > len(self.data):
            raise ValueError("advancing past end of stream")

    def write(self, bytes): # Write Bytes To Stream
        length = len(bytes)
        if self.location + length > len(self.data):
            missing_bytes = (self.location + length) - len(self.data)
            self.data += bytearray(missing_bytes)
        self.data[self.location:self.location+length] = bytearray(bytes)
        self.location += length

    def read_format(self, format, size):
        format = self.endian+format
        return struct.unpack(format, self.read(size))[0]

    def write_format(self, format, value):
        self.write(struct.pack(self.endian+format, value))

    def uint8_read(self) -> int:
        return self.read_format('B', 1)

    def uint32_read(self) -> int:
        return self.read_format('I', 4)

    def uint8_write(self, value: int):
        self.write_format('B', value)

    def uint32_write(self, value: int):
        self.write_format('I', value)

    def getvalue(self) -> bytes:
        return bytes(self.data)


class ByteRangeView:
    """
    A re-readable window of `length` bytes starting at `offset` of a random
    access source. Every read seeks the shared source to `offset + cursor`
    first, so any number of views over the same handle can be read in any
    order, and the same view can be streamed more than once.
    """

    def __init__(self, source: BinaryIO, offset: int, length: int):
        if offset < 0 or length < 0:
            raise ValueError(
                f"Invalid byte range: offset {offset}, length {length}")
        self.source = source
        self.offset = offset
        self.length = length
        self.cursor = 0

    def size(self) -> int:
        return self.length

    def reset(self):
        self.cursor = 0

    def read(self, length: int = -1) -> bytes:
        remaining = self.length - self.cursor
        if length < 0 or length > remaining:
            length = remaining
        if length == 0:
            return b""
        self.source.seek(self.offset + self.cursor)
        data = self.source.read(length)
        if len(data) != length:
            raise ValueError(
                f"Source truncated: expected {length} bytes at offset "
                f"{self.offset + self.cursor}, got {len(data)}"
            )
        self.cursor += length
        return data

    def read_all(self) -> bytes:
        self.reset()
        data = self.read()
        self.reset()
        return data

    def copy_to(self, sink: BinaryIO, chunk_size: int = COPY_CHUNK_SIZE) -> int:
        """
        Stream the whole window into `sink` from its first byte, leaving the
        view rewound afterwards.

        @return (int): number of bytes written
        """
        self.reset()
        written = 0
        try:
            while True:
                chunk = self.read(chunk_size)
                if not chunk:
                    break
                sink.write(chunk)
                written += len(chunk)
        finally:
            self.reset()
        return written

    def __repr__(self):
        return f"ByteRangeView(offset={self.offset}, length={self.length})"


class ZeroPadding(ByteRangeView):
    """
    A padding window that is not backed by any source: `length` zero bytes.
    """

    def __init__(self, length: int):
        super().__init__(io.BytesIO(bytes(length)), 0, length)

    def __repr__(self):
        return f"ZeroPadding(length={self.length})"


def align(addr: int, boundary: int) -> int:
    return ceil(addr/boundary)*boundary


def pad_to_align(data, boundary: int):
    b = bytearray(data)
    l = len(b)
    return b + bytearray(align(l, boundary)-l)


def source_size(source: BinaryIO) -> int:
    position = source.tell()
    size = source.seek(0, io.SEEK_END)
    source.seek(position)
    return size


def assert_true(msg: str, cond):
    if not cond:
        raise AssertionError(f"{msg}")
