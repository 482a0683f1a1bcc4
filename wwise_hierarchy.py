import bisect
import struct

from typing_extensions import Self

from const import BANK_SOURCE_BYTES, LOOP_PROP, PROP_ENTRY_BYTES, HircType
from util import MemoryStream, assert_true
from wwise import LoopValue, WemDescriptor


class HircEntry:
    """
    A hierarchy object whose body is not interpreted. `size` counts every byte
    after the size field (the object id plus the body).
    """

    def __init__(self):
        self.hierarchy_type: int = 0
        self.size: int = 0
        self.hierarchy_id: int = 0
        self.misc: bytes = b""

    @classmethod
    def from_memory_stream(cls, stream: MemoryStream) -> Self:
        entry = cls()
        entry.hierarchy_type = stream.uint8_read()
        entry.size = stream.uint32_read()
        if entry.size < 4:
            raise ValueError(
                f"Hierarchy object of type {entry.hierarchy_type} declares "
                f"{entry.size} bytes, less than its own id"
            )
        entry.hierarchy_id = stream.uint32_read()
        entry.misc = stream.read(entry.size - 4)
        return entry

    def get_id(self) -> int:
        return self.hierarchy_id

    def write_descriptor(self, stream: MemoryStream):
        stream.uint8_write(self.hierarchy_type)
        stream.uint32_write(self.size)
        stream.uint32_write(self.hierarchy_id)

    def get_data(self) -> bytes:
        stream = MemoryStream()
        self.write_descriptor(stream)
        stream.write(self.misc)
        return stream.getvalue()

    def __repr__(self):
        return f"{type(self).__name__}(type={self.hierarchy_type}, " \
               f"id={self.hierarchy_id}, size={self.size})"


class BankSourceStruct:

    def __init__(self):
        self.plugin_id = 0
        self.stream_type = self.source_id = self.mem_size = self.bit_flags = 0

    @classmethod
    def from_bytes(cls, bytes: bytes | bytearray) -> Self:
        b = cls()
        b.plugin_id, b.stream_type, b.source_id, b.mem_size, b.bit_flags = struct.unpack("<IBIIB", bytes)
        return b

    def get_data(self):
        return struct.pack("<IBIIB", self.plugin_id, self.stream_type, self.source_id, self.mem_size, self.bit_flags)


class PropBundle:
    """
    Initial property values of a node: parallel lists of u8 ids and 4-byte raw
    values. Values are kept raw since their type depends on the property.
    """

    def __init__(self):
        self.prop_ids: list[int] = []
        self.prop_values: list[bytes] = []

    @classmethod
    def from_memory_stream(cls, stream: MemoryStream) -> Self:
        bundle = cls()
        count = stream.uint8_read()
        bundle.prop_ids = list(stream.read(count))
        bundle.prop_values = [stream.read(4) for _ in range(count)]
        return bundle

    def get(self, prop_id: int) -> bytes | None:
        try:
            return self.prop_values[self.prop_ids.index(prop_id)]
        except ValueError:
            return None

    def set(self, prop_id: int, value: bytes) -> int:
        """
        @return (int): change in encoded size
        """
        if prop_id in self.prop_ids:
            self.prop_values[self.prop_ids.index(prop_id)] = value
            return 0
        if len(self.prop_ids) == 0xFF:
            raise ValueError("A property bundle holds at most 255 properties")
        i = bisect.bisect_right(self.prop_ids, prop_id)
        self.prop_ids.insert(i, prop_id)
        self.prop_values.insert(i, value)
        return PROP_ENTRY_BYTES

    def remove(self, prop_id: int) -> int:
        """
        @return (int): change in encoded size
        """
        if prop_id not in self.prop_ids:
            return 0
        i = self.prop_ids.index(prop_id)
        del self.prop_ids[i]
        del self.prop_values[i]
        return -PROP_ENTRY_BYTES

    def get_data(self) -> bytes:
        return bytes([len(self.prop_ids)]) + bytes(self.prop_ids) + b"".join(self.prop_values)


class Sound(HircEntry):
    """
    A sound object: binds one wem (by source id) to playback parameters. Only
    the property bundle is decoded beyond the source struct; the effect prefix
    before it and everything after it are replayed as read.
    """

    def __init__(self):
        super().__init__()
        self.source = BankSourceStruct()
        self.fx_prefix: bytes = b""
        self.props = PropBundle()

    @classmethod
    def from_memory_stream(cls, stream: MemoryStream) -> Self:
        entry = cls()
        entry.hierarchy_type = stream.uint8_read()
        assert_true(
            f"Expected a sound object but got type {entry.hierarchy_type}",
            entry.hierarchy_type == HircType.Sound
        )
        entry.size = stream.uint32_read()
        start_position = stream.tell()
        if entry.size < 4:
            raise ValueError(
                f"Sound object declares {entry.size} bytes, less than its own id")
        entry.hierarchy_id = stream.uint32_read()

        body = MemoryStream(stream.read(entry.size - 4))
        try:
            entry.source = BankSourceStruct.from_bytes(body.read(BANK_SOURCE_BYTES))

            section_start = body.tell()
            body.advance(1)
            n = body.uint8_read() #num fx
            if n == 0:
                body.advance(12)
            else:
                body.advance(7*n + 13)
            section_end = body.tell()
            body.seek(section_start)
            entry.fx_prefix = body.read(section_end - section_start)

            entry.props = PropBundle.from_memory_stream(body)
        except ValueError as err:
            raise ValueError(
                f"Sound object {entry.hierarchy_id} at offset "
                f"{start_position - 5} overruns its declared size of "
                f"{entry.size} bytes"
            ) from err
        entry.misc = body.read()
        return entry

    def get_wem_descriptor(self) -> WemDescriptor:
        return WemDescriptor(self.source.source_id, 0, self.source.mem_size)

    def get_loop(self) -> LoopValue:
        value = self.props.get(LOOP_PROP)
        if value == None:
            return LoopValue(False, 0)
        return LoopValue(True, struct.unpack("<I", value)[0])

    def set_loop(self, loop: LoopValue) -> int:
        """
        @return (int): change in the object's encoded size
        """
        if loop.loops:
            delta = self.props.set(LOOP_PROP, struct.pack("<I", loop.value))
        else:
            delta = self.props.remove(LOOP_PROP)
        self.size += delta
        return delta

    def get_data(self) -> bytes:
        stream = MemoryStream()
        self.write_descriptor(stream)
        stream.write(self.source.get_data())
        stream.write(self.fx_prefix)
        stream.write(self.props.get_data())
        stream.write(self.misc)
        return stream.getvalue()


class HircEntryFactory:

    @classmethod
    def from_memory_stream(cls, stream: MemoryStream) -> HircEntry:
        hierarchy_type = stream.uint8_read()
        stream.seek(stream.tell()-1)
        match hierarchy_type:
            case HircType.Sound:
                return Sound.from_memory_stream(stream)
            case _:
                return HircEntry.from_memory_stream(stream)
