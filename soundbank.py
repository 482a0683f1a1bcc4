import os
import struct
import tempfile

from typing import BinaryIO

from typing_extensions import Self

from const import BKHD, DIDX, DATA, HIRC, BKHD_DESCRIPTOR_BYTES, \
        DIDX_ENTRY_BYTES, MAX_U32, OBJECT_COUNT_BYTES, SECTION_HEADER_BYTES, \
        WEM_ALIGNMENT_BYTES, HircType
from log import logger
from util import ByteRangeView, MemoryStream, ZeroPadding
from util import align, assert_true, source_size
from wwise import LoopValue, ReplacementWem, Wem, WemDescriptor
from wwise_hierarchy import HircEntry, HircEntryFactory, Sound


class SectionHeader:
    """
    The 8 byte envelope of every section: a 4 byte tag and the u32 length of
    the body that follows it.
    """

    def __init__(self, tag: bytes = b"", length: int = 0):
        self.tag = tag
        self.length = length

    @classmethod
    def from_stream(cls, source: BinaryIO) -> Self | None:
        """
        @return
        - None when the source is exhausted
        @exception
        - ValueError: fewer than 8 bytes remain
        """
        offset = source.tell()
        data = source.read(SECTION_HEADER_BYTES)
        if len(data) == 0:
            return None
        if len(data) != SECTION_HEADER_BYTES:
            raise ValueError(
                f"Truncated section header at offset {offset}: "
                f"{len(data)} of {SECTION_HEADER_BYTES} bytes"
            )
        tag, length = struct.unpack("<4sI", data)
        return cls(tag, length)

    def get_name(self) -> str:
        return self.tag.decode("ascii", errors="replace")

    def get_data(self) -> bytes:
        return struct.pack("<4sI", self.tag, self.length)

    def write_to(self, sink: BinaryIO) -> int:
        sink.write(self.get_data())
        return SECTION_HEADER_BYTES

    def new_section(self, source: BinaryIO, data_index = None):
        """
        Decode the body that follows this header. `source` must be positioned
        at the first body byte. `data_index` is required for a DATA section.
        """
        match self.tag:
            case b"BKHD":
                return BankHeaderSection.from_stream(self, source)
            case b"DIDX":
                return DataIndexSection.from_stream(self, source)
            case b"DATA":
                if data_index == None:
                    raise ValueError(
                        "DATA section found before any DIDX section")
                return DataSection.from_stream(self, source, data_index)
            case b"HIRC":
                return ObjectHierarchySection.from_stream(self, source)
            case _:
                return UnknownSection.from_stream(self, source)


class BankHeaderSection:

    def __init__(self, header: SectionHeader):
        self.header = header
        self.version = 0
        self.bank_id = 0
        self.trailing: ByteRangeView | None = None

    @classmethod
    def from_stream(cls, header: SectionHeader, source: BinaryIO) -> Self:
        assert_true(f"Expected BKHD header but got {header.tag}",
                    header.tag == BKHD)
        if header.length < BKHD_DESCRIPTOR_BYTES:
            raise ValueError(
                f"BKHD declares {header.length} bytes, less than the "
                f"{BKHD_DESCRIPTOR_BYTES} byte bank descriptor"
            )
        sec = cls(header)
        sec.version, sec.bank_id = struct.unpack(
            "<II", source.read(BKHD_DESCRIPTOR_BYTES))

        known_offset = source.tell()
        remaining = header.length - BKHD_DESCRIPTOR_BYTES
        sec.trailing = ByteRangeView(source, known_offset, remaining)
        source.seek(known_offset + remaining)
        return sec

    def write_to(self, sink: BinaryIO) -> int:
        written = self.header.write_to(sink)
        sink.write(struct.pack("<II", self.version, self.bank_id))
        written += BKHD_DESCRIPTOR_BYTES
        written += self.trailing.copy_to(sink)
        return written

    def __str__(self):
        return f"{self.header.get_name()}: len({self.header.length}) " \
               f"version({self.version}) id({self.bank_id})"


class DataIndexSection:

    def __init__(self, header: SectionHeader):
        self.header = header
        # wem ids in file order
        self.wem_ids: list[int] = []
        self.descriptors: dict[int, WemDescriptor] = {}

    @classmethod
    def from_stream(cls, header: SectionHeader, source: BinaryIO) -> Self:
        assert_true(f"Expected DIDX header but got {header.tag}",
                    header.tag == DIDX)
        if header.length % DIDX_ENTRY_BYTES != 0:
            raise ValueError(
                f"DIDX length {header.length} is not a multiple of "
                f"{DIDX_ENTRY_BYTES}"
            )
        sec = cls(header)
        stream = MemoryStream(source.read(header.length))
        for _ in range(header.length // DIDX_ENTRY_BYTES):
            desc = WemDescriptor.from_bytes(stream.read(DIDX_ENTRY_BYTES))
            if desc.wem_id in sec.descriptors:
                logger.error(f"Repeated wem ID {desc.wem_id} in the DIDX")
                raise ValueError(
                    f"{desc.wem_id} is an illegal repeated wem ID in the DIDX")
            sec.wem_ids.append(desc.wem_id)
            sec.descriptors[desc.wem_id] = desc
        return sec

    def get_wem_count(self) -> int:
        return len(self.wem_ids)

    def get_descriptor(self, index: int) -> WemDescriptor:
        return self.descriptors[self.wem_ids[index]]

    def write_to(self, sink: BinaryIO) -> int:
        written = self.header.write_to(sink)
        for wem_id in self.wem_ids:
            sink.write(self.descriptors[wem_id].get_data())
            written += DIDX_ENTRY_BYTES
        return written

    def __str__(self):
        total = sum([desc.length for desc in self.descriptors.values()])
        return f"{self.header.get_name()}: len({self.header.length}) " \
               f"wem_count({self.get_wem_count()}) wem_total_size({total})"


class DataSection:

    def __init__(self, header: SectionHeader):
        self.header = header
        # Absolute source offset of the first payload byte
        self.data_start = 0
        self.wems: list[Wem] = []

    @classmethod
    def from_stream(cls,
                    header: SectionHeader,
                    source: BinaryIO,
                    index: DataIndexSection) -> Self:
        assert_true(f"Expected DATA header but got {header.tag}",
                    header.tag == DATA)
        sec = cls(header)
        sec.data_start = source.tell()
        count = index.get_wem_count()
        if count == 0 and header.length != 0:
            raise ValueError(
                f"DATA holds {header.length} bytes but the DIDX indexes no wems")

        for i, wem_id in enumerate(index.wem_ids):
            desc = index.descriptors[wem_id]
            if i == 0 and desc.offset != 0:
                raise ValueError(
                    f"The first wem ({wem_id}) starts at DATA offset "
                    f"{desc.offset} instead of 0"
                )
            wem_end = desc.offset + desc.length
            if i == count - 1:
                next_offset = header.length
            else:
                next_offset = index.get_descriptor(i + 1).offset
            if wem_end > next_offset:
                raise ValueError(
                    f"Wem {wem_id} ends at DATA offset {wem_end}, past the "
                    f"next boundary at {next_offset}"
                )
            payload = ByteRangeView(
                source, sec.data_start + desc.offset, desc.length)
            padding = ByteRangeView(
                source, sec.data_start + wem_end, next_offset - wem_end)
            sec.wems.append(Wem(desc, payload, padding))

        source.seek(sec.data_start + header.length)
        return sec

    def replace_wems(self, *rs: ReplacementWem):
        """
        Swap payloads and lay every wem out again from the first one: each
        wem starts on the next alignment boundary after its predecessor, and
        the last wem carries no padding. Requests are validated as a batch
        before anything is changed.

        @exception
        - IndexError: a wem index is out of range
        - ValueError: repeated index, bad length, or a layout beyond 4 GiB
        """
        replacements: dict[int, ReplacementWem] = {}
        for r in rs:
            if r.wem_index < 0 or r.wem_index >= len(self.wems):
                raise IndexError(
                    f"Wem index {r.wem_index} is out of range; the bank has "
                    f"{len(self.wems)} wems"
                )
            if r.wem_index in replacements:
                raise ValueError(
                    f"Wem index {r.wem_index} is replaced more than once")
            if r.length < 0 or r.length > MAX_U32:
                raise ValueError(
                    f"Invalid replacement length {r.length} for wem index "
                    f"{r.wem_index}"
                )
            replacements[r.wem_index] = r

        lengths = [
            replacements[i].length if i in replacements else wem.descriptor.length
            for i, wem in enumerate(self.wems)
        ]
        layout = self.compute_layout(lengths)
        total = layout[-1][0] + lengths[-1] + layout[-1][1] if layout else 0
        if total > MAX_U32:
            raise ValueError(
                f"Replaced wems need {total} bytes of DATA, more than a u32 "
                f"length can describe"
            )

        for i, r in replacements.items():
            wem = self.wems[i]
            wem.payload = r.to_view()
            wem.descriptor.length = r.length
            logger.info(
                f"Replaced wem {wem.get_id()} at index {i} with {r.length} bytes")

        for wem, (offset, padding_size) in zip(self.wems, layout):
            wem.descriptor.offset = offset
            if wem.padding.size() != padding_size:
                wem.padding = ZeroPadding(padding_size)
        self.header.length = total

    @staticmethod
    def compute_layout(lengths: list[int],
                       alignment: int = WEM_ALIGNMENT_BYTES) -> list[tuple[int, int]]:
        """
        @return (list[tuple[int, int]]): (offset, padding size) per wem
        """
        layout: list[tuple[int, int]] = []
        offset = 0
        for i, length in enumerate(lengths):
            end = offset + length
            if i == len(lengths) - 1:
                next_offset = end
            else:
                next_offset = align(end, alignment)
            layout.append((offset, next_offset - end))
            offset = next_offset
        return layout

    def write_to(self, sink: BinaryIO) -> int:
        written = self.header.write_to(sink)
        for wem in self.wems:
            written += wem.payload.copy_to(sink)
            written += wem.padding.copy_to(sink)
        return written

    def __str__(self):
        return f"{self.header.get_name()}: len({self.header.length})"


class ObjectHierarchySection:

    def __init__(self, header: SectionHeader):
        self.header = header
        self.objects: list[HircEntry] = []
        # Bytes after the last declared object
        self.trailing: bytes = b""
        # Derived views over `objects`, keyed by wem id. A wem without a
        # `loop_of` entry does not loop; a value of 0 loops forever.
        self.loop_of: dict[int, int] = {}
        self.wem_to_object: dict[int, Sound] = {}

    @classmethod
    def from_stream(cls, header: SectionHeader, source: BinaryIO) -> Self:
        assert_true(f"Expected HIRC header but got {header.tag}",
                    header.tag == HIRC)
        sec = cls(header)
        stream = MemoryStream(source.read(header.length))
        try:
            count = stream.uint32_read()
            for _ in range(count):
                entry = HircEntryFactory.from_memory_stream(stream)
                sec.objects.append(entry)
                sec.index_object(entry)
        except ValueError as err:
            logger.error(f"Malformed HIRC section: {err}")
            raise ValueError(f"Malformed HIRC section: {err}") from err
        sec.trailing = stream.read()
        if len(sec.trailing) > 0:
            logger.warning(
                f"HIRC has {len(sec.trailing)} bytes after its last object")
        return sec

    def index_object(self, entry: HircEntry):
        """
        Make `entry` the owner of its wem if it is a sound object. A later
        sound on the same wem takes over ownership and its loop setting.
        """
        match entry.hierarchy_type:
            case HircType.Sound:
                wem_id = entry.source.source_id
                self.wem_to_object[wem_id] = entry
                loop = entry.get_loop()
                if loop.loops:
                    self.loop_of[wem_id] = loop.value
                else:
                    self.loop_of.pop(wem_id, None)

    def get_object_count(self) -> int:
        return len(self.objects)

    def get_loop(self, wem_id: int) -> LoopValue:
        if wem_id not in self.loop_of:
            return LoopValue(False, 0)
        return LoopValue(True, self.loop_of[wem_id])

    def replace_loop_of(self, wem_id: int, loop: LoopValue):
        """
        @exception
        - KeyError: no sound object plays the wem
        - ValueError: loop value does not fit a u32
        """
        if wem_id not in self.wem_to_object:
            raise KeyError(f"Wem {wem_id} has no sound object to carry a loop")
        if loop.loops and (loop.value < 0 or loop.value > MAX_U32):
            raise ValueError(f"Invalid loop count {loop.value}")
        sound = self.wem_to_object[wem_id]
        delta = sound.set_loop(loop)
        self.header.length += delta
        if loop.loops:
            self.loop_of[wem_id] = loop.value
        else:
            self.loop_of.pop(wem_id, None)

    def write_to(self, sink: BinaryIO) -> int:
        written = self.header.write_to(sink)
        sink.write(struct.pack("<I", len(self.objects)))
        written += OBJECT_COUNT_BYTES
        for entry in self.objects:
            data = entry.get_data()
            sink.write(data)
            written += len(data)
        sink.write(self.trailing)
        written += len(self.trailing)
        return written

    def __str__(self):
        return f"{self.header.get_name()}: len({self.header.length}) " \
               f"object_count({self.get_object_count()})"


class UnknownSection:

    def __init__(self, header: SectionHeader, body: ByteRangeView):
        self.header = header
        self.body = body

    @classmethod
    def from_stream(cls, header: SectionHeader, source: BinaryIO) -> Self:
        data_offset = source.tell()
        body = ByteRangeView(source, data_offset, header.length)
        source.seek(data_offset + header.length)
        return cls(header, body)

    def write_to(self, sink: BinaryIO) -> int:
        return self.header.write_to(sink) + self.body.copy_to(sink)

    def __str__(self):
        return f"{self.header.get_name()}: len({self.header.length})"


class SoundBank:
    """
    An in-memory SoundBank. Sections are kept in file order; wem payloads are
    never loaded, they stay byte ranges over the source the bank was read
    from, so that source must remain open for as long as the bank is used.
    """

    def __init__(self):
        self.path = ""
        self.sections: list = []
        self.bank_header: BankHeaderSection | None = None
        self.data_index: DataIndexSection | None = None
        self.data: DataSection | None = None
        self.hierarchy: ObjectHierarchySection | None = None
        self._file: BinaryIO | None = None

    @classmethod
    def from_file(cls, path: str) -> Self:
        f = open(path, "rb")
        try:
            bank = cls.from_stream(f)
        except BaseException:
            f.close()
            raise
        bank.path = path
        bank._file = f
        logger.info(f"Opened {path}: {len(bank.wems())} wems")
        return bank

    @classmethod
    def from_stream(cls, source: BinaryIO) -> Self:
        """
        Parse every section from the start of `source`, which must support
        seek and read. The caller keeps ownership of `source`.
        """
        bank = cls()
        size = source_size(source)
        source.seek(0)
        while True:
            offset = source.tell()
            header = SectionHeader.from_stream(source)
            if header == None:
                break
            body_end = offset + SECTION_HEADER_BYTES + header.length
            if body_end > size:
                logger.error(
                    f"{header.get_name()} at offset {offset} is truncated")
                raise ValueError(
                    f"Truncated {header.get_name()} section at offset "
                    f"{offset}: declares {header.length} bytes, "
                    f"{size - offset - SECTION_HEADER_BYTES} available"
                )
            section = header.new_section(source, bank.data_index)
            bank._add_section(section, offset)
            logger.debug(f"Read section {section} at offset {offset}")
        return bank

    def _add_section(self, section, offset: int):
        attr = None
        match section.header.tag:
            case b"BKHD":
                attr = "bank_header"
            case b"DIDX":
                attr = "data_index"
            case b"DATA":
                attr = "data"
            case b"HIRC":
                attr = "hierarchy"
        if attr != None:
            if getattr(self, attr) != None:
                raise ValueError(
                    f"Repeated {section.header.get_name()} section at offset "
                    f"{offset}"
                )
            setattr(self, attr, section)
        self.sections.append(section)

    def close(self):
        if self._file != None:
            self._file.close()
            self._file = None

    def __enter__(self):
        return self

    def __exit__(self, *_):
        self.close()

    def wems(self) -> tuple[Wem, ...]:
        if self.data == None:
            return ()
        return tuple(self.data.wems)

    def get_wem_id(self, index: int) -> int:
        if self.data_index == None or not 0 <= index < self.data_index.get_wem_count():
            raise IndexError(
                f"Wem index {index} is out of range; the bank has "
                f"{len(self.wems())} wems"
            )
        return self.data_index.wem_ids[index]

    def replace_wems(self, *rs: ReplacementWem):
        if len(rs) == 0:
            return
        if self.data == None:
            raise IndexError("The bank has no DATA section to replace wems in")
        self.data.replace_wems(*rs)

    def loop_of(self, index: int) -> LoopValue:
        wem_id = self.get_wem_id(index)
        if self.hierarchy == None:
            return LoopValue(False, 0)
        return self.hierarchy.get_loop(wem_id)

    def replace_loop_of(self, index: int, loop: LoopValue):
        wem_id = self.get_wem_id(index)
        if self.hierarchy == None:
            raise KeyError(f"Wem {wem_id} has no sound object to carry a loop")
        self.hierarchy.replace_loop_of(wem_id, loop)
        logger.info(f"Set loop of wem {wem_id} at index {index} to {loop}")

    def write_to(self, sink: BinaryIO) -> int:
        written = 0
        for section in self.sections:
            written += section.write_to(sink)
        return written

    def to_file(self, path: str) -> int:
        """
        Write through a temporary file in the destination directory that
        replaces `path` only once every byte has been written.
        """
        directory = os.path.dirname(os.path.abspath(path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                written = self.write_to(f)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"Wrote {written} bytes to {path}")
        return written

    def __str__(self):
        return "".join([f"{section}\n" for section in self.sections])
