import io
import os
import tempfile
import unittest

from fileutil import replacement_from_file
from log import logger
from soundbank import DataSection
from tests.bank_test_common import REPLACEMENT_CASES, BankTestCase, \
        build_bank, complex_bank, make_wem, parse, reread, section_bytes, \
        serialize
from wwise import ReplacementWem


class TestReplaceWems(BankTestCase):

    def test_replace_wem_cases(self):
        logger.info("Running test_replace_wem_cases...")
        data = complex_bank()
        for case in REPLACEMENT_CASES:
            with self.subTest(case=case.name):
                org = parse(data)
                replaced = parse(data)
                rs, payloads = case.expand()
                replaced.replace_wems(*rs)
                self.assert_replacements_consistent(
                    org, replaced, reread(replaced), payloads)

    def test_replace_recomputes_offsets_and_padding(self):
        data = build_bank([(1, make_wem(1, 10)), (2, make_wem(2, 20)),
                           (3, make_wem(3, 5))])
        bank = parse(data)
        self.assertEqual([w.descriptor.offset for w in bank.wems()], [0, 16, 48])

        bank.replace_wems(ReplacementWem(0, make_wem(7, 17)))

        self.assertEqual([w.descriptor.offset for w in bank.wems()], [0, 32, 64])
        self.assertEqual([w.padding.size() for w in bank.wems()], [15, 12, 0])
        self.assertEqual(bank.data.header.length, 69)
        self.assertEqual(bank.data_index.get_descriptor(1).offset, 32)

        # Sound objects keep their own media size, so only DIDX and DATA are
        # compared against a bank built around the new payload.
        expected = parse(build_bank([(1, make_wem(7, 17)), (2, make_wem(2, 20)),
                                     (3, make_wem(3, 5))]))
        self.assertEqual(section_bytes(bank.data_index),
                         section_bytes(expected.data_index))
        self.assertEqual(section_bytes(bank.data), section_bytes(expected.data))

    def test_replace_keeps_other_sections(self):
        org = parse(complex_bank())
        bank = parse(complex_bank())
        bank.replace_wems(ReplacementWem(1, make_wem(5, 900)))
        for a, b in zip(org.sections, bank.sections):
            if a.header.tag in (b"DIDX", b"DATA"):
                continue
            self.assertEqual(section_bytes(a), section_bytes(b))

    def test_replaced_bank_written_twice_is_equal(self):
        bank = parse(complex_bank())
        bank.replace_wems(ReplacementWem(2, make_wem(8, 123)),
                          ReplacementWem(5, make_wem(9, 3)))
        self.assertEqual(serialize(bank), serialize(bank))

    def test_replace_from_stream_position(self):
        source = io.BytesIO(b"HEADER" + make_wem(4, 64))
        source.seek(6)
        bank = parse(complex_bank())
        bank.replace_wems(ReplacementWem(0, source, 64))
        self.assertEqual(bank.wems()[0].read(), make_wem(4, 64))

    def test_replace_from_file(self):
        payload = make_wem(6, 777)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "new.wem")
            with open(path, "wb") as f:
                f.write(payload)
            r = replacement_from_file(3, path)
            try:
                self.assertEqual(r.length, len(payload))
                bank = parse(complex_bank())
                bank.replace_wems(r)
                self.assertEqual(reread(bank).wems()[3].read(), payload)
            finally:
                r.source.close()

    def test_replace_nothing(self):
        data = complex_bank()
        bank = parse(data)
        bank.replace_wems()
        self.assertEqual(serialize(bank), data)

    def test_replace_out_of_range(self):
        data = complex_bank()
        bank = parse(data)
        with self.assertRaises(IndexError):
            bank.replace_wems(ReplacementWem(7, b"\x00"))
        with self.assertRaises(IndexError):
            bank.replace_wems(ReplacementWem(-1, b"\x00"))
        self.assertEqual(serialize(bank), data)

    def test_replace_is_validated_before_changes(self):
        data = complex_bank()
        bank = parse(data)
        with self.assertRaises(ValueError):
            bank.replace_wems(ReplacementWem(0, b"\x01" * 4),
                              ReplacementWem(0, b"\x02" * 8))
        with self.assertRaises(IndexError):
            bank.replace_wems(ReplacementWem(1, b"\x01" * 4),
                              ReplacementWem(99, b"\x02"))
        self.assertEqual(serialize(bank), data)

    def test_replace_without_media(self):
        bank = parse(build_bank([]))
        with self.assertRaises(IndexError):
            bank.replace_wems(ReplacementWem(0, b"\x00"))

    def test_replacement_requires_length(self):
        with self.assertRaises(ValueError):
            ReplacementWem(0, io.BytesIO(b"abc"))

    def test_compute_layout(self):
        self.assertEqual(DataSection.compute_layout([]), [])
        self.assertEqual(DataSection.compute_layout([3]), [(0, 0)])
        self.assertEqual(DataSection.compute_layout([16, 0, 1, 9]),
                         [(0, 0), (16, 0), (16, 15), (32, 0)])
        self.assertEqual(DataSection.compute_layout([5, 5], 4),
                         [(0, 3), (8, 0)])


if __name__ == "__main__":
    unittest.main()
