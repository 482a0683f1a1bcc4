import io
import os
import tempfile
import unittest

from env import get_data_path
from fileutil import list_files_recursive
from log import logger
from soundbank import SoundBank, UnknownSection
from tests.bank_test_common import BANK_ID, BANK_VERSION, BKHD_TRAILER, \
        build_bank, build_object, complex_bank, complex_wems, make_wem, \
        parse, serialize, simple_bank
from wwise_hierarchy import HircEntry, Sound


class TestSoundBankRoundTrip(unittest.TestCase):

    def test_simple_unchanged_file_is_equal(self):
        data = simple_bank()
        self.assertEqual(serialize(parse(data)), data)

    def test_complex_unchanged_file_is_equal(self):
        data = complex_bank()
        self.assertEqual(serialize(parse(data)), data)

    def test_unchanged_write_twice_is_equal(self):
        data = complex_bank()
        bank = parse(data)
        self.assertEqual(serialize(bank), data)
        self.assertEqual(serialize(bank), data)

    def test_unchanged_file_from_disk_written_twice(self):
        data = complex_bank()
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "complex.bnk")
            with open(path, "wb") as f:
                f.write(data)
            with SoundBank.from_file(path) as bank:
                first = os.path.join(tmp, "first.bnk")
                second = os.path.join(tmp, "second.bnk")
                self.assertEqual(bank.to_file(first), len(data))
                self.assertEqual(bank.to_file(second), len(data))
                for out in (first, second):
                    with open(out, "rb") as f:
                        self.assertEqual(f.read(), data)
            self.assertEqual(sorted(os.listdir(tmp)),
                             ["complex.bnk", "first.bnk", "second.bnk"])

    def test_parsed_fields(self):
        wems = complex_wems()
        bank = parse(complex_bank())

        self.assertEqual(bank.bank_header.version, BANK_VERSION)
        self.assertEqual(bank.bank_header.bank_id, BANK_ID)
        self.assertEqual(bank.bank_header.trailing.read_all(), BKHD_TRAILER)

        self.assertEqual(bank.data_index.wem_ids, [w[0] for w in wems])
        self.assertEqual(len(bank.wems()), len(wems))
        for wem, (wem_id, payload) in zip(bank.wems(), wems):
            self.assertEqual(wem.get_id(), wem_id)
            self.assertEqual(wem.read(), payload)
            self.assertIs(wem.descriptor, bank.data_index.descriptors[wem_id])
        self.assertEqual(bank.wems()[-1].padding.size(), 9)

        self.assertEqual(bank.hierarchy.get_object_count(), len(wems) - 1 + 3)
        sounds = [o for o in bank.hierarchy.objects if isinstance(o, Sound)]
        self.assertEqual(len(sounds), len(wems) - 1)
        self.assertEqual(bank.hierarchy.loop_of,
                         {wems[0][0]: 2, wems[4][0]: 0})
        self.assertNotIn(wems[-1][0], bank.hierarchy.wem_to_object)

        self.assertEqual([s.header.tag for s in bank.sections],
                         [b"BKHD", b"DIDX", b"DATA", b"HIRC", b"STID", b"ENVS"])

    def test_reread_is_observably_identical(self):
        org = parse(complex_bank())
        again = parse(serialize(org))
        self.assertEqual(str(org), str(again))
        for a, b in zip(org.wems(), again.wems()):
            self.assertEqual(a.descriptor, b.descriptor)
            self.assertEqual(a.read(), b.read())
            self.assertEqual(a.padding.read_all(), b.padding.read_all())
        self.assertEqual(org.hierarchy.loop_of, again.hierarchy.loop_of)

    def test_unknown_data_preserved(self):
        data = build_bank(
            [(1, make_wem(9, 40))],
            extra_objects=[build_object(0x42, 5, bytes(range(33)))],
            extra_sections=[(b"PLAT", b"Windows\x00"), (b"INIT", b"")],
            hirc_trailing=b"\xde\xad",
        )
        bank = parse(data)
        unknown = [s for s in bank.sections if isinstance(s, UnknownSection)]
        self.assertEqual([s.header.tag for s in unknown], [b"PLAT", b"INIT"])
        self.assertEqual(unknown[0].body.read_all(), b"Windows\x00")
        entry = bank.hierarchy.objects[-1]
        self.assertIs(type(entry), HircEntry)
        self.assertEqual(entry.misc, bytes(range(33)))
        self.assertEqual(bank.hierarchy.trailing, b"\xde\xad")
        self.assertEqual(serialize(bank), data)

    def test_bank_without_media(self):
        data = build_bank([], extra_objects=[build_object(0x04, 1, b"\x00")])
        bank = parse(data)
        self.assertEqual(bank.wems(), ())
        self.assertIsNone(bank.data)
        self.assertEqual(serialize(bank), data)

    def test_empty_source(self):
        bank = parse(b"")
        self.assertEqual(bank.sections, [])
        self.assertEqual(serialize(bank), b"")

    def test_summary(self):
        text = str(parse(simple_bank()))
        self.assertIn(f"BKHD: len(20) version({BANK_VERSION}) id({BANK_ID})", text)
        self.assertIn("DIDX: len(12) wem_count(1) wem_total_size(100)", text)
        self.assertIn("DATA: len(100)", text)
        self.assertIn("HIRC:", text)

    def test_corpus_unchanged_files_are_equal(self):
        data_path = get_data_path()
        if data_path == "" or not os.path.isdir(data_path):
            self.skipTest("BNKDATA is not set")
        logger.critical("Running test_corpus_unchanged_files_are_equal...")
        for path in list_files_recursive(data_path, ".bnk"):
            with self.subTest(path=path), SoundBank.from_file(path) as bank:
                sink = io.BytesIO()
                bank.write_to(sink)
                with open(path, "rb") as f:
                    self.assertEqual(sink.getvalue(), f.read())


if __name__ == "__main__":
    unittest.main()
