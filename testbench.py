import unittest

from tests.fileutil_test import TestConfig, TestExportWems
from tests.loop_test import TestReplaceLoopOf
from tests.replace_wem_test import TestReplaceWems
from tests.section_parser_test import TestBankHeaderSection, \
        TestContainerErrors, TestDataIndexSection, TestDataSection, \
        TestSectionHeader
from tests.sound_parser_test import TestPropBundle, TestSoundParser
from tests.soundbank_roundtrip_test import TestSoundBankRoundTrip
from tests.util_test import TestByteRangeView, TestHelpers


if __name__ == "__main__":
    unittest.main()
