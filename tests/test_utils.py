import os
import tempfile
import unittest

from fieldbits._utils import *
from fieldbits.layout import PredicateWarning


class LinterOptionsTestCase(unittest.TestCase):
    def write_source(self, first_line):
        with tempfile.NamedTemporaryFile("w", suffix=".py", delete=False) as f:
            f.write(first_line + "\n\nimport ctypes\n")
        self.addCleanup(os.unlink, f.name)
        return f.name

    def test_options(self):
        filename = self.write_source("# fieldbits: PredicateWarning=no, depth=16")
        self.assertEqual(get_linter_options(filename), {
            "PredicateWarning": "no",
            "depth": "16",
        })

    def test_no_options(self):
        filename = self.write_source("import sys")
        self.assertEqual(get_linter_options(filename), {})
        self.assertEqual(get_linter_options(filename + ".missing"), {})

    def test_malformed(self):
        filename = self.write_source("# fieldbits: PredicateWarning")
        self.assertEqual(get_linter_options(filename), {})

    def test_warning_disabled(self):
        for value in ("no", "0", "disable"):
            with self.subTest(value=value):
                filename = self.write_source(f"# fieldbits: PredicateWarning={value}")
                self.assertFalse(warning_enabled(filename, PredicateWarning))

    def test_warning_enabled(self):
        filename = self.write_source("# fieldbits: PredicateWarning=yes, UserWarning=no")
        self.assertTrue(warning_enabled(filename, PredicateWarning))
        self.assertFalse(warning_enabled(filename, UserWarning))
        filename = self.write_source("import sys")
        self.assertTrue(warning_enabled(filename, PredicateWarning))


class FinalTestCase(unittest.TestCase):
    def test_final(self):
        @final
        class Sealed:
            pass
        with self.assertRaisesRegex(TypeError, r"^Subclassing .+\.Sealed is not supported$"):
            class Unsealed(Sealed):
                pass
