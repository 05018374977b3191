import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from hookgate.hooks.errors import MatchError
from hookgate.hooks.matcher import compile_matcher, match


class MatcherTests(unittest.TestCase):
    def test_exact_name(self) -> None:
        self.assertTrue(match("write_file", "write_file"))
        self.assertFalse(match("write_file", "read_file"))
        self.assertFalse(match("write_file", "write_file_v2"))

    def test_empty_and_absent_pattern_match_everything(self) -> None:
        for pattern in (None, "", "   ", "*"):
            with self.subTest(pattern=pattern):
                self.assertTrue(match(pattern, "write_file"))
                self.assertTrue(compile_matcher(pattern).matches_all)

    def test_glob_fallback(self) -> None:
        self.assertTrue(match("write_*", "write_file"))
        self.assertTrue(match("*_file", "read_file"))
        self.assertTrue(match("read_fil?", "read_file"))
        self.assertTrue(match("[rw]*_file", "read_file"))
        self.assertFalse(match("write_*", "read_file"))

    def test_exact_equality_wins_over_glob(self) -> None:
        self.assertTrue(match("shell[1]", "shell[1]"))
        self.assertFalse(match("shell[1]", "shell1x"))

    def test_alternatives(self) -> None:
        self.assertTrue(match("write_file|replace", "replace"))
        self.assertTrue(match("write_file|run_*", "run_shell_command"))
        self.assertFalse(match("write_file|replace", "read_file"))

    def test_invalid_patterns_never_match_and_never_raise(self) -> None:
        for pattern in ("[z-a]", "write_[file", 42, "bad\npattern"):
            with self.subTest(pattern=pattern):
                self.assertFalse(match(pattern, "write_file"))
                with self.assertRaises(MatchError):
                    compile_matcher(pattern)

    def test_compiled_matcher_is_reusable(self) -> None:
        compiled = compile_matcher("write_*|replace")
        self.assertEqual(compiled.alternatives, ("write_*", "replace"))
        self.assertTrue(compiled.matches("write_file"))
        self.assertTrue(compiled.matches("replace"))
        self.assertFalse(compiled.matches("glob"))


if __name__ == "__main__":
    unittest.main()
