"""
Tests for the MarkdownSink class.
"""
import unittest
import sys
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from services.sink import MarkdownSink
from exceptions import InvalidInputError, SinkWriteError


class TestMarkdownSink(unittest.TestCase):
    """Test cases for the MarkdownSink class."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.output_dir = Path(self.tmp.name) / "markdown"
        self.sink = MarkdownSink(output_dir=self.output_dir, collision_policy="suffix")
        self.sink.prepare()

    def tearDown(self):
        self.tmp.cleanup()

    def test_prepare_creates_directory(self):
        self.assertTrue(self.output_dir.is_dir())

    def test_invalid_policy(self):
        with self.assertRaises(InvalidInputError):
            MarkdownSink(output_dir=self.output_dir, collision_policy="append")

    def test_write_file(self):
        path = self.sink.write("Goroutines", "# Goroutines\n")
        self.assertEqual(path, self.output_dir / "Goroutines.md")
        self.assertEqual(path.read_text(encoding="utf-8"), "# Goroutines\n")
        self.assertEqual(self.sink.written_count, 1)

    def test_filename_sanitized(self):
        """Path separators and reserved characters never reach the file system."""
        name = MarkdownSink.filename_for("Channels / Select: part 1?")
        self.assertTrue(name.endswith(".md"))
        self.assertNotIn("/", name)
        self.assertNotIn(":", name)
        self.assertNotIn("?", name)

    def test_empty_key_fallback(self):
        self.assertEqual(MarkdownSink.filename_for(""), "untitled.md")
        self.assertEqual(MarkdownSink.filename_for("///"), "___.md")

    def test_suffix_on_collision(self):
        first = self.sink.write("a", "first")
        second = self.sink.write("a", "second")
        self.assertEqual(first.name, "a.md")
        self.assertEqual(second.name, "a (2).md")
        self.assertEqual(first.read_text(encoding="utf-8"), "first")
        self.assertEqual(second.read_text(encoding="utf-8"), "second")

    def test_overwrite_on_collision(self):
        sink = MarkdownSink(output_dir=self.output_dir, collision_policy="overwrite")
        sink.write("a", "first")
        path = sink.write("a", "second")
        self.assertEqual(path.name, "a.md")
        self.assertEqual(path.read_text(encoding="utf-8"), "second")

    def test_write_error(self):
        with patch("builtins.open", side_effect=PermissionError("denied")):
            with self.assertRaises(SinkWriteError):
                self.sink.write("a", "text")

    def test_prepare_error(self):
        blocker = Path(self.tmp.name) / "file"
        blocker.write_text("x", encoding="utf-8")
        sink = MarkdownSink(output_dir=blocker / "sub")
        with self.assertRaises(SinkWriteError):
            sink.prepare()


if __name__ == '__main__':
    unittest.main()
