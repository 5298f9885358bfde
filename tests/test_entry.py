"""Tests for Entry and ListItem."""

import unittest
from datetime import datetime, timezone

from mcpy.entry import Entry, EntryType, ListItem, canonical_name
from mcpy.exceptions import NotFoundError


class TestEntry(unittest.TestCase):
    """Test cases for the Entry value type."""

    def test_directory_names_end_with_slash(self):
        self.assertEqual(Entry.directory("photos").name, "photos/")
        self.assertEqual(Entry.directory("photos//").name, "photos/")

    def test_file_names_never_end_with_slash(self):
        self.assertEqual(Entry.file("a/b.txt/").name, "a/b.txt")

    def test_backslashes_are_normalised(self):
        self.assertEqual(canonical_name("a\\b\\c.txt", EntryType.FILE), "a/b/c.txt")

    def test_key_and_base_name(self):
        entry = Entry.directory("a/b")
        self.assertEqual(entry.key, "a/b")
        self.assertEqual(entry.base_name, "b")
        self.assertTrue(entry.is_directory)
        self.assertFalse(entry.is_file)

    def test_with_name_recanonicalises(self):
        entry = Entry.file("x.txt", size=3, modified_time=datetime(2024, 1, 1, tzinfo=timezone.utc))
        renamed = entry.with_name("root/x.txt")
        self.assertEqual(renamed.name, "root/x.txt")
        self.assertEqual(renamed.size, 3)
        self.assertEqual(entry.name, "x.txt")

    def test_entries_are_immutable(self):
        entry = Entry.file("x")
        with self.assertRaises(AttributeError):
            entry.size = 10

    def test_list_item_ok(self):
        self.assertTrue(ListItem(entry=Entry.file("x")).ok)
        self.assertFalse(ListItem(error=NotFoundError("gone")).ok)


if __name__ == "__main__":
    unittest.main()
