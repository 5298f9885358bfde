"""Tests for cat_url."""

import io
import unittest

from mcpy.cat import cat_url
from mcpy.exceptions import IsDirectoryError, NotFoundError
from tests.fixtures.test_data import MemoryStore


class TestCat(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.store.add("s3://bucket/dir/hello.txt", b"hello")

    def test_streams_object(self):
        out = io.BytesIO()
        written = cat_url("s3://bucket/dir/hello.txt", out, self.store.factory)
        self.assertEqual(written, 5)
        self.assertEqual(out.getvalue(), b"hello")

    def test_missing_object(self):
        with self.assertRaises(NotFoundError):
            cat_url("s3://bucket/nope", io.BytesIO(), self.store.factory)

    def test_prefix(self):
        with self.assertRaises(IsDirectoryError):
            cat_url("s3://bucket/dir/", io.BytesIO(), self.store.factory)


if __name__ == "__main__":
    unittest.main()
