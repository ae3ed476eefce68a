"""
Unit tests for the file reader and the fan-in read join.
"""

import os
import sys
import tempfile
import unittest
from io import BytesIO

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.collaboration import InMemoryCloudStorage
from core.file_reader import FileReader, ReadJoin, convert_data
from core.image_file_record import FileRef


class TestReadJoin(unittest.TestCase):
    """Test cases for ReadJoin."""

    def test_fires_once_after_all_tokens(self):
        calls = []
        join = ReadJoin(3, calls.append)
        tokens = [join.token() for _ in range(3)]

        tokens[2].resolve("c")
        tokens[0].resolve("a")
        self.assertEqual(calls, [])
        self.assertEqual(join.pending, 1)

        tokens[1].resolve("b")
        self.assertEqual(calls, [{0: "a", 1: "b", 2: "c"}])

    def test_token_resolves_only_once(self):
        calls = []
        join = ReadJoin(2, calls.append)
        first, second = join.token("x"), join.token("y")
        first.resolve(1)
        first.resolve(2)
        self.assertEqual(calls, [])
        second.resolve(3)
        self.assertEqual(calls, [{"x": 1, "y": 3}])

    def test_zero_expected_fires_immediately(self):
        calls = []
        join = ReadJoin(0, calls.append)
        self.assertTrue(join.fired)
        self.assertEqual(calls, [{}])


class TestFileReader(unittest.TestCase):
    """Test cases for FileReader."""

    def setUp(self):
        self.reader = FileReader()
        self.failures = []
        self.reader.read_failed.connect(lambda url, message: self.failures.append(url))

    def read(self, file_ref, mode="bytes"):
        results = []
        self.reader.read(file_ref, mode, results.append)
        self.assertEqual(len(results), 1)
        return results[0]

    def test_read_bytes_handle(self):
        self.assertEqual(self.read(FileRef("a.json", "a/a.json", handle=b'{"x": 1}'), "text"), '{"x": 1}')

    def test_read_file_object(self):
        handle = BytesIO(b"abc")
        handle.read()
        self.assertEqual(self.read(FileRef("a.bin", "a/a.bin", handle=handle)), b"abc")

    def test_read_path(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = os.path.join(tmp_dir, "v.nii")
            with open(path, "wb") as f:
                f.write(b"data")
            self.assertEqual(self.read(FileRef("v.nii", path, handle=path)), b"data")

    def test_missing_path_reports_none(self):
        result = self.read(FileRef("v.nii", "/nonexistent/v.nii", handle="/nonexistent/v.nii"))
        self.assertIsNone(result)
        self.assertEqual(self.failures, ["/nonexistent/v.nii"])

    def test_cloud_read(self):
        storage = InMemoryCloudStorage()
        stored = []
        storage.write_file("dir/v.nii", b"cloud", stored.append)
        reader = FileReader(storage)
        results = []
        reader.read(FileRef("v.nii", "a/v.nii", remote=True, cloud_id=stored[0]["id"]), "bytes", results.append)
        self.assertEqual(results, [b"cloud"])

    def test_missing_cloud_object(self):
        reader = FileReader(InMemoryCloudStorage())
        results = []
        reader.read(FileRef("v.nii", "a/v.nii", remote=True, cloud_id="blob-99"), "bytes", results.append)
        self.assertEqual(results, [None])

    def test_unknown_mode(self):
        with self.assertRaises(ValueError):
            self.reader.read(FileRef("a", "a", handle=b""), "pixels", lambda data: None)

    def test_read_all_keeps_order(self):
        refs = [FileRef(f"s{i}.dcm", f"a/s{i}.dcm", handle=bytes([i])) for i in range(3)]
        results = []
        self.reader.read_all(refs, "bytes", results.append)
        self.assertEqual(results, [[b"\x00", b"\x01", b"\x02"]])

    def test_data_url(self):
        self.assertEqual(convert_data(b"\x89PNG", "data_url", "t.png"), "data:image/png;base64,iVBORw==")


if __name__ == '__main__':
    unittest.main()
