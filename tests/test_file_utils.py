"""
Unit tests for path helpers and local file descriptors.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from utils.file_utils import (get_base_url, get_file_name, local_file_descriptors, str_ends_with,
                              strip_extension, strip_zip_suffix)


class TestPathHelpers(unittest.TestCase):

    def test_base_url_and_name(self):
        self.assertEqual(get_base_url("study/series/s1.dcm"), "study/series/")
        self.assertEqual(get_base_url("s1.dcm"), "")
        self.assertEqual(get_file_name("study/series/s1.dcm"), "s1.dcm")

    def test_suffixes(self):
        self.assertTrue(str_ends_with("A/B.NII.GZ", [".nii.gz"]))
        self.assertEqual(strip_zip_suffix("s1.dcm.ZIP"), "s1.dcm")
        self.assertEqual(strip_extension("a.b/file"), "a.b/file")
        self.assertEqual(strip_extension("a/file.tar.gz"), "a/file.tar")


class TestLocalFileDescriptors(unittest.TestCase):

    def setUp(self):
        self.root = Path(tempfile.mkdtemp())
        (self.root / "series").mkdir()
        for name in ("series/s2.dcm", "series/s1.dcm", "vol.nii", ".hidden"):
            (self.root / name).write_bytes(b"x")

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def test_folder_walked_recursively(self):
        descriptors = local_file_descriptors([str(self.root)])
        names = [get_file_name(d["url"]) for d in descriptors]
        self.assertEqual(sorted(names), ["s1.dcm", "s2.dcm", "vol.nii"])
        for descriptor in descriptors:
            self.assertTrue(os.path.isfile(descriptor["file"]))
            self.assertNotIn("\\", descriptor["url"])

    def test_files_of_one_folder_share_base_url(self):
        descriptors = local_file_descriptors([str(self.root / "series")])
        self.assertEqual(len({get_base_url(d["url"]) for d in descriptors}), 1)

    def test_missing_path_skipped(self):
        self.assertEqual(local_file_descriptors([str(self.root / "missing")]), [])


if __name__ == '__main__':
    unittest.main()
