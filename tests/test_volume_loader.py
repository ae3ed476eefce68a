"""
Unit tests for the record volume loader.

Tests plain volumes, DICOM series with first-slice header parsing, zipped
series split over several chunks and read failures.
"""

import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.file_classifier import classify
from core.volume_loader import VolumeLoader
from core.zip_archive import chunk_urls, zip_files
from fakes import DeferredFileReader, local, make_dicom_bytes


def dicom_slice(number):
    pixels = np.full((4, 3), number, dtype=np.uint16)
    return make_dicom_bytes(pixels, SeriesDescription="DWI", InstanceNumber=number,
                            PixelSpacing=[1.0, 1.0], SliceThickness=3.0)


class TestVolumeLoader(unittest.TestCase):
    """Test cases for VolumeLoader."""

    def setUp(self):
        self.reader = DeferredFileReader()
        self.loader = VolumeLoader(self.reader)
        self.results = []

    def load(self, record):
        self.loader.load(record, self.results.append)

    def test_plain_volume(self):
        record = classify([local("a/brain.nii.gz", b"NIFTI")])[0]
        self.load(record)
        self.reader.flush()

        volume = self.results[0]
        self.assertEqual(volume.record_id, record.id)
        self.assertEqual(volume.file_names, ["brain.nii.gz"])
        self.assertEqual(volume.file_data, [b"NIFTI"])
        self.assertIsNone(volume.dimensions)

    def test_dicom_header_parsed_from_first_slice(self):
        record = classify([local(f"a/s{i}.dcm", dicom_slice(i)) for i in (1, 2, 3)])[0]
        self.load(record)
        self.reader.flush(reverse=True)

        volume = self.results[0]
        self.assertEqual(volume.file_names, ["s1.dcm", "s2.dcm", "s3.dcm"])
        self.assertEqual(volume.dimensions, (3, 4, 3))
        self.assertEqual(volume.spacing, (1.0, 1.0, 3.0))
        self.assertEqual(record.dicom_info["series_description"], "DWI")

    def test_zipped_series_unzipped_and_sorted(self):
        slices = [(f"s{i}.dcm", dicom_slice(i)) for i in (1, 2, 3, 4)]
        chunks = zip_files(slices, max_bytes=2 * max(len(data) for _, data in slices))
        self.assertEqual(len(chunks), 2)
        urls = chunk_urls("a/s1.dcm.zip", len(chunks))
        # The second chunk carries the later slices but is listed first
        record = classify([local(urls[1], chunks[1]), local(urls[0], chunks[0])])[0]
        self.assertEqual(record.image_kind, "dicomSeriesZipped")

        self.load(record)
        self.reader.flush()

        volume = self.results[0]
        self.assertEqual(volume.file_names, ["s1.dcm", "s2.dcm", "s3.dcm", "s4.dcm"])
        self.assertEqual(volume.dimensions, (3, 4, 4))
        self.assertEqual(record.dicom_info["series_description"], "DWI")

    def test_bad_zip(self):
        record = classify([local("a/s1.dcm.zip", b"not a zip")])[0]
        self.load(record)
        self.reader.flush()
        self.assertEqual(self.results, [None])

    def test_unreadable_file(self):
        missing = os.path.join(os.path.dirname(__file__), "no-such-dir", "v.nii")
        record = classify([{"url": "a/v.nii", "file": missing}])[0]
        self.load(record)
        self.reader.flush()
        self.assertEqual(self.results, [None])

    def test_unparseable_header_still_loads(self):
        record = classify([local("a/s1.dcm", b""), local("a/s2.dcm", b"")])[0]
        self.load(record)
        self.reader.flush()
        volume = self.results[0]
        self.assertIsNone(volume.dimensions)
        self.assertIsNone(record.dicom_info)


if __name__ == '__main__':
    unittest.main()
