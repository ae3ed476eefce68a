"""
Unit tests for series information extraction.

Tests DICOM header parsing, sidecar parsing, volume geometry and the info
overlay text.
"""

import json
import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.dicom_info import (build_info_overlay, dicom_volume_geometry, format_slice_text,
                             dicom_info_from_dataset, format_voxel_sizes, parse_sidecar_info,
                             read_dicom_header)
from fakes import make_dicom_bytes


class TestDicomHeader(unittest.TestCase):
    """Test cases for DICOM header parsing."""

    def setUp(self):
        self.data = make_dicom_bytes(
            PatientName="Doe^Jane", PatientID="P-001", PatientBirthDate="19800101",
            PatientSex="F", SeriesDescription="T1 AXIAL", Manufacturer="ACME",
            StudyDate="20240102", Rows=256, Columns=192, PixelSpacing=[0.5, 0.75],
            SliceThickness=2.0,
        )

    def test_dicom_info_from_header(self):
        info = dicom_info_from_dataset(read_dicom_header(self.data))
        self.assertEqual(info["patient_name"], "Doe^Jane")
        self.assertEqual(info["patient_id"], "P-001")
        self.assertEqual(info["series_description"], "T1 AXIAL")
        self.assertEqual(info["patient_age"], "")

    def test_volume_geometry(self):
        dimensions, spacing = dicom_volume_geometry(read_dicom_header(self.data), 40)
        self.assertEqual(dimensions, (192, 256, 40))
        self.assertEqual(spacing, (0.75, 0.5, 2.0))

    def test_geometry_missing_tags(self):
        dimensions, spacing = dicom_volume_geometry(read_dicom_header(make_dicom_bytes(PatientName="X")), 3)
        self.assertIsNone(dimensions)
        self.assertIsNone(spacing)

    def test_empty_data_raises(self):
        with self.assertRaises(Exception):
            read_dicom_header(b"")


class TestSidecarInfo(unittest.TestCase):

    def test_parse_sidecar(self):
        text = json.dumps({
            "PatientName": "Doe^John",
            "SeriesDescription": "DTI",
            "mri_info": {"orientation": "LPS", "primarySliceDirection": "axial",
                         "dimensions": "128 x 128 x 60", "voxelSizes": "2, 2, 2"},
        })
        info = parse_sidecar_info(text)
        self.assertEqual(info["patient_name"], "Doe^John")
        self.assertEqual(info["orientation"], "LPS")
        self.assertEqual(info["primary_slice_direction"], "axial")
        self.assertEqual(info["patient_id"], "")

    def test_invalid_json_raises(self):
        with self.assertRaises(ValueError):
            parse_sidecar_info("{not json")

    def test_non_object_json(self):
        info = parse_sidecar_info("[1, 2]")
        self.assertEqual(info["patient_name"], "")
        self.assertEqual(info["dimensions"], "")


class TestInfoOverlay(unittest.TestCase):

    def test_slice_text(self):
        self.assertEqual(format_slice_text(2, 20), "slice: 3/20")

    def test_voxel_sizes(self):
        self.assertEqual(format_voxel_sizes([1.0, 0.9375, 2.5]), "1.000, 0.9375, 2.500")

    def test_overlay_without_info(self):
        overlay = build_info_overlay(None, 0, 10)
        self.assertEqual(overlay["bottom_left"], "slice: 1/10")
        self.assertEqual(overlay["top_left"], "")
        self.assertEqual(overlay["top_right"], "")

    def test_overlay_with_dicom_info(self):
        info = {"patient_name": "Doe^Jane", "patient_id": "P-001", "patient_birth_date": "19800101",
                "patient_age": "044Y", "patient_sex": "F", "series_description": "T1",
                "manufacturer": "ACME", "study_date": "20240102"}
        overlay = build_info_overlay(info, 4, 40, dimensions=(192, 256, 40), spacing=(1.0, 1.0, 2.0))

        self.assertEqual(overlay["top_left"].split("\n"),
                         ["Doe^Jane", "P-001", "BIRTHDATE: 19800101", "AGE: 044Y", "SEX: F"])
        lines = overlay["top_right"].split("\n")
        self.assertEqual(lines[0], "SERIES: T1")
        self.assertEqual(lines[3], "192 x 256 x 40")
        self.assertEqual(lines[4], "1.000, 1.000, 2.000")
        self.assertEqual(overlay["bottom_left"], "slice: 5/40")

    def test_overlay_without_age_line(self):
        overlay = build_info_overlay({"patient_name": "X"}, 0, 1)
        self.assertNotIn("AGE:", overlay["top_left"])

    def test_sidecar_dimensions_take_precedence(self):
        info = {"dimensions": "128 x 128 x 60", "voxel_sizes": "2, 2, 2", "orientation": "LPS"}
        overlay = build_info_overlay(info, 0, 60, dimensions=(1, 1, 1), spacing=(9.0, 9.0, 9.0))
        self.assertIn("128 x 128 x 60", overlay["top_right"])
        self.assertIn("2, 2, 2", overlay["top_right"])
        self.assertEqual(overlay["bottom_right"], "LPS")


if __name__ == '__main__':
    unittest.main()
