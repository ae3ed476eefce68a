"""
Unit tests for the application entry point's argument parsing.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from main import parse_args


class TestParseArgs(unittest.TestCase):

    def test_defaults(self):
        args = parse_args([])
        self.assertEqual(args.paths, [])
        self.assertEqual(args.peers, 1)
        self.assertIsNone(args.name)

    def test_paths_and_peers(self):
        args = parse_args(["scan1", "scan2/", "--peers", "2", "--name", "dr_who"])
        self.assertEqual(args.paths, ["scan1", "scan2/"])
        self.assertEqual(args.peers, 2)
        self.assertEqual(args.name, "dr_who")


if __name__ == "__main__":
    unittest.main()
