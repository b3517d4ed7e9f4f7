import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from path_reindex import paths_are_sequential, reindex_pages


class TestPathReindex(unittest.TestCase):
    def test_paths_follow_order(self) -> None:
        pages = {
            "b": {"name": "B", "path": "2"},
            "a": {"name": "A", "path": "1"},
            "c": {"name": "C", "path": "9"},
        }
        out = reindex_pages(pages)
        self.assertEqual(list(out), ["b", "a", "c"])
        self.assertEqual([page["path"] for page in out.values()], ["1", "2", "3"])
        self.assertEqual(out["c"]["name"], "C")

    def test_input_not_mutated(self) -> None:
        pages = {"a": {"path": "5"}}
        reindex_pages(pages)
        self.assertEqual(pages["a"]["path"], "5")

    def test_idempotent_and_reuses_pages(self) -> None:
        pages = {"a": {"path": "3"}, "b": {"path": "1"}}
        once = reindex_pages(pages)
        twice = reindex_pages(once)
        self.assertEqual(once, twice)
        self.assertIs(once["a"], twice["a"])

    def test_empty(self) -> None:
        self.assertEqual(reindex_pages({}), {})
        self.assertTrue(paths_are_sequential({}))

    def test_paths_are_sequential(self) -> None:
        self.assertTrue(paths_are_sequential({"a": {"path": "1"}, "b": {"path": "2"}}))
        self.assertFalse(paths_are_sequential({"a": {"path": "2"}, "b": {"path": "1"}}))


if __name__ == "__main__":
    unittest.main()
