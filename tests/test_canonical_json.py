import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from funnelcore.canonical_json import CanonicalJsonTypeError, canonical_dumps, pretty_dumps
from funnelcore.graph_hash import graph_hash, graphs_equal


class TestCanonicalJson(unittest.TestCase):
    def test_insertion_order_is_kept(self) -> None:
        a = {"b": 1, "a": 2}
        b = {"a": 2, "b": 1}
        self.assertEqual(canonical_dumps(a), '{"b":1,"a":2}')
        self.assertNotEqual(canonical_dumps(a), canonical_dumps(b))

    def test_page_order_changes_output(self) -> None:
        first = {"pages": {"p1": {"path": "1"}, "p2": {"path": "2"}}}
        second = {"pages": {"p2": {"path": "2"}, "p1": {"path": "1"}}}
        self.assertFalse(graphs_equal(first, second))

    def test_list_order_preserved(self) -> None:
        obj = {"list": [2, 1, 3]}
        self.assertEqual(canonical_dumps(obj), '{"list":[2,1,3]}')

    def test_non_ascii_preserved(self) -> None:
        out = canonical_dumps({"name": "café"})
        self.assertIn("café", out)
        self.assertNotIn("\\u", out)

    def test_unsupported_type_raises(self) -> None:
        with self.assertRaises(CanonicalJsonTypeError):
            canonical_dumps({"bad": {1, 2, 3}})

    def test_non_string_key_raises(self) -> None:
        with self.assertRaises(CanonicalJsonTypeError):
            canonical_dumps({1: "a"})

    def test_reject_nan(self) -> None:
        with self.assertRaises(ValueError):
            canonical_dumps({"bad": float("nan")})

    def test_reject_inf(self) -> None:
        with self.assertRaises(ValueError):
            canonical_dumps({"bad": float("-inf")})

    def test_pretty_dumps_uses_four_spaces(self) -> None:
        out = pretty_dumps({"a": {"b": 1}})
        self.assertIn('\n    "a": {\n        "b": 1', out)


class TestGraphHash(unittest.TestCase):
    def test_hash_format(self) -> None:
        h = graph_hash({"a": 1})
        self.assertTrue(h.startswith("sha256:"))
        self.assertEqual(len(h), len("sha256:") + 64)

    def test_hash_differs_for_different_content(self) -> None:
        self.assertNotEqual(graph_hash({"a": 1}), graph_hash({"a": 2}))

    def test_hash_numeric_distinction(self) -> None:
        self.assertNotEqual(graph_hash({"n": 1}), graph_hash({"n": 1.0}))

    def test_equal_values_hash_equal(self) -> None:
        self.assertEqual(graph_hash({"a": [1, {"b": None}]}), graph_hash({"a": [1, {"b": None}]}))


if __name__ == "__main__":
    unittest.main()
