import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from funnelcore.bindings import is_binding, resolve, resolve_all
from funnelcore.node_model import DataRef, Node, NodeList, collect_bindings, parse_node


class TestBindings(unittest.TestCase):
    def test_literal_passes_through(self) -> None:
        self.assertEqual(resolve("Continue", {"Continue": "x"}), "Continue")
        self.assertEqual(resolve(12, {}), 12)
        self.assertIsNone(resolve(None, {}))

    def test_binding_reads_exact_key(self) -> None:
        self.assertEqual(resolve("_title_text", {"_title_text": "Hello"}), "Hello")

    def test_missing_binding_is_none(self) -> None:
        self.assertIsNone(resolve("_title_text", {}))
        self.assertIsNone(resolve("_title_text", None))
        self.assertIsNone(resolve("_title_text", ["_title_text"]))

    def test_binding_can_resolve_to_structures(self) -> None:
        items = [{"label": "A"}]
        self.assertIs(resolve("_items", {"_items": items}), items)

    def test_resolve_all(self) -> None:
        attrs = {"text": "_title", "fixed": True, "width": "md"}
        self.assertEqual(
            resolve_all(attrs, {"_title": "Hi"}),
            {"text": "Hi", "fixed": True, "width": "md"},
        )
        self.assertEqual(resolve_all(None, {}), {})

    def test_is_binding(self) -> None:
        self.assertTrue(is_binding("_x"))
        self.assertFalse(is_binding("x_"))
        self.assertFalse(is_binding(None))


class TestNodeModel(unittest.TestCase):
    def test_component_wins_over_type(self) -> None:
        node = parse_node({"component": "Box", "type": "Text"})
        self.assertEqual(node.kind, "Box")
        self.assertEqual(parse_node({"type": "Text"}).kind, "Text")

    def test_non_object_is_kindless(self) -> None:
        self.assertEqual(parse_node("Box"), Node(kind=None))
        self.assertIsNone(parse_node({"props": {}}).kind)

    def test_list_children_parse_recursively(self) -> None:
        node = parse_node(
            {
                "component": "Page",
                "children": [{"component": "Title", "props": {"text": "_title_text"}}, {"component": "Gap"}],
            }
        )
        self.assertIsInstance(node.children, NodeList)
        self.assertEqual([child.kind for child in node.children.nodes], ["Title", "Gap"])
        self.assertEqual(node.children.nodes[0].attributes, {"text": "_title_text"})

    def test_string_children_are_data_refs(self) -> None:
        node = parse_node({"component": "LinksBox", "children": "_footer_links"})
        self.assertEqual(node.children, DataRef("_footer_links"))

    def test_missing_children(self) -> None:
        self.assertIsNone(parse_node({"component": "Gap"}).children)
        self.assertIsNone(parse_node({"component": "Gap", "children": ""}).children)

    def test_collect_bindings_ordered_and_unique(self) -> None:
        template = {
            "component": "Page",
            "props": {"width": "md"},
            "children": [
                {"component": "Title", "props": {"text": "_title_text"}},
                {"component": "Text", "props": {"text": "_text", "html": "_title_text"}},
                {"component": "LinksBox", "children": "_footer_links"},
            ],
        }
        self.assertEqual(collect_bindings(template), ["_title_text", "_text", "_footer_links"])


if __name__ == "__main__":
    unittest.main()
