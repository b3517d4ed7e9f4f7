"""Node tree model for funnel templates.

Templates are stored as raw JSON objects::

    {"component": "Page", "props": {"width": "md"}, "children": [...]}

``type`` is accepted as a legacy alias of ``component``. ``children`` is
either a list of nested nodes or a string that refers to page data (for
example ``"_footer_links"``), in which case the resolved value is handed to
the node's renderer as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

from .bindings import is_binding


@dataclass(frozen=True)
class NodeList:
    nodes: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class DataRef:
    ref: str


NodeChildren = Union[NodeList, DataRef, None]


@dataclass(frozen=True)
class Node:
    kind: str | None
    attributes: Dict[str, Any] = field(default_factory=dict)
    children: NodeChildren = None


def _kind_of(raw: dict) -> str | None:
    for key in ("component", "type"):
        value = raw.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def parse_node(raw: Any) -> Node:
    if not isinstance(raw, dict):
        return Node(kind=None)
    props = raw.get("props")
    attributes = dict(props) if isinstance(props, dict) else {}
    children_raw = raw.get("children")
    children: NodeChildren = None
    if isinstance(children_raw, list):
        children = NodeList(tuple(parse_node(child) for child in children_raw))
    elif isinstance(children_raw, str) and children_raw:
        children = DataRef(children_raw)
    return Node(kind=_kind_of(raw), attributes=attributes, children=children)


def _walk_bindings(node: Node, found: List[str]) -> None:
    for value in node.attributes.values():
        if is_binding(value) and value not in found:
            found.append(value)
    if isinstance(node.children, DataRef):
        if is_binding(node.children.ref) and node.children.ref not in found:
            found.append(node.children.ref)
    elif isinstance(node.children, NodeList):
        for child in node.children.nodes:
            _walk_bindings(child, found)


def collect_bindings(template: Any) -> list[str]:
    """Binding keys used by a template, in first-use order."""
    node = template if isinstance(template, Node) else parse_node(template)
    found: List[str] = []
    _walk_bindings(node, found)
    return found
