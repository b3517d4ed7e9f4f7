"""Funnel kernel utilities."""

from .bindings import BINDING_PREFIX, is_binding, resolve, resolve_all
from .canonical_json import CanonicalJsonTypeError, canonical_dumps
from .graph_hash import graph_hash, graphs_equal
from .node_model import DataRef, Node, NodeList, collect_bindings, parse_node

__all__ = [
    "BINDING_PREFIX",
    "CanonicalJsonTypeError",
    "DataRef",
    "Node",
    "NodeList",
    "canonical_dumps",
    "collect_bindings",
    "graph_hash",
    "graphs_equal",
    "is_binding",
    "parse_node",
    "resolve",
    "resolve_all",
]
