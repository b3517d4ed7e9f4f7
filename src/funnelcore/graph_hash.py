"""Content hashes for funnel graphs.

Undo/redo and the audit log compare graphs by these hashes, so they change
whenever a value or the order of pages changes.
"""

from __future__ import annotations

import hashlib
from typing import Any

from .canonical_json import canonical_dumps

HASH_PREFIX = "sha256:"


def graph_hash(graph: Any) -> str:
    return HASH_PREFIX + hashlib.sha256(canonical_dumps(graph).encode("utf-8")).hexdigest()


def graphs_equal(left: Any, right: Any) -> bool:
    return canonical_dumps(left) == canonical_dumps(right)
