"""Sequential path assignment for the ordered page collection."""

from __future__ import annotations

from typing import Any, Dict

Pages = Dict[str, Any]


def reindex_pages(pages: Pages) -> Pages:
    """Return a new ordered page map with ``path`` set to ``"1".."N"``.

    Paths follow iteration order. Pages whose path is already correct are
    reused as-is, so reindexing an already sequential collection returns
    equal values backed by the same page objects.
    """
    reindexed: Pages = {}
    for index, (key, page) in enumerate(pages.items()):
        path = str(index + 1)
        if isinstance(page, dict) and page.get("path") == path:
            reindexed[key] = page
            continue
        base = page if isinstance(page, dict) else {}
        reindexed[key] = {**base, "path": path}
    return reindexed


def paths_are_sequential(pages: Pages) -> bool:
    for index, page in enumerate(pages.values()):
        if not isinstance(page, dict) or page.get("path") != str(index + 1):
            return False
    return True
