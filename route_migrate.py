"""Event routing migration after page paths are reassigned.

Routing entries point at pages by path number, and path numbers change on
every structural edit. Two authoring patterns are told apart:

- a *sequential* route targets the owning page's successor
  (``owner_path + 1``) and keeps meaning "the next page", so it is
  re-pointed at the owner's new successor;
- a *custom* route (and every conditional branch target) names one specific
  page, so it follows that page to its new path.

Ownership is derived from page data: a page owns an event when one of its
top-level ``template_data`` values equals the event name.
"""

from __future__ import annotations

import copy
from typing import Any, Dict

Pages = Dict[str, Any]
Routing = Dict[str, Any]


def _path_key(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return int(text)
    return None


def _page_path(pages: Pages, key: str | None) -> str | None:
    if key is None:
        return None
    page = pages.get(key)
    if not isinstance(page, dict):
        return None
    return _path_key(page.get("path"))


def build_path_map(old_pages: Pages, new_pages: Pages) -> Dict[str, str]:
    """Old path -> new path for every surviving page whose path changed."""
    path_map: Dict[str, str] = {}
    for key in old_pages:
        if key not in new_pages:
            continue
        old_path = _page_path(old_pages, key)
        new_path = _page_path(new_pages, key)
        if old_path is None or new_path is None or old_path == new_path:
            continue
        path_map[old_path] = new_path
    return path_map


def build_owner_map(pages: Pages, routing: Routing) -> Dict[str, str]:
    """Event name -> key of the page whose data references it.

    When several pages reference one event, the last in collection order
    wins.
    """
    owners: Dict[str, str] = {}
    if not isinstance(routing, dict):
        return owners
    for key, page in pages.items():
        if not isinstance(page, dict):
            continue
        data = page.get("template_data")
        if not isinstance(data, dict):
            continue
        for value in data.values():
            if isinstance(value, str) and value in routing:
                owners[value] = key
    return owners


def migrate_routes(old_pages: Pages, new_pages: Pages, routing: Routing) -> dict:
    """Rewrite routing targets for a single structural edit.

    ``old_pages`` is the collection before the edit and ``new_pages`` the
    collection after reindexing. Returns ``{"routing", "sequential",
    "custom"}``; counts only include values that actually changed. Targets
    that no longer map to a page are left untouched.
    """
    if not isinstance(routing, dict) or not routing:
        return {"routing": routing, "sequential": 0, "custom": 0}

    path_map = build_path_map(old_pages, new_pages)
    owners = build_owner_map(old_pages, routing)
    new_routing = copy.deepcopy(routing)
    sequential = 0
    custom = 0

    for event_name, entry in new_routing.items():
        if not isinstance(entry, dict):
            continue
        route = entry.get("route")
        if not isinstance(route, dict):
            continue

        target = route.get("to")
        target_key = _path_key(target)
        if target_key is not None:
            owner = owners.get(event_name)
            owner_old = _as_int(_page_path(old_pages, owner))
            owner_new = _as_int(_page_path(new_pages, owner))
            target_num = _as_int(target_key)
            if owner_old is not None and owner_new is not None and target_num == owner_old + 1:
                rewritten = str(owner_new + 1)
                if rewritten != target_key:
                    route["to"] = rewritten
                    sequential += 1
            elif target_key in path_map:
                route["to"] = path_map[target_key]
                custom += 1

        conditions = route.get("conditions")
        if isinstance(conditions, list):
            for cond in conditions:
                if not isinstance(cond, dict):
                    continue
                cond_key = _path_key(cond.get("target"))
                if cond_key is not None and cond_key in path_map:
                    cond["target"] = path_map[cond_key]

    return {"routing": new_routing, "sequential": sequential, "custom": custom}
