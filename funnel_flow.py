"""Page-to-page connection summary derived from event routing."""

from __future__ import annotations

from typing import Any, Dict, List


def _collect_fired(value: Any, routing: dict, fired: List[str]) -> None:
    if isinstance(value, str):
        if value in routing and value not in fired:
            fired.append(value)
    elif isinstance(value, list):
        for item in value:
            _collect_fired(item, routing, fired)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_fired(item, routing, fired)


def _path_number(page: Any) -> int:
    path = page.get("path") if isinstance(page, dict) else None
    if isinstance(path, str) and path.isdigit():
        return int(path)
    if isinstance(path, int) and not isinstance(path, bool):
        return path
    return 0


def build_flow(graph: dict) -> dict:
    """Nodes in path order plus the connections their events create.

    Unlike route migration, event references are searched at any depth of
    ``template_data`` (option lists carry their own ``event`` values).
    """
    pages = graph.get("pages") if isinstance(graph, dict) else None
    routing = graph.get("event_routing") if isinstance(graph, dict) else None
    if not isinstance(pages, dict):
        pages = {}
    if not isinstance(routing, dict):
        routing = {}

    ordered = sorted(pages.items(), key=lambda item: _path_number(item[1]))
    path_to_id: Dict[str, str] = {}
    for page_id, page in ordered:
        if isinstance(page, dict) and page.get("path") is not None:
            path_to_id[str(page.get("path"))] = page_id

    nodes = []
    connections = []
    for page_id, page in ordered:
        fired: List[str] = []
        data = page.get("template_data") if isinstance(page, dict) else None
        if isinstance(data, dict):
            _collect_fired(data, routing, fired)
        nodes.append(
            {
                "id": page_id,
                "name": page.get("name") if isinstance(page, dict) else None,
                "path": page.get("path") if isinstance(page, dict) else None,
                "template": page.get("template") if isinstance(page, dict) else None,
                "events": fired,
            }
        )
        for event_name in fired:
            route = routing.get(event_name, {}).get("route") if isinstance(routing.get(event_name), dict) else None
            if not isinstance(route, dict):
                continue
            target = route.get("to")
            to_id = path_to_id.get(str(target)) if target not in (None, "") else None
            if to_id:
                connections.append({"from_id": page_id, "to_id": to_id, "event": event_name, "kind": "route"})
            conditions = route.get("conditions")
            if not isinstance(conditions, list):
                continue
            for cond in conditions:
                if not isinstance(cond, dict) or cond.get("target") in (None, ""):
                    continue
                cond_id = path_to_id.get(str(cond.get("target")))
                if cond_id:
                    connections.append({"from_id": page_id, "to_id": cond_id, "event": event_name, "kind": "condition"})

    return {"nodes": nodes, "connections": connections}
