"""In-memory funnel graph store with structural edits and undo/redo."""

from __future__ import annotations

import copy
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

from funnelcore.canonical_json import CanonicalJsonTypeError, check_json_value
from funnelcore.graph_hash import graph_hash, graphs_equal

from app.funnel_io import (
    FunnelImportError,
    export_filename,
    page_filename,
    parse_document,
    prepare_export,
    theme_filename,
)
from app.funnel_validate import has_errors, validate_graph
from app.render_engine import KindRegistry, default_registry, render_page, render_template_preview
from funnel_flow import build_flow
from mutation_history import DEFAULT_HISTORY_CAP, MutationHistory
from path_reindex import reindex_pages
from route_eval import resolve_next_path
from route_migrate import migrate_routes


logger = logging.getLogger("funnel.store")

Issue = Dict[str, Any]

RESERVED_TEMPLATES = ("header", "footer")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def _migration_notice(sequential: int, custom: int) -> str | None:
    parts = []
    if sequential > 0:
        parts.append(f"{_plural(sequential, 'route')} follow new order")
    if custom > 0:
        parts.append(f"{_plural(custom, 'custom route')} preserved")
    if not parts:
        return None
    return f"Routing updated: {', '.join(parts)}"


def empty_graph() -> dict:
    return {
        "pages": {},
        "templates": {},
        "layout": {
            "header": {"template": "header", "template_data": {}},
            "footer": {"template": "footer", "template_data": {}},
        },
        "theme": {"colors": {}, "fonts": {}, "spacing": {}, "border_radius": {}, "width": {}, "border": {}},
        "event_routing": {},
    }


class FunnelStore:
    """Owns the current funnel graph.

    Every mutation builds a new top-level dict and commits it; committed
    graphs are never modified afterwards, so the history keeps plain
    references. Callers get deep copies only.
    """

    def __init__(
        self,
        graph: dict | None = None,
        history_cap: int = DEFAULT_HISTORY_CAP,
        registry: KindRegistry | None = None,
    ) -> None:
        base = copy.deepcopy(graph) if isinstance(graph, dict) else {}
        for key, value in empty_graph().items():
            if not isinstance(base.get(key), dict):
                base[key] = value
        self._graph: dict = base
        self._history = MutationHistory(history_cap)
        self._audit: List[dict] = []
        self._registry = registry or default_registry()

    # --- reads ---

    def get_graph(self) -> dict:
        return copy.deepcopy(self._graph)

    def get_page(self, page_id: str) -> dict | None:
        page = self._pages().get(page_id)
        return copy.deepcopy(page) if isinstance(page, dict) else None

    def head(self) -> str:
        return graph_hash(self._graph)

    def list_history(self) -> list[dict]:
        return list(self._audit)

    def history_depth(self) -> dict:
        return self._history.depth()

    # --- envelopes ---

    def _pages(self) -> dict:
        return self._section("pages")

    def _section(self, name: str) -> dict:
        value = self._graph.get(name)
        return value if isinstance(value, dict) else {}

    def _envelope(self, ok: bool, errors: List[Issue] | None = None, notice: str | None = None, **extra: Any) -> dict:
        payload = {
            "ok": ok,
            "errors": errors or [],
            "warnings": [],
            "graph_hash": graph_hash(self._graph),
            "notice": notice,
            "history": self._history.depth(),
        }
        payload.update(extra)
        return payload

    def _reject(self, code: str, message: str, path: str | None = None, notice: str | None = None) -> dict:
        logger.info("funnel_rejected code=%s path=%s", code, path)
        return self._envelope(False, [_issue(code, message, path)], notice or message, changed=False)

    def _audit_entry(self, action: str, from_hash: str | None, to_hash: str, detail: dict | None = None) -> str:
        audit_id = str(uuid.uuid4())
        self._audit.insert(
            0,
            {
                "audit_id": audit_id,
                "action": action,
                "from_hash": from_hash,
                "to_hash": to_hash,
                "detail": detail,
                "at": _now(),
            },
        )
        return audit_id

    def _commit(self, action: str, new_graph: dict, notice: str | None = None, detail: dict | None = None, **extra: Any) -> dict:
        try:
            check_json_value(new_graph)
        except (ValueError, CanonicalJsonTypeError) as exc:
            return self._reject("FUNNEL_VALUE_INVALID", str(exc))
        if graphs_equal(new_graph, self._graph):
            return self._envelope(True, notice=notice, changed=False, audit_id=None, **extra)
        from_hash = graph_hash(self._graph)
        self._history.record(self._graph)
        self._graph = new_graph
        to_hash = graph_hash(new_graph)
        audit_id = self._audit_entry(action, from_hash, to_hash, detail)
        logger.info("funnel_commit action=%s from_hash=%s to_hash=%s", action, from_hash, to_hash)
        return self._envelope(True, notice=notice, changed=True, audit_id=audit_id, **extra)

    def _commit_pages(self, action: str, pages: dict, notice: str | None = None, detail: dict | None = None, **extra: Any) -> dict:
        """Reindex ``pages``, migrate routing against the pre-edit pages, commit both."""
        old_pages = self._pages()
        reindexed = reindex_pages(pages)
        routing = self._graph.get("event_routing")
        migration = migrate_routes(old_pages, reindexed, routing if isinstance(routing, dict) else {})
        new_graph = {**self._graph, "pages": reindexed}
        if isinstance(routing, dict):
            new_graph["event_routing"] = migration["routing"]
        migration_notice = _migration_notice(migration["sequential"], migration["custom"])
        notices = [text for text in (notice, migration_notice) if text]
        counts = {"sequential": migration["sequential"], "custom": migration["custom"]}
        return self._commit(
            action,
            new_graph,
            notice=" ".join(notices) if notices else None,
            detail={**(detail or {}), **counts},
            migration=counts,
            **extra,
        )

    # --- page edits ---

    def set_page(self, page_id: str, page: Any) -> dict:
        pages = self._pages()
        if page_id not in pages:
            return self._reject("FUNNEL_PAGE_UNKNOWN", f"Page {page_id} not found", "page_id")
        if not isinstance(page, dict):
            return self._reject("FUNNEL_PAGE_INVALID", "page must be object", "page")
        updated = {key: (copy.deepcopy(page) if key == page_id else value) for key, value in pages.items()}
        return self._commit_pages("set_page", updated, detail={"page_id": page_id}, page_id=page_id)

    def add_page(self, page_id: str, page: Any, index: int | None = None) -> dict:
        pages = self._pages()
        if not isinstance(page_id, str) or not page_id:
            return self._reject("FUNNEL_PAGE_INVALID", "page_id must be a non-empty string", "page_id")
        if page_id in pages:
            return self._reject("FUNNEL_PAGE_EXISTS", f"Page {page_id} already exists", "page_id")
        if not isinstance(page, dict):
            return self._reject("FUNNEL_PAGE_INVALID", "page must be object", "page")
        entries = list(pages.items())
        if index is None:
            index = len(entries)
        if not isinstance(index, int) or isinstance(index, bool) or index < 0 or index > len(entries):
            return self._reject("FUNNEL_PAGE_INDEX", f"index must be between 0 and {len(entries)}", "index")
        entries.insert(index, (page_id, copy.deepcopy(page)))
        return self._commit_pages("add_page", dict(entries), detail={"page_id": page_id}, page_id=page_id)

    def _copy_id(self, page_id: str) -> str:
        base = f"{page_id}-copy-{int(time.time() * 1000)}"
        candidate = base
        suffix = 2
        while candidate in self._pages():
            candidate = f"{base}-{suffix}"
            suffix += 1
        return candidate

    def duplicate_page(self, page_id: str) -> dict:
        pages = self._pages()
        source = pages.get(page_id)
        if source is None:
            return self._reject("FUNNEL_PAGE_UNKNOWN", f"Page {page_id} not found", "page_id")
        new_id = self._copy_id(page_id)
        clone = copy.deepcopy(source) if isinstance(source, dict) else {}
        clone["name"] = f"{clone.get('name') or page_id} (Copy)"
        entries: List[tuple] = []
        for key, value in pages.items():
            entries.append((key, value))
            if key == page_id:
                entries.append((new_id, clone))
        return self._commit_pages(
            "duplicate_page",
            dict(entries),
            detail={"page_id": page_id, "new_page_id": new_id},
            page_id=new_id,
        )

    def reorder_pages(self, order: Any) -> dict:
        pages = self._pages()
        if (
            not isinstance(order, list)
            or len(order) != len(pages)
            or any(not isinstance(key, str) for key in order)
            or set(order) != set(pages)
        ):
            return self._reject("FUNNEL_ORDER_INVALID", "order must list every page id exactly once", "order")
        return self._commit_pages("reorder_pages", {key: pages[key] for key in order}, detail={"order": list(order)})

    def delete_page(self, page_id: str) -> dict:
        pages = self._pages()
        if page_id not in pages:
            return self._reject("FUNNEL_PAGE_UNKNOWN", f"Page {page_id} not found", "page_id")
        if len(pages) <= 1:
            return self._reject("FUNNEL_PAGE_LAST", "Cannot delete the last page.", "page_id")
        remaining = {key: value for key, value in pages.items() if key != page_id}
        return self._commit_pages("delete_page", remaining, notice="Page deleted.", detail={"page_id": page_id})

    # --- catalogue and sections ---

    def set_templates(self, templates: Any) -> dict:
        if not isinstance(templates, dict):
            return self._reject("FUNNEL_TEMPLATES_INVALID", "templates must be object", "templates")
        return self._commit("set_templates", {**self._graph, "templates": copy.deepcopy(templates)})

    def _layout_templates(self) -> set:
        names = set()
        for section in self._section("layout").values():
            if isinstance(section, dict) and isinstance(section.get("template"), str):
                names.add(section["template"])
        return names

    def delete_template(self, name: str) -> dict:
        templates = self._section("templates")
        if name not in templates:
            return self._reject("FUNNEL_TEMPLATE_UNKNOWN", f'Template "{name}" not found', "name")
        users = [
            (page.get("name") or key)
            for key, page in self._pages().items()
            if isinstance(page, dict) and page.get("template") == name
        ]
        if users:
            message = f'Cannot delete "{name}" - used by: {", ".join(users)}. Update those pages first.'
            return self._reject("FUNNEL_TEMPLATE_IN_USE", message, "name")
        if name in RESERVED_TEMPLATES or name in self._layout_templates():
            return self._reject("FUNNEL_TEMPLATE_RESERVED", f"Cannot delete the {name} template.", "name")
        remaining = {key: value for key, value in templates.items() if key != name}
        return self._commit(
            "delete_template",
            {**self._graph, "templates": remaining},
            notice=f'Template "{name}" deleted.',
            detail={"name": name},
        )

    def _merge_section(self, action: str, section: str, patch: Any) -> dict:
        if not isinstance(patch, dict):
            return self._reject("FUNNEL_PATCH_INVALID", f"{section} patch must be object", section)
        merged = dict(self._section(section))
        for key, value in patch.items():
            if value is None:
                merged.pop(key, None)
            elif not isinstance(value, dict):
                return self._reject("FUNNEL_PATCH_INVALID", f"{section}.{key} must be object or null", f"{section}.{key}")
            else:
                merged[key] = copy.deepcopy(value)
        return self._commit(action, {**self._graph, section: merged}, detail={"keys": list(patch)})

    def set_event_routing(self, patch: Any) -> dict:
        return self._merge_section("set_event_routing", "event_routing", patch)

    def set_broadcast_targets(self, patch: Any) -> dict:
        return self._merge_section("set_broadcast_targets", "broadcast_targets", patch)

    def _replace_section(self, action: str, section: str, value: Any) -> dict:
        if not isinstance(value, dict):
            return self._reject("FUNNEL_SECTION_INVALID", f"{section} must be object", section)
        return self._commit(action, {**self._graph, section: copy.deepcopy(value)})

    def set_theme(self, theme: Any) -> dict:
        return self._replace_section("set_theme", "theme", theme)

    def set_layout(self, layout: Any) -> dict:
        return self._replace_section("set_layout", "layout", layout)

    def set_split_test(self, split_test: Any) -> dict:
        if split_test is None:
            remaining = {key: value for key, value in self._graph.items() if key != "split_test"}
            return self._commit("set_split_test", remaining)
        return self._replace_section("set_split_test", "split_test", split_test)

    # --- history ---

    def undo(self) -> dict:
        previous = self._history.undo(self._graph)
        if previous is None:
            return self._envelope(True, notice="Nothing to undo", changed=False)
        from_hash = graph_hash(self._graph)
        self._graph = previous
        audit_id = self._audit_entry("undo", from_hash, graph_hash(previous))
        logger.info("funnel_undo from_hash=%s to_hash=%s", from_hash, graph_hash(previous))
        return self._envelope(True, changed=True, audit_id=audit_id)

    def redo(self) -> dict:
        following = self._history.redo(self._graph)
        if following is None:
            return self._envelope(True, notice="Nothing to redo", changed=False)
        from_hash = graph_hash(self._graph)
        self._graph = following
        audit_id = self._audit_entry("redo", from_hash, graph_hash(following))
        logger.info("funnel_redo from_hash=%s to_hash=%s", from_hash, graph_hash(following))
        return self._envelope(True, changed=True, audit_id=audit_id)

    # --- derived views ---

    def validate(self) -> dict:
        issues = validate_graph(self._graph)
        return self._envelope(not has_errors(issues), issues=issues)

    def render(self, page_id: str) -> dict:
        found = page_id in self._pages()
        html = render_page(self._graph, page_id, self._registry)
        errors = [] if found else [_issue("FUNNEL_PAGE_UNKNOWN", f"Page {page_id} not found", "page_id")]
        return self._envelope(found, errors, html=str(html))

    def render_template(self, name: str, data: Any = None) -> dict:
        found = name in self._section("templates")
        html = render_template_preview(self._graph, name, data, self._registry)
        errors = [] if found else [_issue("FUNNEL_TEMPLATE_UNKNOWN", f'Template "{name}" not found', "name")]
        return self._envelope(found, errors, html=str(html))

    def flow(self) -> dict:
        return self._envelope(True, **build_flow(self._graph))

    def next_path(self, event: str, answers: Any = None) -> dict:
        routing = self._section("event_routing")
        entry = routing.get(event)
        if not isinstance(entry, dict):
            return self._reject("FUNNEL_EVENT_UNKNOWN", f'Event "{event}" not found in event_routing', "event")
        resolved = resolve_next_path(entry, answers if isinstance(answers, dict) else {})
        target_page = None
        for key, page in self._pages().items():
            if isinstance(page, dict) and resolved["target"] is not None and str(page.get("path")) == resolved["target"]:
                target_page = key
                break
        envelope = self._envelope(
            True,
            target=resolved["target"],
            page_id=target_page,
            matched_condition=resolved["matched_condition"],
            quiz_answer=entry.get("quiz_answer"),
            checkout=entry.get("checkout") is True,
        )
        envelope["warnings"] = resolved["warnings"]
        return envelope

    # --- import / export ---

    def load_document(self, doc: Any) -> dict:
        try:
            graph = parse_document(doc)
        except FunnelImportError as exc:
            logger.warning("funnel_import_failed code=%s path=%s", exc.code, exc.path)
            return self._envelope(False, [_issue(exc.code, exc.message, exc.path)], exc.message, changed=False)
        from_hash = graph_hash(self._graph)
        to_hash = graph_hash(graph)
        self._graph = graph
        self._history.clear()
        audit_id = self._audit_entry("import", from_hash, to_hash, {"name": graph.get("name"), "version": graph.get("version")})
        logger.info("funnel_import name=%s to_hash=%s", graph.get("name"), to_hash)
        notice = f"Config loaded: {graph.get('name') or 'funnel'} (v{graph.get('version') or '?'})"
        return self._envelope(True, notice=notice, changed=True, audit_id=audit_id)

    def export_document(self) -> dict:
        prepared = prepare_export(self._graph)
        envelope = self._envelope(
            not prepared["errors"],
            prepared["errors"],
            document=prepared["document"],
            filename=export_filename(prepared["document"]),
        )
        envelope["warnings"] = prepared["warnings"]
        return envelope

    def export_page(self, page_id: str) -> dict:
        page = self.get_page(page_id)
        if page is None:
            return self._reject("FUNNEL_PAGE_UNKNOWN", f"Page {page_id} not found", "page_id")
        return self._envelope(True, document={page_id: page}, filename=page_filename(page_id))

    def export_theme(self) -> dict:
        return self._envelope(True, document=copy.deepcopy(self._section("theme")), filename=theme_filename(self._graph))
