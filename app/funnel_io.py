"""Import and export of the persisted funnel document."""

from __future__ import annotations

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List

from funnelcore.canonical_json import CanonicalJsonTypeError, check_json_value, pretty_dumps

from app.funnel_validate import blocking_issues, validate_graph
from app.render_engine import PREVIEW_PAGE_ID
from path_reindex import reindex_pages
from route_migrate import migrate_routes

logger = logging.getLogger("funnel.io")

DEFAULT_DOCUMENT_PATH = Path(__file__).resolve().parent / "default_funnel.json"
REQUIRED_SECTIONS = ("pages", "theme", "templates")
THEME_SECTIONS = ("colors", "fonts", "spacing", "border_radius", "width", "border")


@dataclass
class FunnelImportError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _default_layout() -> dict:
    return {
        "header": {"template": "header", "template_data": {}},
        "footer": {"template": "footer", "template_data": {}},
    }


def parse_document(doc: Any) -> dict:
    """Decode and backfill an uploaded funnel document.

    Accepts JSON text (``str``/``bytes``) or an already decoded object. The
    input object is never mutated.
    """
    if isinstance(doc, (bytes, bytearray)):
        try:
            doc = doc.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FunnelImportError("FUNNEL_IMPORT_JSON", f"Document is not UTF-8: {exc}", "$") from exc
    if isinstance(doc, str):
        try:
            doc = json.loads(doc, parse_constant=_reject_constant)
        except json.JSONDecodeError as exc:
            raise FunnelImportError("FUNNEL_IMPORT_JSON", f"Error parsing JSON: {exc.msg}", f"line {exc.lineno}") from exc
        except ValueError as exc:
            raise FunnelImportError("FUNNEL_IMPORT_JSON", f"Error parsing JSON: {exc}", "$") from exc
    if not isinstance(doc, dict):
        raise FunnelImportError("FUNNEL_IMPORT_JSON", "Document must be a JSON object", "$")

    for section in REQUIRED_SECTIONS:
        if not isinstance(doc.get(section), dict):
            raise FunnelImportError("FUNNEL_IMPORT_MISSING_SECTION", f"Invalid config: missing '{section}' object.", section)

    try:
        check_json_value(doc)
    except (ValueError, CanonicalJsonTypeError) as exc:
        raise FunnelImportError("FUNNEL_IMPORT_JSON", str(exc), "$") from exc

    graph = copy.deepcopy(doc)
    theme = graph["theme"]
    for section in THEME_SECTIONS:
        if not isinstance(theme.get(section), dict):
            theme[section] = {}
    if not isinstance(graph.get("layout"), dict):
        graph["layout"] = _default_layout()
    if not isinstance(graph.get("event_routing"), dict):
        graph["event_routing"] = {}
    logger.info(
        "funnel_document_parsed name=%s version=%s pages=%s",
        graph.get("name"),
        graph.get("version"),
        len(graph["pages"]),
    )
    return graph


def compile_document(graph: dict) -> dict:
    """Copy of the graph without the preview page, reindexed and migrated."""
    compiled = copy.deepcopy(graph)
    pages = compiled.get("pages") if isinstance(compiled.get("pages"), dict) else {}
    pages = {key: page for key, page in pages.items() if key != PREVIEW_PAGE_ID}
    reindexed = reindex_pages(pages)
    routing = compiled.get("event_routing")
    if isinstance(routing, dict):
        compiled["event_routing"] = migrate_routes(pages, reindexed, routing)["routing"]
    compiled["pages"] = reindexed
    return compiled


def prepare_export(graph: dict) -> dict:
    """Compile the document for download and collect blocking errors.

    Returns ``{"document", "errors", "warnings"}``; the caller decides whether
    to proceed when ``errors`` is non-empty.
    """
    compiled = compile_document(graph)
    issues = validate_graph(compiled)
    errors: List[dict] = blocking_issues(issues)
    warnings = [issue for issue in issues if issue not in errors]
    if errors:
        logger.warning("funnel_export_errors count=%s", len(errors))
    return {"document": compiled, "errors": errors, "warnings": warnings}


def export_filename(graph: Any) -> str:
    brand = graph.get("brand") if isinstance(graph, dict) else None
    version = graph.get("version") if isinstance(graph, dict) else None
    return f"{brand}_v{version}_compiled.json"


def page_filename(page_id: str) -> str:
    return f"{page_id}_config.json"


def theme_filename(graph: Any) -> str:
    brand = graph.get("brand") if isinstance(graph, dict) else None
    return f"{brand}_theme.json"


def dumps_document(obj: Any) -> str:
    return pretty_dumps(obj, indent=4)


def load_default_document(path: str | Path | None = None) -> dict:
    """Load the starting funnel: ``path``, then ``FUNNEL_DEFAULT_CONFIG``, then the bundled demo."""
    source = path or os.getenv("FUNNEL_DEFAULT_CONFIG") or DEFAULT_DOCUMENT_PATH
    text = Path(source).read_text(encoding="utf-8")
    logger.info("funnel_default_loaded source=%s", source)
    return parse_document(text)
