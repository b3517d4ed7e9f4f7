"""Tree renderer: template node + page data + theme -> HTML fragment."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable

from markupsafe import Markup

from funnelcore.bindings import resolve, resolve_all
from funnelcore.node_model import DataRef, Node, NodeList, parse_node

from app.render_kinds import BUILTIN_KINDS, KindRenderer

logger = logging.getLogger("funnel.render")

PREVIEW_PAGE_ID = "__template_preview__"


class KindRegistry:
    """Open map of kind name -> renderer callable."""

    def __init__(self, kinds: Dict[str, KindRenderer] | None = None) -> None:
        self._kinds: Dict[str, KindRenderer] = dict(kinds or {})

    def register(self, name: str, renderer: KindRenderer) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("kind name must be a non-empty string")
        if not callable(renderer):
            raise TypeError("renderer must be callable")
        self._kinds[name] = renderer

    def unregister(self, name: str) -> None:
        self._kinds.pop(name, None)

    def get(self, name: str | None) -> KindRenderer | None:
        if name is None:
            return None
        return self._kinds.get(name)

    def kinds(self) -> list[str]:
        return sorted(self._kinds)

    def __contains__(self, name: object) -> bool:
        return name in self._kinds


def default_registry() -> KindRegistry:
    return KindRegistry(BUILTIN_KINDS)


def _placeholder(css_class: str, text: str) -> Markup:
    return Markup('<div class="{}">{}</div>').format(css_class, text)


def _compose(parts: Iterable[Markup]) -> Markup:
    return Markup("").join(parts)


def render_node(node: Any, data: Any, theme: Any, registry: KindRegistry | None = None) -> Markup:
    """Render one node and its subtree.

    Never raises: unknown kinds and failing renderers produce visible
    placeholders in place of the node, leaving siblings intact.
    """
    registry = registry or default_registry()
    if not isinstance(node, Node):
        node = parse_node(node)
    if node.kind is None:
        return Markup("")

    renderer = registry.get(node.kind)
    if renderer is None:
        logger.warning("render_unknown_kind kind=%s", node.kind)
        return _placeholder("fn-unknown", f"Unknown: {node.kind}")

    attrs = resolve_all(node.attributes, data)
    children: Any = None
    if isinstance(node.children, NodeList):
        children = _compose(render_node(child, data, theme, registry) for child in node.children.nodes)
    elif isinstance(node.children, DataRef):
        children = resolve(node.children.ref, data)

    try:
        return Markup(renderer(attrs, children, theme))
    except Exception as exc:
        logger.warning("render_kind_failed kind=%s error=%s", node.kind, exc)
        return _placeholder("fn-render-error", f"Render error: {node.kind}")


def _graph_section(graph: Any, name: str) -> dict:
    value = graph.get(name) if isinstance(graph, dict) else None
    return value if isinstance(value, dict) else {}


def _render_template(graph: dict, name: Any, data: Any, registry: KindRegistry) -> Markup | None:
    template = _graph_section(graph, "templates").get(name) if isinstance(name, str) else None
    if template is None:
        return None
    return render_node(template, data, _graph_section(graph, "theme"), registry)


def _missing_template(name: Any) -> Markup:
    return _placeholder("fn-missing-template", f"Template {name} not found in configuration.")


def render_layout(
    graph: dict,
    content: Markup,
    header: bool = False,
    footer: bool = False,
    registry: KindRegistry | None = None,
) -> Markup:
    """Wrap page content with the layout header and footer templates.

    Layout templates render against layout-level ``template_data``. A layout
    section naming a template that does not exist is skipped.
    """
    registry = registry or default_registry()
    layout = _graph_section(graph, "layout")
    parts = []
    for enabled, section_name in ((header, "header"), (footer, "footer")):
        if not enabled:
            continue
        section = layout.get(section_name)
        if not isinstance(section, dict):
            continue
        rendered = _render_template(graph, section.get("template"), section.get("template_data") or {}, registry)
        if rendered is None:
            logger.info("render_layout_skipped section=%s template=%s", section_name, section.get("template"))
            continue
        parts.append((section_name, rendered))

    html = [Markup('<div class="fn-layout">')]
    for section_name, rendered in parts:
        if section_name == "header":
            html.append(Markup("<header>{}</header>").format(rendered))
    html.append(Markup("<main>{}</main>").format(content))
    for section_name, rendered in parts:
        if section_name == "footer":
            html.append(Markup("<footer>{}</footer>").format(rendered))
    html.append(Markup("</div>"))
    return _compose(html)


def render_page(graph: dict, page: Any, registry: KindRegistry | None = None) -> Markup:
    """Render a page by id (or a page object) wrapped in the layout."""
    registry = registry or default_registry()
    if isinstance(page, str):
        page_id = page
        page = _graph_section(graph, "pages").get(page_id)
        if not isinstance(page, dict):
            logger.info("render_page_missing page_id=%s", page_id)
            return _placeholder("fn-missing-page", "Page not found")
    if not isinstance(page, dict):
        return _placeholder("fn-missing-page", "Page not found")

    template_name = page.get("template")
    content = _render_template(graph, template_name, page.get("template_data") or {}, registry)
    if content is None:
        content = _missing_template(template_name)
    return render_layout(
        graph,
        content,
        header=page.get("header") is True,
        footer=page.get("footer") is True,
        registry=registry,
    )


def render_template_preview(
    graph: dict,
    template_name: str,
    data: Any = None,
    registry: KindRegistry | None = None,
) -> Markup:
    """Render one catalogue template against ad-hoc data, outside any page."""
    registry = registry or default_registry()
    rendered = _render_template(graph, template_name, data if isinstance(data, dict) else {}, registry)
    if rendered is None:
        return _missing_template(template_name)
    return rendered
