import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from markupsafe import Markup

from app.render_engine import (
    KindRegistry,
    default_registry,
    render_layout,
    render_node,
    render_page,
    render_template_preview,
)
from app.render_kinds import BUILTIN_KINDS
from app.template_render import compile_snippet, render_snippet, validate_snippets


THEME = {
    "colors": {"primary": "#2F80ED", "background": "#FFFFFF", "text": "#111111"},
    "fonts": {"title": "700 28px sans-serif", "body": "400 16px sans-serif"},
    "spacing": {"md": "1rem"},
    "width": {"md": "28rem"},
}


def _graph():
    return {
        "pages": {
            "welcome": {
                "name": "Welcome",
                "path": "1",
                "template": "hero",
                "template_data": {"_title_text": "Hello", "_on_click": "start"},
                "header": True,
                "footer": False,
            },
            "broken": {"name": "Broken", "path": "2", "template": "missing", "template_data": {}},
        },
        "templates": {
            "hero": {
                "component": "Page",
                "props": {"width": "md"},
                "children": [
                    {"component": "Title", "props": {"text": "_title_text"}},
                    {"component": "Button", "props": {"text": "Go", "on_click": "_on_click"}},
                ],
            },
            "header": {"component": "Text", "props": {"text": "_brand"}},
            "footer": {"component": "Text", "props": {"text": "Footer text"}},
        },
        "layout": {
            "header": {"template": "header", "template_data": {"_brand": "Acme"}},
            "footer": {"template": "footer", "template_data": {}},
        },
        "theme": THEME,
        "event_routing": {},
    }


class TestKindRegistry(unittest.TestCase):
    def test_default_registry_has_builtins(self) -> None:
        registry = default_registry()
        for kind in ("Page", "Box", "Text", "Title", "Button", "ItemPicker", "LinksBox", "Checkout"):
            self.assertIn(kind, registry)
        self.assertEqual(registry.kinds(), sorted(BUILTIN_KINDS))

    def test_registries_are_independent(self) -> None:
        first = default_registry()
        first.unregister("Page")
        self.assertIn("Page", default_registry())

    def test_register_validates(self) -> None:
        registry = KindRegistry()
        with self.assertRaises(ValueError):
            registry.register("", lambda attrs, children, theme: Markup(""))
        with self.assertRaises(TypeError):
            registry.register("Thing", "not callable")


class TestRenderNode(unittest.TestCase):
    def test_kindless_node_renders_nothing(self) -> None:
        self.assertEqual(render_node({"props": {}}, {}, THEME), Markup(""))
        self.assertEqual(render_node(None, {}, THEME), Markup(""))

    def test_unknown_kind_placeholder(self) -> None:
        html = render_node({"component": "Fancy"}, {}, THEME)
        self.assertIn("Unknown: Fancy", html)

    def test_failing_renderer_does_not_blank_siblings(self) -> None:
        registry = default_registry()

        def _boom(attrs, children, theme):
            raise RuntimeError("bad")

        registry.register("Boom", _boom)
        template = {
            "component": "Box",
            "children": [
                {"component": "Text", "props": {"text": "before"}},
                {"component": "Boom"},
                {"component": "Text", "props": {"text": "after"}},
            ],
        }
        html = render_node(template, {}, THEME, registry)
        self.assertIn("before", html)
        self.assertIn("Render error: Boom", html)
        self.assertIn("after", html)

    def test_bindings_resolve_and_escape(self) -> None:
        html = render_node(
            {"component": "Title", "props": {"text": "_title_text"}},
            {"_title_text": "<script>x</script>"},
            THEME,
        )
        self.assertIn("&lt;script&gt;", html)
        self.assertNotIn("<script>", html)
        self.assertIn("<h1", html)

    def test_missing_binding_renders_empty(self) -> None:
        html = render_node({"component": "Title", "props": {"text": "_title_text"}}, {}, THEME)
        self.assertEqual(html, Markup(""))

    def test_rich_text_is_sanitized(self) -> None:
        html = render_node(
            {"component": "RichText", "props": {"html": "_html"}},
            {"_html": '<b>bold</b><script>alert(1)</script><a href="/x" onclick="y()">link</a>'},
            THEME,
        )
        self.assertIn("<b>bold</b>", html)
        self.assertNotIn("<script>", html)
        self.assertNotIn("onclick", html)
        self.assertIn('href="/x"', html)

    def test_data_ref_children_are_passed_raw(self) -> None:
        seen = {}
        registry = default_registry()

        def _capture(attrs, children, theme):
            seen["children"] = children
            seen["theme"] = theme
            return Markup("<ul></ul>")

        registry.register("Capture", _capture)
        links = [{"href": "/privacy", "text": "Privacy"}]
        render_node({"component": "Capture", "children": "_links"}, {"_links": links}, THEME, registry)
        self.assertIs(seen["children"], links)
        self.assertIs(seen["theme"], THEME)

    def test_links_box_uses_data_children(self) -> None:
        html = render_node(
            {"component": "LinksBox", "children": "_links"},
            {"_links": [{"href": "/privacy", "text": "Privacy"}, {"href": "/terms", "text": "Terms"}]},
            THEME,
        )
        self.assertIn('href="/privacy"', html)
        self.assertIn("Terms", html)

    def test_theme_tokens_and_missing_tokens(self) -> None:
        html = render_node({"component": "Page", "props": {"width": "md"}}, {}, THEME)
        self.assertIn("max-width: 28rem", html)
        html = render_node({"component": "Page", "props": {"width": "xl"}}, {}, {})
        self.assertIn("max-width: 100%", html)

    def test_item_picker_options(self) -> None:
        html = render_node(
            {"component": "ItemPicker", "props": {"items": "_items", "mode": "single"}},
            {"_items": [{"label": "Lose weight", "value": "lose", "event": "picked"}, "bad"]},
            THEME,
        )
        self.assertIn("Lose weight", html)
        self.assertIn('data-event="picked"', html)

    def test_all_builtins_render_without_attributes(self) -> None:
        for kind in BUILTIN_KINDS:
            html = render_node({"component": kind}, {}, {})
            self.assertNotIn("Render error", html, kind)
            self.assertNotIn("Unknown:", html, kind)


class TestRenderPage(unittest.TestCase):
    def test_page_with_header(self) -> None:
        html = render_page(_graph(), "welcome")
        self.assertIn("<header>", html)
        self.assertIn("Acme", html)
        self.assertNotIn("<footer>", html)
        self.assertIn("Hello", html)
        self.assertIn('data-event="start"', html)

    def test_missing_template_placeholder(self) -> None:
        html = render_page(_graph(), "broken")
        self.assertIn("Template missing not found in configuration.", html)

    def test_unknown_page(self) -> None:
        self.assertIn("Page not found", render_page(_graph(), "nope"))

    def test_layout_skips_missing_templates(self) -> None:
        graph = _graph()
        graph["layout"]["footer"]["template"] = "gone"
        html = render_layout(graph, Markup("<p>body</p>"), header=False, footer=True)
        self.assertNotIn("<footer>", html)
        self.assertIn("<main><p>body</p></main>", html)

    def test_template_preview(self) -> None:
        graph = _graph()
        html = render_template_preview(graph, "hero", {"_title_text": "Preview"})
        self.assertIn("Preview", html)
        self.assertNotIn("__template_preview__", graph["pages"])
        self.assertIn("not found in configuration", render_template_preview(graph, "nope"))


class TestTemplateSandbox(unittest.TestCase):
    def test_attribute_access_is_blocked(self) -> None:
        template = compile_snippet("{{ value.__class__ }}")
        self.assertEqual(render_snippet(template, {"value": "x"}), Markup(""))

    def test_validate_snippets_reports_syntax_errors(self) -> None:
        errors = validate_snippets([("ok", "{{ a }}"), ("broken", "{% if %}")])
        self.assertEqual(len(errors), 1)
        self.assertTrue(errors[0]["message"].startswith("broken:"))


if __name__ == "__main__":
    unittest.main()
