"""Locked jinja2 sandbox used by the built-in node kinds."""

from __future__ import annotations

from typing import Any, Iterable, Tuple

import bleach
from jinja2 import ChainableUndefined, Template, TemplateSyntaxError
from jinja2.sandbox import ImmutableSandboxedEnvironment
from markupsafe import Markup

_ALLOWED_FILTERS = {
    "default",
    "lower",
    "upper",
    "title",
    "trim",
    "replace",
    "round",
    "length",
    "int",
    "float",
    "join",
    "string",
}

_ALLOWED_TESTS = {
    "defined",
    "undefined",
    "none",
    "equalto",
    "sequence",
    "mapping",
    "string",
}

_RICH_TEXT_TAGS = [
    "p", "br", "span", "div", "strong", "b", "em", "i", "u", "small", "sup", "sub",
    "h1", "h2", "h3", "h4", "ul", "ol", "li", "a", "blockquote",
]
_RICH_TEXT_ATTRS = {
    "*": ["class"],
    "a": ["href", "target", "rel"],
}


class _LockedSandbox(ImmutableSandboxedEnvironment):
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False

    def is_safe_callable(self, obj) -> bool:
        return False


def _token(key: Any, table: Any, fallback: Any = "") -> Any:
    """Look a theme token up by name, e.g. ``"md"`` in ``theme.spacing``."""
    if isinstance(table, dict) and isinstance(key, str) and key in table:
        return table[key]
    return fallback


def _sanitize(html: Any) -> Markup:
    if not isinstance(html, str) or not html:
        return Markup("")
    return Markup(bleach.clean(html, tags=_RICH_TEXT_TAGS, attributes=_RICH_TEXT_ATTRS, strip=True))


def _build_env() -> _LockedSandbox:
    env = _LockedSandbox(autoescape=True, undefined=ChainableUndefined, trim_blocks=True, lstrip_blocks=True)
    env.globals = {"range": range}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    env.filters["token"] = _token
    env.filters["sanitize"] = _sanitize
    env.tests = {key: val for key, val in env.tests.items() if key in _ALLOWED_TESTS}
    return env


_ENV = _build_env()


def compile_snippet(source: str) -> Template:
    return _ENV.from_string(source)


def render_snippet(template: Template, context: dict[str, Any]) -> Markup:
    return Markup(template.render(context).strip())


def validate_snippets(snippets: Iterable[Tuple[str, str]]) -> list[dict]:
    errors: list[dict] = []
    for label, text in snippets:
        try:
            _ENV.parse(text or "")
        except TemplateSyntaxError as exc:
            errors.append(
                {
                    "message": f"{label}: {exc.message}",
                    "line": exc.lineno or 1,
                }
            )
    return errors
