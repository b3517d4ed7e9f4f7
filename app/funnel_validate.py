"""Funnel graph validation (export readiness checks)."""

from __future__ import annotations

from typing import Any, Dict, List

from app.render_engine import PREVIEW_PAGE_ID


Issue = Dict[str, Any]

EVENT_KEY_PREFIX = "_on_"
CONTENT_KEYS = ("_title_text", "_html", "_html_title")


def _issue(
    code: str,
    severity: str,
    field: str,
    message: str,
    page_id: str | None = None,
    event: str | None = None,
) -> Issue:
    return {"code": code, "severity": severity, "field": field, "message": message, "page_id": page_id, "event": event}


def _get(obj: Any, key: str, default=None):
    return obj.get(key, default) if isinstance(obj, dict) else default


def _section(graph: Any, key: str) -> dict:
    value = _get(graph, key)
    return value if isinstance(value, dict) else {}


def _path_number(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _path_text(value: Any) -> str | None:
    if value is None or isinstance(value, bool) or value == "":
        return None
    return str(value)


def _check_paths(pages: dict, issues: List[Issue]) -> None:
    numbers: List[int] = []
    for page_id, page in pages.items():
        path = _get(page, "path")
        if path in (None, ""):
            issues.append(_issue("FUNNEL_PATH_MISSING", "error", "path", "Missing path", page_id))
            continue
        number = _path_number(path)
        if number is None:
            issues.append(_issue("FUNNEL_PATH_NON_NUMERIC", "error", "path", f'Non-numeric path: "{path}"', page_id))
            continue
        numbers.append(number)

    ordered = sorted(numbers)
    expected = list(range(1, len(numbers) + 1))
    if ordered != expected:
        issues.append(
            _issue(
                "FUNNEL_PATH_SEQUENCE",
                "error",
                "paths",
                f"Path sequence broken: [{','.join(str(n) for n in ordered)}] vs expected [{','.join(str(n) for n in expected)}]",
            )
        )
    elif numbers != ordered:
        issues.append(_issue("FUNNEL_PATH_ORDER", "error", "paths", "Paths do not follow page order"))


def _check_templates(pages: dict, templates: dict, issues: List[Issue]) -> None:
    for page_id, page in pages.items():
        template = _get(page, "template")
        if not template:
            issues.append(_issue("FUNNEL_TEMPLATE_MISSING", "error", "template", "Missing template", page_id))
        elif not isinstance(template, str) or template not in templates:
            issues.append(
                _issue("FUNNEL_TEMPLATE_UNKNOWN", "error", "template", f'Template "{template}" not found in templates', page_id)
            )
        if not _get(page, "name"):
            issues.append(_issue("FUNNEL_PAGE_NAME_MISSING", "warning", "name", "Missing page name", page_id))


def _check_routing(pages: dict, routing: dict, issues: List[Issue]) -> None:
    valid_paths = {_path_text(_get(page, "path")) for page in pages.values()}
    valid_paths.discard(None)
    for event_name, entry in routing.items():
        route = _get(entry, "route")
        if not isinstance(route, dict):
            continue
        target = _path_text(route.get("to"))
        if target is not None and target not in valid_paths:
            issues.append(
                _issue(
                    "FUNNEL_ROUTE_TARGET_UNKNOWN",
                    "error",
                    "event_routing",
                    f'Event "{event_name}" routes to non-existent path: "{target}"',
                    event=event_name,
                )
            )
        conditions = route.get("conditions")
        if not isinstance(conditions, list):
            continue
        for idx, cond in enumerate(conditions):
            cond_target = _path_text(_get(cond, "target"))
            if cond_target is not None and cond_target not in valid_paths:
                issues.append(
                    _issue(
                        "FUNNEL_CONDITION_TARGET_UNKNOWN",
                        "error",
                        "event_routing",
                        f'Event "{event_name}" condition #{idx + 1} routes to non-existent path: "{cond_target}"',
                        event=event_name,
                    )
                )
            if not _get(cond, "field"):
                issues.append(
                    _issue(
                        "FUNNEL_CONDITION_FIELD_MISSING",
                        "warning",
                        "event_routing",
                        f'Event "{event_name}" condition #{idx + 1} has no field specified',
                        event=event_name,
                    )
                )


def _check_event_references(pages: dict, routing: dict, issues: List[Issue]) -> None:
    for page_id, page in pages.items():
        data = _get(page, "template_data")
        if not isinstance(data, dict):
            continue
        for key, value in data.items():
            if not isinstance(key, str) or not key.startswith(EVENT_KEY_PREFIX):
                continue
            if isinstance(value, str) and value and value not in routing:
                issues.append(
                    _issue(
                        "FUNNEL_EVENT_UNKNOWN",
                        "warning",
                        key,
                        f'References event "{value}" not found in event_routing',
                        page_id,
                        value,
                    )
                )


def _check_content(pages: dict, issues: List[Issue]) -> None:
    for page_id, page in pages.items():
        data = _get(page, "template_data")
        data = data if isinstance(data, dict) else {}
        if not any(data.get(key) for key in CONTENT_KEYS):
            issues.append(_issue("FUNNEL_PAGE_CONTENT_MISSING", "warning", "_title_text", "No title or HTML content", page_id))


def _check_theme(theme: dict, issues: List[Issue]) -> None:
    colors = _section(theme, "colors")
    if not colors.get("primary"):
        issues.append(_issue("FUNNEL_THEME_TOKEN_MISSING", "warning", "theme.colors.primary", "Missing primary color"))
    if not colors.get("background"):
        issues.append(_issue("FUNNEL_THEME_TOKEN_MISSING", "warning", "theme.colors.background", "Missing background color"))
    if not _section(theme, "fonts"):
        issues.append(_issue("FUNNEL_THEME_FONTS_MISSING", "warning", "theme.fonts", "No fonts defined"))


def _check_split_test(split_test: Any, pages: dict, issues: List[Issue]) -> None:
    if not isinstance(split_test, dict):
        return
    variations = split_test.get("variations")
    if not isinstance(variations, list) or not variations:
        return
    total = 0.0
    for idx, variation in enumerate(variations):
        weight = _get(variation, "weight", 0)
        if isinstance(weight, (int, float)) and not isinstance(weight, bool):
            total += weight
        variation_pages = _get(variation, "pages")
        if not isinstance(variation_pages, list):
            continue
        for page_id in variation_pages:
            if page_id not in pages:
                issues.append(
                    _issue(
                        "FUNNEL_SPLIT_PAGE_UNKNOWN",
                        "warning",
                        f"split_test.variations[{idx}].pages",
                        f'Variation "{_get(variation, "name") or _get(variation, "id")}" references unknown page "{page_id}"',
                    )
                )
    if abs(total - 100) > 1e-9:
        issues.append(
            _issue(
                "FUNNEL_SPLIT_WEIGHTS",
                "warning",
                "split_test.variations",
                f"Variation weights sum to {total:g}, expected 100",
            )
        )


def validate_graph(graph: Any) -> List[Issue]:
    """Return every issue found in the graph; never raises."""
    issues: List[Issue] = []
    pages = _section(graph, "pages")
    templates = _section(graph, "templates")
    routing = _section(graph, "event_routing")

    _check_paths(pages, issues)
    _check_templates(pages, templates, issues)
    _check_routing(pages, routing, issues)
    _check_event_references(pages, routing, issues)
    _check_content(pages, issues)
    _check_theme(_section(graph, "theme"), issues)
    if PREVIEW_PAGE_ID in pages:
        issues.append(
            _issue(
                "FUNNEL_PREVIEW_PAGE_STALE",
                "warning",
                "pages",
                "Stale template preview page found - will be removed on export",
                PREVIEW_PAGE_ID,
            )
        )
    _check_split_test(_get(graph, "split_test"), pages, issues)
    return issues


def has_errors(issues: List[Issue]) -> bool:
    return any(issue.get("severity") == "error" for issue in issues)


def blocking_issues(issues: List[Issue]) -> List[Issue]:
    """Errors that should stop an export; whole-collection ``pages`` notes are not blocking."""
    return [issue for issue in issues if issue.get("severity") == "error" and issue.get("field") != "pages"]
