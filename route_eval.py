"""Route condition evaluator for funnel event routing."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List


Issue = Dict[str, Any]

ROUTE_OPERATORS = {"eq", "neq", "gt", "lt", "gte", "lte", "contains", "not_between", "empty", "present"}


@dataclass
class RouteConditionError(Exception):
    code: str
    message: str
    path: str | None = None

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        base = f"{self.code}: {self.message}"
        return f"{base} (path={self.path})" if self.path else base


class RouteConditionSchemaError(RouteConditionError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("ROUTE_CONDITION_SCHEMA_ERROR", message, path)


class RouteConditionTypeError(RouteConditionError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("ROUTE_CONDITION_TYPE_ERROR", message, path)


class UnknownOperatorError(RouteConditionError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__("ROUTE_CONDITION_UNKNOWN_OP", message, path)


def _issue(code: str, message: str, path: str | None = None, detail: dict | None = None) -> Issue:
    return {"code": code, "message": message, "path": path, "detail": detail}


def _to_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _loose_equal(left: Any, right: Any) -> bool:
    left_num = _to_number(left)
    right_num = _to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return str(left) == str(right)


def _parse_range(value: Any, path: str) -> tuple[float, float]:
    bounds: List[Any]
    if isinstance(value, (list, tuple)):
        bounds = list(value)
    elif isinstance(value, str) and "-" in value.strip()[1:]:
        text = value.strip()
        split_at = text.index("-", 1)
        bounds = [text[:split_at], text[split_at + 1 :]]
    else:
        raise RouteConditionSchemaError("not_between value must be 'low-high' or [low, high]", path)
    if len(bounds) != 2:
        raise RouteConditionSchemaError("not_between needs exactly two bounds", path)
    low = _to_number(bounds[0])
    high = _to_number(bounds[1])
    if low is None or high is None:
        raise RouteConditionTypeError("not_between bounds must be numbers", path)
    return (min(low, high), max(low, high))


def _compare(op: str, left: Any, right: Any, path: str) -> bool:
    left_num = _to_number(left)
    right_num = _to_number(right)
    if left_num is None or right_num is None:
        raise RouteConditionTypeError("Comparison requires numbers", path)
    if op == "gt":
        return left_num > right_num
    if op == "gte":
        return left_num >= right_num
    if op == "lt":
        return left_num < right_num
    return left_num <= right_num


def eval_route_condition(cond: Any, answers: dict, path: str = "$") -> bool:
    """Evaluate one ``{field, operator, value}`` condition against answers."""
    if not isinstance(cond, dict):
        raise RouteConditionSchemaError("Condition must be object", path)
    if not isinstance(answers, dict):
        raise RouteConditionSchemaError("answers must be object", "answers")
    field_name = cond.get("field")
    if not isinstance(field_name, str) or not field_name:
        raise RouteConditionSchemaError("Missing field", f"{path}.field")

    op = cond.get("operator") or "eq"
    answer = answers.get(field_name)
    expected = cond.get("value")

    if op == "empty":
        return _is_empty(answer)
    if op == "present":
        return not _is_empty(answer)
    if op == "eq":
        return answer is not None and _loose_equal(answer, expected)
    if op == "neq":
        return answer is None or not _loose_equal(answer, expected)
    if op in {"gt", "gte", "lt", "lte"}:
        if answer is None:
            return False
        return _compare(op, answer, expected, path)
    if op == "contains":
        if isinstance(answer, list):
            return any(_loose_equal(item, expected) for item in answer)
        if isinstance(answer, str):
            return str(expected) in answer
        if answer is None:
            return False
        raise RouteConditionTypeError("contains requires string or list answer", path)
    if op == "not_between":
        low, high = _parse_range(expected, f"{path}.value")
        number = _to_number(answer)
        if number is None:
            return False
        return number < low or number > high

    raise UnknownOperatorError(f"Unknown operator: {op}", f"{path}.operator")


def resolve_next_path(entry: Any, answers: dict | None = None) -> dict:
    """Pick the navigation target of a routing entry.

    The first matching condition wins; otherwise ``route.to`` is used.
    Malformed conditions are skipped and reported as warnings.
    """
    warnings: List[Issue] = []
    answers = answers if isinstance(answers, dict) else {}
    route = entry.get("route") if isinstance(entry, dict) else None
    if not isinstance(route, dict):
        return {"target": None, "matched_condition": None, "warnings": warnings}

    conditions = route.get("conditions")
    if isinstance(conditions, list):
        for idx, cond in enumerate(conditions):
            path = f"route.conditions[{idx}]"
            try:
                matched = eval_route_condition(cond, answers, path)
            except RouteConditionError as exc:
                warnings.append(_issue(exc.code, exc.message, exc.path))
                continue
            target = cond.get("target")
            if matched and target not in (None, ""):
                return {"target": str(target), "matched_condition": idx, "warnings": warnings}

    default = route.get("to")
    target = str(default) if default not in (None, "") else None
    return {"target": target, "matched_condition": None, "warnings": warnings}
