"""Binding resolution for template attributes.

A binding is a string attribute value that starts with ``_`` (for example
``"_title_text"``). At render time it is replaced by the value stored under
that exact key in the page's ``template_data``. Missing keys are normal while
a template is being authored, so resolution never raises.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

BINDING_PREFIX = "_"


def is_binding(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(BINDING_PREFIX)


def resolve(value: Any, data: Any) -> Any:
    """Resolve one attribute value against page data.

    Literals come back unchanged. A binding resolves to ``data[value]``, or
    ``None`` when the key is absent or ``data`` is not a mapping.
    """
    if not is_binding(value):
        return value
    if not isinstance(data, Mapping):
        return None
    return data.get(value)


def resolve_all(attributes: Any, data: Any) -> Dict[str, Any]:
    if not isinstance(attributes, Mapping):
        return {}
    return {str(key): resolve(val, data) for key, val in attributes.items()}
