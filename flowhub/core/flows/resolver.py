"""Resolution of {{ path }} references in node configuration."""

import json
import re
from typing import Any

from flowhub.core.flows.conditions import get_path

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_string(text: str, namespace: dict[str, Any]) -> Any:
    """Resolve references in a string.

    A string that is exactly one reference keeps the referenced value's
    type; references inside a longer string are interpolated as text, with
    missing values rendered empty.
    """
    match = TEMPLATE_PATTERN.fullmatch(text.strip())
    if match:
        return get_path(namespace, match.group(1))

    return TEMPLATE_PATTERN.sub(lambda m: _to_text(get_path(namespace, m.group(1))), text)


def resolve_value(value: Any, namespace: dict[str, Any]) -> Any:
    """Recursively resolve references in dicts, lists and strings."""
    if isinstance(value, str):
        if "{{" not in value:
            return value
        return resolve_string(value, namespace)
    if isinstance(value, dict):
        return {key: resolve_value(item, namespace) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_value(item, namespace) for item in value]
    return value
