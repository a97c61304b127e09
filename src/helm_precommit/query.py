# SPDX-License-Identifier: MIT
# SPDX-FileCopyrightText: The helm-precommit contributors
"""Path lookups over parsed YAML documents."""

from typing import Any


def lookup(doc: Any, *path: str | int) -> Any:
    """
    Walk a parsed YAML document along a path of keys and list indexes.

    Args:
        doc: Document as returned by yaml.safe_load
        *path: Mapping keys (str) and list indexes (int)

    Returns:
        The value at the end of the path, or None if any step is missing
    """
    node = doc
    for step in path:
        if isinstance(step, int):
            if not isinstance(node, list) or not -len(node) <= step < len(node):
                return None
            node = node[step]
        else:
            if not isinstance(node, dict) or step not in node:
                return None
            node = node[step]
    return node


def first_with(items: Any, field: str) -> dict | None:
    """Return the first mapping in items whose field is present and not null."""
    if not isinstance(items, list):
        return None
    for item in items:
        if isinstance(item, dict) and item.get(field) is not None:
            return item
    return None


def scalar(value: Any) -> str:
    """Render a YAML scalar as text; None and collections become empty."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
