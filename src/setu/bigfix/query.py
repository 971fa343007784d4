"""
Parsing helpers for BigFix query and action responses.

The ``/api/query?output=json`` endpoint returns tuples whose nesting
depends on the relevance expression: a two-element tuple may come back as
a flat list, as ``{"Answer": [...]}``, as a list of single-key objects or
any mix of those.  Nothing here trusts the shape.  :func:`collect_leaves`
walks the whole tree and returns the scalar leaves in traversal order;
callers assign them positionally.

Examples:
    >>> collect_leaves({"Answer": ["CustomSite_Win", 17]})
    ['CustomSite_Win', '17']
    >>> parse_tuple_rows({"result": [["a", ["b", None, True]]]})
    [['a', 'b', 'true']]
    >>> extract_action_id('<BESAPI><Action Resource="https://bf/api/action/991"/></BESAPI>')
    '991'
"""

from __future__ import annotations

import re
from typing import Any

#: Container keys whose contents are visited before any other key.
WRAPPER_KEYS = ("Answer", "TupleResult", "result")

_ID_ELEMENT = re.compile(r"<\s*ID\s*>\s*(\d+)\s*<\s*/\s*ID\s*>", re.IGNORECASE)
_RESOURCE_ATTR = re.compile(r"<Action[^>]*\bResource\s*=\s*\"[^\"]*/(\d+)\"[^>]*>", re.IGNORECASE)
_ID_ATTR = re.compile(r"<Action[^>]*\bID\s*=\s*\"(\d+)\"[^>]*>", re.IGNORECASE)


def _leaf(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def collect_leaves(node: Any, out: list[str] | None = None) -> list[str]:
    """Flatten *node* into its scalar leaves.

    ``None`` is skipped.  Lists are visited in order.  Mappings visit the
    :data:`WRAPPER_KEYS` first (in that order), then every other key in
    insertion order.
    """
    if out is None:
        out = []
    if node is None:
        return out
    if isinstance(node, (str, int, float, bool)):
        out.append(_leaf(node))
    elif isinstance(node, (list, tuple)):
        for item in node:
            collect_leaves(item, out)
    elif isinstance(node, dict):
        for key in WRAPPER_KEYS:
            if key in node:
                collect_leaves(node[key], out)
        for key, value in node.items():
            if key not in WRAPPER_KEYS:
                collect_leaves(value, out)
    return out


def parse_tuple_rows(payload: Any) -> list[list[str]]:
    """Return one flattened row per entry in ``payload["result"]``."""
    rows = payload.get("result") if isinstance(payload, dict) else None
    if not isinstance(rows, list):
        return []
    return [collect_leaves(row) for row in rows]


def extract_action_id(body: str | None) -> str | None:
    """Pull the new action id out of a ``POST /api/actions`` response.

    Tried in order: an ``<ID>`` element, the trailing numeral of an
    ``<Action Resource="...">`` path, an ``<Action ID="...">`` attribute.
    """
    if not body:
        return None
    for pattern in (_ID_ELEMENT, _RESOURCE_ATTR, _ID_ATTR):
        match = pattern.search(body)
        if match:
            return match.group(1)
    return None


def pick_tag(xml: str | None, tag: str) -> str | None:
    """Text of the first ``<tag>`` element, stripped, or ``None``."""
    if not xml:
        return None
    match = re.search(rf"<{tag}>([\s\S]*?)</{tag}>", xml, re.IGNORECASE)
    return match.group(1).strip() if match else None


def escape_relevance_string(value: str) -> str:
    """Escape *value* for use inside a double-quoted relevance literal."""
    return str(value).replace('"', '\\"')


__all__ = [
    "WRAPPER_KEYS",
    "collect_leaves",
    "parse_tuple_rows",
    "extract_action_id",
    "pick_tag",
    "escape_relevance_string",
]
