"""BigFix REST access: the httpx client and response parsing helpers."""

from setu.bigfix.client import BigFixClient
from setu.bigfix.query import (
    collect_leaves,
    escape_relevance_string,
    extract_action_id,
    parse_tuple_rows,
    pick_tag,
)

__all__ = [
    "BigFixClient",
    "collect_leaves",
    "escape_relevance_string",
    "extract_action_id",
    "parse_tuple_rows",
    "pick_tag",
]
