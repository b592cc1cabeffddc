"""Helpers for inspecting and reshaping tomlkit nodes.

tomlkit tables (block, inline, the document itself and out-of-order
proxies) all subclass ``dict``; strings subclass ``str`` and arrays subclass
``list``. These helpers lean on that so the same checks work for parsed
documents and for plain Python values.
"""

from collections.abc import Mapping
from datetime import date, datetime, time
from typing import Any

import tomlkit
from tomlkit.items import AoT, InlineTable, Item


def is_table_like(node: object) -> bool:
    """Check whether a node is a block table, inline table or document."""
    return isinstance(node, dict)


def is_array(node: object) -> bool:
    """Check whether a node is a value array (not an array of tables)."""
    return isinstance(node, list) and not isinstance(node, AoT)


def type_name(node: object) -> str:
    """Return the TOML type name of a node for error messages."""
    if isinstance(node, bool):
        return "boolean"
    if isinstance(node, str):
        return "string"
    if isinstance(node, int):
        return "integer"
    if isinstance(node, float):
        return "float"
    if isinstance(node, (datetime, date, time)):
        return "datetime"
    if isinstance(node, AoT):
        return "array of tables"
    if isinstance(node, list):
        return "array"
    if isinstance(node, InlineTable):
        return "inline table"
    if isinstance(node, dict):
        return "table"
    if isinstance(node, Item) and node.is_boolean():
        return "boolean"
    return "none" if node is None else type(node).__name__


def as_bool(node: object) -> bool | None:
    """Return a boolean node's value, or None for any other node."""
    if isinstance(node, bool):
        return node
    if isinstance(node, Item) and node.is_boolean():
        return bool(node.unwrap())
    return None


def string_list(node: object) -> list[str] | None:
    """Return an array's entries as plain strings.

    Returns None when the node is not an array or holds a non-string entry.
    """
    if not is_array(node):
        return None
    values: list[str] = []
    for entry in node:  # type: ignore[attr-defined]
        if not isinstance(entry, str):
            return None
        values.append(str(entry))
    return values


def str_or_1_len_table(node: object) -> bool:
    """Check whether an entry holds nothing worth preserving on update.

    That is a bare string, or a table with a single key.
    """
    return isinstance(node, str) or (isinstance(node, dict) and len(node) == 1)


def remove_key(table: Any, key: str) -> None:
    """Delete ``key`` from a table if it is present."""
    if key in table:
        del table[key]


def inline_table(values: Mapping[str, Any]) -> InlineTable:
    """Build an inline table laid out as ``{ key = value, ... }``.

    Values that are already tomlkit items keep their own formatting.
    """
    if not values:
        return tomlkit.inline_table()
    pairs = ", ".join(
        f"{tomlkit.key(key).as_string()} = {_render_value(value)}" for key, value in values.items()
    )
    return tomlkit.parse(f"value = {{ {pairs} }}\n")["value"]


def reformat_inline_table(table: InlineTable) -> InlineTable:
    """Rebuild an inline table with uniform key/value spacing.

    Key order and values are kept. Inline tables cannot hold comments, so
    nothing but whitespace is lost.
    """
    return inline_table(dict(table.items()))


def _render_value(value: Any) -> str:
    if isinstance(value, Item):
        return value.as_string()
    if isinstance(value, dict):
        return inline_table(value).as_string()
    return tomlkit.item(value).as_string()
