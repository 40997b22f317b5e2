"""Utility functions for the Zettelstore MCP server."""
from typing import Iterable, List


def escape_like_pattern(value: str) -> str:
    """Escape LIKE wildcards to treat them as literals.

    Prevents LIKE pattern injection where user input containing
    '%' or '_' could match unintended patterns. PostgreSQL uses the
    backslash as the default LIKE escape character, so the escaped value
    can be sent to the store as-is.

    Args:
        value: User input string that may contain LIKE wildcards

    Returns:
        String with '%', '_', and '\\' escaped for safe use in LIKE filters

    Example:
        >>> escape_like_pattern("100% complete")
        '100\\% complete'
        >>> escape_like_pattern("file_name")
        'file\\_name'
    """
    escape_table = str.maketrans(
        {
            "\\": "\\\\",  # Escape backslash first
            "%": "\\%",
            "_": "\\_",
        }
    )
    return value.translate(escape_table)


def quote_filter_value(value: str) -> str:
    """Double-quote a value for use inside a PostgREST ``or=(...)`` filter.

    Commas, parentheses and dots are reserved inside logical filters;
    quoting keeps them literal. Embedded quotes and backslashes are
    backslash-escaped.

    Example:
        >>> quote_filter_value('a,b')
        '"a,b"'
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def split_comma_list(value: str) -> List[str]:
    """Split a comma-separated argument into stripped, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def unique_preserving_order(items: Iterable[str]) -> List[str]:
    """Drop duplicates while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
