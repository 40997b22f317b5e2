"""Storage layer for the Zettelstore MCP server."""

from zettelstore_mcp.storage.store_client import StoreClient

__all__ = [
    "StoreClient",
]
