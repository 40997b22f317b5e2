"""
Zettelstore MCP - a Zettelkasten note graph backed by a remote REST data store.
This package implements a Model Context Protocol (MCP) server for managing a Zettelkasten,
a note-taking and knowledge management method that uses atomic notes linked together
to form a network of knowledge.

Notes, tags and links live in a PostgREST-style tabular store; embeddings are
generated through the OpenAI embeddings API. All operations are synchronous.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("zettelstore-mcp")
except PackageNotFoundError:
    __version__ = "0.3.0"
