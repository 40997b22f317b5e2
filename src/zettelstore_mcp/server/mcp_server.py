"""MCP server implementation for the Zettelstore."""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from mcp.server.fastmcp import FastMCP

from zettelstore_mcp.config import config
from zettelstore_mcp.exceptions import ErrorCode, ZettelkastenError
from zettelstore_mcp.models.result import Err, Ok, Result
from zettelstore_mcp.models.schema import LinkResult, Note, SimilarNote
from zettelstore_mcp.observability import is_logging_configured, metrics, timed_operation
from zettelstore_mcp.services.zettel_service import ZettelService
from zettelstore_mcp.utils import split_comma_list

logger = logging.getLogger(__name__)

Envelope = Dict[str, Any]


def _note_view(note: Note) -> Dict[str, Any]:
    return note.summary()


def _notes_view(notes: List[Note]) -> List[Dict[str, Any]]:
    return [note.summary() for note in notes]


def _link_view(result: LinkResult) -> Dict[str, Any]:
    return {
        "source_note": result.source_note.summary(),
        "target_note": result.target_note.summary() if result.target_note else None,
        "link": result.link.model_dump(mode="json"),
        "inverse_link": (
            result.inverse_link.model_dump(mode="json") if result.inverse_link else None
        ),
    }


def _similar_view(matches: List[SimilarNote]) -> List[Dict[str, Any]]:
    return [
        {
            "note": match.note.summary(),
            "similarity": round(match.similarity, 4),
            "tag_overlap": match.tag_overlap,
            "link_overlap": match.link_overlap,
            "incoming_overlap": match.incoming_overlap,
            "outgoing_overlap": match.outgoing_overlap,
        }
        for match in matches
    ]


def _respond(
    result: Result,
    key: str,
    op: Dict[str, Any],
    render: Optional[Callable[[Any], Any]] = None,
) -> Envelope:
    """Render a service result as the tool envelope.

    A failed result is recorded on the tool's ``timed_operation`` as well.
    """
    if not result.ok:
        op["error"] = result.message
        return result.to_envelope()
    value = render(result.value) if render else result.value
    return Ok(value, result.warnings).to_envelope(key)


class ZettelstoreMcpServer:
    """MCP server exposing the note graph as tools.

    Args:
        zettel_service: Pre-built service. When None, one is wired from the
            global configuration.
    """

    def __init__(self, zettel_service: Optional[ZettelService] = None):
        self.mcp = FastMCP(config.server_name)
        self.zettel_service = zettel_service or ZettelService.from_config(config)
        self._register_tools()
        logger.info("Zettelstore MCP server initialized")

    def format_error_response(self, error: Exception) -> Envelope:
        """Envelope for an exception that escaped the service layer.

        Domain errors keep their message; anything else is logged with a
        reference id and reported generically.
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, ZettelkastenError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return {"error": error.message}
        logger.error(f"Unexpected error [{error_id}]: {error}", exc_info=True)
        return {"error": f"An unexpected error occurred (ref: {error_id})"}

    def _note_with_tags(self, note: Note) -> Dict[str, Any]:
        view = note.summary()
        tags = self.zettel_service.get_note_tags(note.id)
        view["tags"] = [tag.name for tag in tags.value] if tags.ok else []
        return view

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="zk_create_note")
        def zk_create_note(
            title: str,
            content: str,
            note_type: str = "permanent",
            tags: Optional[str] = None,
        ) -> Envelope:
            """Create a new Zettelkasten note.
            Args:
                title: The title of the note
                content: The main content of the note
                note_type: Type of note (fleeting, literature, permanent, structure, hub)
                tags: Comma-separated list of tags (optional)
            """
            with timed_operation("zk_create_note", title=title[:30]) as op:
                try:
                    result = self.zettel_service.create_note(
                        title=title,
                        content=content,
                        note_type=note_type.lower(),
                        tags=split_comma_list(tags),
                    )
                    if result.ok:
                        op["note_id"] = result.value.id
                    return _respond(result, "note", op, _note_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_get_note")
        def zk_get_note(
            note_id: Optional[str] = None, title: Optional[str] = None
        ) -> Envelope:
            """Retrieve a note by ID or by exact title.
            Args:
                note_id: The ID of the note
                title: The title of the note (used when note_id is not given)
            """
            with timed_operation("zk_get_note", note_id=note_id, title=(title or "")[:30]) as op:
                try:
                    if note_id:
                        result = self.zettel_service.get_note(note_id)
                    elif title:
                        result = self.zettel_service.get_note_by_title(title)
                    else:
                        result = Err(
                            ErrorCode.VALIDATION_FAILED,
                            "Either note_id or title is required",
                        )
                    return _respond(result, "note", op, self._note_with_tags)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_update_note")
        def zk_update_note(
            note_id: str,
            title: Optional[str] = None,
            content: Optional[str] = None,
            note_type: Optional[str] = None,
            tags: Optional[str] = None,
        ) -> Envelope:
            """Update an existing note. Only the given fields change.
            Args:
                note_id: The ID of the note to update
                title: New title (optional)
                content: New content (optional)
                note_type: New note type (optional)
                tags: Comma-separated tags to add (optional, additive)
            """
            with timed_operation("zk_update_note", note_id=note_id) as op:
                try:
                    result = self.zettel_service.update_note(
                        note_id=note_id,
                        title=title,
                        content=content,
                        note_type=note_type.lower() if note_type else None,
                        tags=split_comma_list(tags) if tags else None,
                    )
                    return _respond(result, "note", op, _note_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_delete_note")
        def zk_delete_note(note_id: str) -> Envelope:
            """Delete a note.
            Args:
                note_id: The ID of the note to delete
            """
            with timed_operation("zk_delete_note", note_id=note_id) as op:
                try:
                    return _respond(self.zettel_service.delete_note(note_id), "result", op)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_search_notes")
        def zk_search_notes(
            query: Optional[str] = None,
            note_type: Optional[str] = None,
            tags: Optional[str] = None,
            limit: int = 50,
        ) -> Envelope:
            """Search notes by text in title or content.
            Args:
                query: Text to look for (case-insensitive)
                note_type: Only return notes of this type (optional)
                tags: Comma-separated tags (not supported yet; ignored with a warning)
                limit: Maximum number of results
            """
            with timed_operation("zk_search_notes", query=query) as op:
                try:
                    result = self.zettel_service.search_notes(
                        query=query,
                        note_type=note_type.lower() if note_type else None,
                        tags=split_comma_list(tags) if tags else None,
                        limit=limit,
                    )
                    if result.ok:
                        op["result_count"] = len(result.value)
                    return _respond(result, "notes", op, _notes_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_list_notes")
        def zk_list_notes(
            tag: Optional[str] = None, limit: int = 100, offset: int = 0
        ) -> Envelope:
            """List notes, most recently updated first.
            Args:
                tag: Only list notes with this tag (optional)
                limit: Maximum number of notes
                offset: Number of notes to skip (ignored when filtering by tag)
            """
            with timed_operation("zk_list_notes", tag=tag) as op:
                try:
                    if tag:
                        result = self.zettel_service.get_notes_by_tag(tag, limit=limit)
                    else:
                        result = self.zettel_service.get_all_notes(
                            limit=limit, offset=offset
                        )
                    return _respond(result, "notes", op, _notes_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_add_tags")
        def zk_add_tags(note_id: str, tags: str) -> Envelope:
            """Add tags to a note.
            Args:
                note_id: The ID of the note
                tags: Comma-separated list of tags
            """
            with timed_operation("zk_add_tags", note_id=note_id) as op:
                try:
                    result = self.zettel_service.add_tags_to_note(
                        note_id, split_comma_list(tags)
                    )
                    return _respond(result, "result", op)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_remove_tag")
        def zk_remove_tag(note_id: str, tag: str) -> Envelope:
            """Remove a tag from a note.
            Args:
                note_id: The ID of the note
                tag: Tag to remove
            """
            with timed_operation("zk_remove_tag", note_id=note_id) as op:
                try:
                    result = self.zettel_service.remove_tag_from_note(note_id, tag)
                    return _respond(result, "result", op)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_get_all_tags")
        def zk_get_all_tags() -> Envelope:
            """List all tags, alphabetically."""
            with timed_operation("zk_get_all_tags") as op:
                try:
                    return _respond(
                        self.zettel_service.get_all_tags(),
                        "tags",
                        op,
                        lambda tags: [tag.name for tag in tags],
                    )
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_create_link")
        def zk_create_link(
            source_id: str,
            target_id: str,
            link_type: str = "reference",
            description: Optional[str] = None,
            bidirectional: bool = False,
        ) -> Envelope:
            """Create a link between two notes.
            Args:
                source_id: ID of the source note
                target_id: ID of the target note
                link_type: Type of link (reference, extends, refines, contradicts, questions, supports, related, or their _by forms)
                description: Optional description of the link
                bidirectional: Also create the inverse link from target to source
            """
            with timed_operation("zk_create_link", source_id=source_id, target_id=target_id) as op:
                try:
                    result = self.zettel_service.create_link(
                        source_id=source_id,
                        target_id=target_id,
                        link_type=link_type.lower(),
                        description=description,
                        bidirectional=bidirectional,
                    )
                    return _respond(result, "link", op, _link_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_remove_link")
        def zk_remove_link(
            source_id: str,
            target_id: str,
            link_type: Optional[str] = None,
            bidirectional: bool = False,
        ) -> Envelope:
            """Remove a link between two notes.
            Args:
                source_id: ID of the source note
                target_id: ID of the target note
                link_type: Only remove links of this type (optional)
                bidirectional: Also remove the link in the other direction
            """
            with timed_operation("zk_remove_link", source_id=source_id, target_id=target_id) as op:
                try:
                    result = self.zettel_service.remove_link(
                        source_id=source_id,
                        target_id=target_id,
                        link_type=link_type.lower() if link_type else None,
                        bidirectional=bidirectional,
                    )
                    return _respond(result, "result", op)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_get_linked_notes")
        def zk_get_linked_notes(note_id: str, direction: str = "outgoing") -> Envelope:
            """Get notes linked to or from a note.
            Args:
                note_id: ID of the note
                direction: outgoing, incoming, or both
            """
            with timed_operation("zk_get_linked_notes", note_id=note_id) as op:
                try:
                    result = self.zettel_service.get_linked_notes(note_id, direction)
                    return _respond(result, "notes", op, _notes_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_find_similar_notes")
        def zk_find_similar_notes(
            note_id: str, threshold: float = 0.3, limit: int = 5
        ) -> Envelope:
            """Find notes that share tags and links with a note.
            Args:
                note_id: ID of the reference note
                threshold: Minimum similarity between 0.0 and 1.0
                limit: Maximum number of results
            """
            with timed_operation("zk_find_similar_notes", note_id=note_id) as op:
                try:
                    result = self.zettel_service.find_similar_notes(
                        note_id, threshold=threshold, limit=limit
                    )
                    if result.ok:
                        op["result_count"] = len(result.value)
                    return _respond(result, "similar_notes", op, _similar_view)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_export_note")
        def zk_export_note(note_id: str, format: str = "markdown") -> Envelope:
            """Export a note as text.
            Args:
                note_id: ID of the note
                format: Export format (markdown)
            """
            with timed_operation("zk_export_note", note_id=note_id) as op:
                try:
                    result = self.zettel_service.export_note(note_id, format=format)
                    return _respond(result, "content", op)
                except Exception as e:
                    op["error"] = str(e)
                    return self.format_error_response(e)

        @self.mcp.tool(name="zk_status")
        def zk_status() -> Envelope:
            """Report server configuration and operation metrics."""
            store_host = urlparse(config.store_url).netloc if config.store_url else None
            return {
                "success": True,
                "server": {
                    "name": config.server_name,
                    "version": config.server_version,
                },
                "store": {"host": store_host},
                "logging": {"file": is_logging_configured()},
                "embeddings": {
                    "available": self.zettel_service.embeddings_available,
                    "model": config.embedding_model,
                },
                "metrics": {
                    "summary": metrics.get_summary(),
                    "operations": metrics.get_metrics(),
                },
            }

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
