"""Service layer for Zettelkasten operations.

``ZettelService`` owns the note graph rules: note lifecycle, find-or-create
tagging, bidirectional links with inverse types, and structural similarity.
It keeps no state between calls; every operation re-reads what it needs
from the store.

Every public method returns a ``Result``. Validation and not-found errors
are detected before anything is written. Store failures in a required step
become the operation's ``Err``; failures in optional steps (embedding,
individual tags, the inverse half of a link) become ``Ok.warnings``.

Known weak points:
    - Multi-step operations are not transactional. A note deleted between
      the existence check and the write of ``update_note`` or
      ``create_link`` leaves the write pointing at a missing note.
    - Tag find-or-create is lookup-then-insert. Two concurrent callers can
      both create a tag with the same name unless the store enforces a
      unique constraint on ``tags.name``.
    - When the store does not echo created rows, ``create_note`` finds the
      new note by title, which is ambiguous if two notes share a title.
"""

import functools
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from zettelstore_mcp.config import ZettelstoreConfig, config
from zettelstore_mcp.exceptions import (
    ErrorCode,
    LinkError,
    NoteNotFoundError,
    NoteValidationError,
    StoreError,
    TagError,
    ValidationError,
    ZettelkastenError,
)
from zettelstore_mcp.models.result import Err, Ok, Result
from zettelstore_mcp.models.schema import (
    MAX_CONTENT_LENGTH,
    MAX_LINK_DESCRIPTION_LENGTH,
    MAX_TAG_NAME_LENGTH,
    MAX_TITLE_LENGTH,
    Link,
    LinkDirection,
    LinkResult,
    LinkType,
    Note,
    NoteType,
    SimilarNote,
    Tag,
    TagAttachment,
    inverse_link_type,
)
from zettelstore_mcp.observability import timed_operation
from zettelstore_mcp.services.embedding_service import EmbeddingService, embedding_text
from zettelstore_mcp.storage import codec
from zettelstore_mcp.storage.store_client import (
    StoreClient,
    eq,
    ilike_condition,
    in_list,
    or_filter,
)
from zettelstore_mcp.utils import quote_filter_value, unique_preserving_order

NOTES = "/notes"
TAGS = "/tags"
NOTE_TAGS = "/note_tags"
LINKS = "/links"

SUPPORTED_EXPORT_FORMATS = ("markdown",)

# Similarity weights: tags, shared outgoing links, incoming link, outgoing link
TAG_WEIGHT = 0.4
LINK_WEIGHT = 0.2
INCOMING_WEIGHT = 0.2
OUTGOING_WEIGHT = 0.2


def score_similarity(
    reference_id: str,
    reference_tags: Set[str],
    reference_links: Set[str],
    candidate_id: str,
    candidate_tags: Set[str],
    candidate_links: Set[str],
) -> Tuple[float, int, int, int, int]:
    """Structural similarity between two notes.

    Tag and link sets hold ids (tag ids, outgoing target note ids).

    Returns:
        ``(similarity, tag_overlap, link_overlap, incoming_overlap,
        outgoing_overlap)``; similarity lies in [0, 1].
    """
    tag_overlap = len(reference_tags & candidate_tags)
    link_overlap = len(reference_links & candidate_links)
    # Reference points at the candidate / candidate points back at the reference
    incoming_overlap = 1 if candidate_id in reference_links else 0
    outgoing_overlap = 1 if reference_id in candidate_links else 0

    total_possible = (
        max(len(reference_tags), len(candidate_tags)) * TAG_WEIGHT
        + max(len(reference_links), len(candidate_links)) * LINK_WEIGHT
        + INCOMING_WEIGHT
        + OUTGOING_WEIGHT
    )
    if total_possible == 0:
        similarity = 0.0
    else:
        similarity = (
            tag_overlap * TAG_WEIGHT
            + link_overlap * LINK_WEIGHT
            + incoming_overlap * INCOMING_WEIGHT
            + outgoing_overlap * OUTGOING_WEIGHT
        ) / total_possible
    return similarity, tag_overlap, link_overlap, incoming_overlap, outgoing_overlap


def _service_operation(func: Callable[..., Result]) -> Callable[..., Result]:
    """Time a public operation and turn raised errors into ``Err``."""
    operation = func.__name__

    @functools.wraps(func)
    def wrapper(self: "ZettelService", *args: Any, **kwargs: Any) -> Result:
        with timed_operation(operation) as op:
            try:
                result = func(self, *args, **kwargs)
            except ZettelkastenError as e:
                self._logger.warning(f"{operation} failed: {e}")
                result = Err.from_exception(e)
            except Exception as e:
                self._logger.error(
                    f"Unexpected error in {operation}: {e}", exc_info=True
                )
                result = Err(
                    code=ErrorCode.INTERNAL_ERROR,
                    message=f"Unexpected error in {operation}: {e}",
                )
            if not result.ok:
                op["error"] = result.message
            elif result.warnings:
                op["warnings"] = len(result.warnings)
            return result

    return wrapper


def _column_values(rows: Any, column: str) -> List[str]:
    """Non-null values of one column from a list of store rows, as strings."""
    if not isinstance(rows, list):
        return []
    return [
        str(row[column])
        for row in rows
        if isinstance(row, dict) and row.get(column) is not None
    ]


def _normalize_tag_names(tag_names: Optional[Iterable[str]]) -> List[str]:
    """Strip, drop blanks and de-duplicate tag names."""
    if not tag_names:
        return []
    return unique_preserving_order(
        name.strip() for name in tag_names if name and name.strip()
    )


def _parse_note_type(value: Any) -> NoteType:
    try:
        return NoteType(value)
    except ValueError:
        valid = ", ".join(t.value for t in NoteType)
        raise ValidationError(
            f"Invalid note type: {value}. Valid types are: {valid}",
            field="note_type",
            value=value,
            code=ErrorCode.INVALID_NOTE_TYPE,
        )


def _parse_link_type(value: Any) -> LinkType:
    try:
        return LinkType(value)
    except ValueError:
        valid = ", ".join(t.value for t in LinkType)
        raise ValidationError(
            f"Invalid link type: {value}. Valid types are: {valid}",
            field="link_type",
            value=value,
            code=ErrorCode.INVALID_LINK_TYPE,
        )


def _require_id(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise NoteValidationError(f"{field} is required", field=field)
    return str(value).strip()


def _validate_title(title: Optional[str]) -> None:
    if not title or not title.strip():
        raise NoteValidationError(
            "Title is required", field="title", code=ErrorCode.NOTE_TITLE_REQUIRED
        )
    if len(title) > MAX_TITLE_LENGTH:
        raise NoteValidationError(
            f"Title exceeds {MAX_TITLE_LENGTH} characters",
            field="title",
            value=title,
        )


def _validate_content(content: Optional[str]) -> None:
    if not content or not content.strip():
        raise NoteValidationError(
            "Content is required",
            field="content",
            code=ErrorCode.NOTE_CONTENT_REQUIRED,
        )
    if len(content) > MAX_CONTENT_LENGTH:
        raise NoteValidationError(
            f"Content exceeds {MAX_CONTENT_LENGTH} characters",
            field="content",
            value=content[:100],
        )


def _validate_limit(limit: int, field: str = "limit") -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"{field} must be a positive integer", field=field, value=limit)


class ZettelService:
    """Note graph operations over a remote store.

    Args:
        store: Client for the ``notes``/``tags``/``note_tags``/``links``
            collections.
        embedding_service: Best-effort embedder. Without one, notes are
            stored without vectors.
        candidate_pool: How many of the most recently updated notes
            ``find_similar_notes`` compares against.
        export_template: Markdown template for ``export_note``.
        logger: Logger to use; defaults to this module's logger.
    """

    def __init__(
        self,
        store: StoreClient,
        embedding_service: Optional[EmbeddingService] = None,
        *,
        candidate_pool: int = 1000,
        export_template: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._embeddings = embedding_service or EmbeddingService()
        self._candidate_pool = candidate_pool
        self._export_template = export_template or config.export_template
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls,
        cfg: Optional[ZettelstoreConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "ZettelService":
        """Wire a service from configuration.

        Raises:
            ConfigurationError: If the store settings are missing.
        """
        cfg = cfg or config
        return cls(
            StoreClient.from_config(cfg),
            EmbeddingService.from_config(cfg),
            candidate_pool=cfg.similarity_candidate_pool,
            export_template=cfg.export_template,
            logger=logger,
        )

    @property
    def embeddings_available(self) -> bool:
        return self._embeddings.available

    # ========== Internal helpers (raise ZettelkastenError) ==========

    def _fetch_note(self, note_id: str) -> Optional[Note]:
        return codec.decode_note(self._store.get(NOTES, {"id": eq(note_id)}))

    def _require_note(self, note_id: str, role: str = "Note") -> Note:
        note = self._fetch_note(note_id)
        if note is None:
            raise NoteNotFoundError(note_id, f"{role} with ID '{note_id}' not found")
        return note

    def _fetch_note_by_title(self, title: str) -> Optional[Note]:
        return codec.decode_note(
            self._store.get(
                NOTES, {"title": eq(title), "order": "created_at.desc", "limit": 1}
            )
        )

    def _embed(
        self, title: str, content: str, warnings: List[str]
    ) -> Optional[List[float]]:
        if not self._embeddings.available:
            return None
        vector = self._embeddings.embed(embedding_text(title, content))
        if vector is None:
            warnings.append("Embedding could not be generated; note saved without one")
        return vector

    def _find_tag(self, name: str) -> Optional[Tag]:
        return codec.decode_tag(self._store.get(TAGS, {"name": eq(name), "limit": 1}))

    def _find_or_create_tag(self, name: str) -> Tag:
        tag = self._find_tag(name)
        if tag is not None:
            return tag
        tag = codec.decode_tag(self._store.post(TAGS, codec.encode_tag_payload(name)))
        if tag is None:
            # Store did not echo the row
            tag = self._find_tag(name)
        if tag is None:
            raise TagError(f"Tag '{name}' could not be created", tag_name=name)
        self._logger.debug(f"Created tag '{name}' ({tag.id})")
        return tag

    def _tag_ids_for_note(self, note_id: str) -> Set[str]:
        rows = self._store.get(
            NOTE_TAGS, {"note_id": eq(note_id), "select": "note_id,tag_id"}
        )
        return {row.tag_id for row in codec.decode_note_tags(rows)}

    def _outgoing_ids(self, note_id: str) -> Set[str]:
        rows = self._store.get(LINKS, {"source_id": eq(note_id), "select": "target_id"})
        return set(_column_values(rows, "target_id")) - {note_id}

    def _attach_tags(
        self, note_id: str, tag_names: List[str]
    ) -> Tuple[List[str], List[str]]:
        """Attach tags one by one; returns ``(added, warnings)``."""
        added: List[str] = []
        warnings: List[str] = []
        try:
            existing = self._tag_ids_for_note(note_id)
        except ZettelkastenError as e:
            self._logger.warning(f"Could not read tags of note {note_id}: {e}")
            warnings.append(f"Tags not added: existing tags could not be read: {e.message}")
            return added, warnings
        for name in tag_names:
            if len(name) > MAX_TAG_NAME_LENGTH:
                warnings.append(
                    f"Tag '{name[:20]}...' skipped: longer than {MAX_TAG_NAME_LENGTH} characters"
                )
                continue
            try:
                tag = self._find_or_create_tag(name)
                if tag.id in existing:
                    self._logger.debug(f"Note {note_id} already has tag '{name}'")
                    continue
                self._store.post(
                    NOTE_TAGS, codec.encode_note_tag_payload(note_id, tag.id)
                )
                existing.add(tag.id)
                added.append(name)
            except ZettelkastenError as e:
                self._logger.warning(f"Failed to add tag '{name}' to note {note_id}: {e}")
                warnings.append(f"Failed to add tag '{name}': {e.message}")
        return added, warnings

    # ========== Note lifecycle ==========

    @_service_operation
    def create_note(
        self,
        title: str,
        content: str,
        note_type: Any = NoteType.PERMANENT,
        tags: Optional[List[str]] = None,
    ) -> Result:
        """Create a note, embed it, and attach any tags.

        Args:
            title: Note title (required).
            content: Note content (required).
            note_type: One of the ``NoteType`` values.
            tags: Tag names to attach after the note exists.

        Returns:
            ``Ok(Note)``; tag and embedding problems are reported as warnings.
        """
        _validate_title(title)
        _validate_content(content)
        note_type = _parse_note_type(note_type)
        tag_names = _normalize_tag_names(tags)

        warnings: List[str] = []
        embedding = self._embed(title, content, warnings)
        payload = codec.encode_note_payload(title, content, note_type, embedding)

        note = codec.decode_note(self._store.post(NOTES, payload))
        if note is None:
            self._logger.info(
                f"Create response carried no row; looking up note by title '{title[:50]}'"
            )
            note = self._fetch_note_by_title(title)
        if note is None:
            raise StoreError(
                "Note was created but could not be read back",
                method="POST",
                path=NOTES,
                code=ErrorCode.STORE_UNEXPECTED_RESPONSE,
            )

        if tag_names:
            _, tag_warnings = self._attach_tags(note.id, tag_names)
            warnings.extend(tag_warnings)

        self._logger.info(f"Created note {note.id} '{note.title[:50]}'")
        return Ok(note, warnings)

    @_service_operation
    def get_note(self, note_id: str) -> Result:
        """Look a note up by id."""
        return Ok(self._require_note(_require_id(note_id, "note_id")))

    @_service_operation
    def get_note_by_title(self, title: str) -> Result:
        """Look a note up by exact title."""
        if not title or not title.strip():
            raise NoteValidationError(
                "Title is required", field="title", code=ErrorCode.NOTE_TITLE_REQUIRED
            )
        note = self._fetch_note_by_title(title)
        if note is None:
            raise NoteNotFoundError(title, f"Note with title '{title}' not found")
        return Ok(note)

    @_service_operation
    def update_note(
        self,
        note_id: str,
        title: Optional[str] = None,
        content: Optional[str] = None,
        note_type: Optional[Any] = None,
        tags: Optional[List[str]] = None,
    ) -> Result:
        """Apply a partial update and return the re-read note.

        The embedding is regenerated from the merged title and content
        whenever either changes. If that fails the old vector is cleared
        rather than left describing the previous text. Tags are additive.
        """
        note_id = _require_id(note_id, "note_id")
        if title is not None:
            _validate_title(title)
        if content is not None:
            _validate_content(content)
        parsed_type = _parse_note_type(note_type) if note_type is not None else None
        tag_names = _normalize_tag_names(tags)

        existing = self._require_note(note_id)

        warnings: List[str] = []
        embedding = None
        text_changed = title is not None or content is not None
        if text_changed:
            embedding = self._embed(
                title if title is not None else existing.title,
                content if content is not None else existing.content,
                warnings,
            )

        patch = codec.encode_note_patch(
            title=title,
            content=content,
            note_type=parsed_type,
            embedding=embedding,
            clear_embedding=text_changed and embedding is None and existing.has_embedding,
        )
        self._store.patch(NOTES, patch, {"id": eq(note_id)})

        if tag_names:
            _, tag_warnings = self._attach_tags(note_id, tag_names)
            warnings.extend(tag_warnings)

        note = self._require_note(note_id)
        self._logger.info(f"Updated note {note_id}")
        return Ok(note, warnings)

    @_service_operation
    def delete_note(self, note_id: str) -> Result:
        """Delete a note after confirming it exists."""
        note_id = _require_id(note_id, "note_id")
        self._require_note(note_id)
        self._store.delete(NOTES, {"id": eq(note_id)})
        self._logger.info(f"Deleted note {note_id}")
        return Ok({"note_id": note_id, "deleted": True})

    @_service_operation
    def get_all_notes(self, limit: int = 100, offset: int = 0) -> Result:
        """Page through notes, most recently updated first."""
        _validate_limit(limit)
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError(
                "offset must be a non-negative integer", field="offset", value=offset
            )
        rows = self._store.get(
            NOTES, {"order": "updated_at.desc", "limit": limit, "offset": offset}
        )
        return Ok(codec.decode_notes(rows))

    @_service_operation
    def export_note(self, note_id: str, format: str = "markdown") -> Result:
        """Render a note as text. Only ``markdown`` is supported."""
        note_id = _require_id(note_id, "note_id")
        if (format or "").lower() not in SUPPORTED_EXPORT_FORMATS:
            raise ValidationError(
                f"Unsupported export format: {format}",
                field="format",
                value=format,
                code=ErrorCode.UNSUPPORTED_FORMAT,
            )
        note = self._require_note(note_id)
        tag_ids = self._tag_ids_for_note(note_id)
        tag_names = sorted(t.name for t in self._tags_by_ids(tag_ids))

        tags_line = f"**Tags:** {', '.join(tag_names)}\n" if tag_names else ""
        document = self._export_template.format(
            title=note.title,
            content=note.content,
            note_type=note.note_type.value,
            tags_line=tags_line,
            created_at=note.created_at.isoformat() if note.created_at else "unknown",
            updated_at=note.updated_at.isoformat() if note.updated_at else "unknown",
        )
        return Ok(document)

    # ========== Tags ==========

    def _tags_by_ids(self, tag_ids: Iterable[str]) -> List[Tag]:
        ids = sorted(tag_ids)
        if not ids:
            return []
        return codec.decode_tags(
            self._store.get(TAGS, {"id": in_list(ids), "order": "name.asc"})
        )

    @_service_operation
    def add_tags_to_note(self, note_id: str, tag_names: List[str]) -> Result:
        """Find-or-create each tag and attach it to the note.

        Duplicate names in one call collapse to one tag and one join row.
        Tags the note already carries are left alone and not reported as
        added. Per-tag failures are warnings, never an error.
        """
        note_id = _require_id(note_id, "note_id")
        names = _normalize_tag_names(tag_names)
        if not names:
            raise ValidationError("At least one tag name is required", field="tag_names")
        self._require_note(note_id)

        added, warnings = self._attach_tags(note_id, names)
        return Ok(TagAttachment(note_id=note_id, added_tags=added), warnings)

    @_service_operation
    def get_note_tags(self, note_id: str) -> Result:
        """Tags attached to a note, by name."""
        note_id = _require_id(note_id, "note_id")
        return Ok(self._tags_by_ids(self._tag_ids_for_note(note_id)))

    @_service_operation
    def get_all_tags(self) -> Result:
        return Ok(codec.decode_tags(self._store.get(TAGS, {"order": "name.asc"})))

    @_service_operation
    def get_notes_by_tag(self, tag_name: str, limit: int = 50) -> Result:
        """Notes carrying a tag, most recently updated first."""
        if not tag_name or not tag_name.strip():
            raise ValidationError("Tag name is required", field="tag_name")
        _validate_limit(limit)
        tag_name = tag_name.strip()
        tag = self._find_tag(tag_name)
        if tag is None:
            raise TagError(
                f"Tag '{tag_name}' not found",
                tag_name=tag_name,
                code=ErrorCode.TAG_NOT_FOUND,
            )
        rows = self._store.get(
            NOTE_TAGS, {"tag_id": eq(tag.id), "select": "note_id,tag_id"}
        )
        note_ids = unique_preserving_order(
            row.note_id for row in codec.decode_note_tags(rows)
        )
        if not note_ids:
            return Ok([])
        notes = self._store.get(
            NOTES,
            {"id": in_list(note_ids), "order": "updated_at.desc", "limit": limit},
        )
        return Ok(codec.decode_notes(notes))

    @_service_operation
    def remove_tag_from_note(self, note_id: str, tag_name: str) -> Result:
        """Detach a tag from a note. The tag itself is kept."""
        note_id = _require_id(note_id, "note_id")
        if not tag_name or not tag_name.strip():
            raise ValidationError("Tag name is required", field="tag_name")
        tag_name = tag_name.strip()
        self._require_note(note_id)
        tag = self._find_tag(tag_name)
        if tag is None:
            raise TagError(
                f"Tag '{tag_name}' not found",
                tag_name=tag_name,
                code=ErrorCode.TAG_NOT_FOUND,
            )
        self._store.delete(NOTE_TAGS, {"note_id": eq(note_id), "tag_id": eq(tag.id)})
        return Ok({"note_id": note_id, "tag": tag_name, "removed": True})

    # ========== Links ==========

    @_service_operation
    def create_link(
        self,
        source_id: str,
        target_id: str,
        link_type: Any = LinkType.REFERENCE,
        description: Optional[str] = None,
        bidirectional: bool = False,
    ) -> Result:
        """Create a directed link, plus its inverse when ``bidirectional``.

        The reverse link gets the semantic inverse type (``extends`` becomes
        ``extended_by``). If writing it fails, the primary link still
        stands: the result has no ``target_note``/``inverse_link`` and
        carries a warning.
        """
        if not source_id or not target_id:
            raise LinkError(
                "Source ID and target ID are required",
                source_id=source_id,
                target_id=target_id,
            )
        if source_id == target_id:
            raise LinkError(
                "A note cannot link to itself",
                source_id=source_id,
                target_id=target_id,
                code=ErrorCode.LINK_SELF_REFERENCE,
            )
        link_type = _parse_link_type(link_type)
        if description is not None and len(description) > MAX_LINK_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description exceeds {MAX_LINK_DESCRIPTION_LENGTH} characters",
                field="description",
                value=description,
            )

        source_note = self._require_note(source_id, "Source note")
        target_note = self._require_note(target_id, "Target note")

        link = Link(
            source_id=source_id,
            target_id=target_id,
            link_type=link_type,
            description=description,
        )
        created = self._store.post(
            LINKS,
            codec.encode_link_payload(source_id, target_id, link_type, description),
        )
        link = codec.decode_link(created) or link

        result = LinkResult(source_note=source_note, link=link)
        warnings: List[str] = []
        if bidirectional:
            inverse = link.inverse()
            try:
                created = self._store.post(
                    LINKS,
                    codec.encode_link_payload(
                        inverse.source_id,
                        inverse.target_id,
                        inverse.link_type,
                        inverse.description,
                    ),
                )
                result.inverse_link = codec.decode_link(created) or inverse
                result.target_note = target_note
            except ZettelkastenError as e:
                self._logger.warning(
                    f"Inverse link {target_id} -> {source_id} not created: {e}"
                )
                warnings.append(f"Inverse link could not be created: {e.message}")

        self._logger.info(
            f"Linked {source_id} -[{link_type.value}]-> {target_id}"
            + (" (bidirectional)" if result.inverse_link else "")
        )
        return Ok(result, warnings)

    @_service_operation
    def remove_link(
        self,
        source_id: str,
        target_id: str,
        link_type: Optional[Any] = None,
        bidirectional: bool = False,
    ) -> Result:
        """Delete links matching ``(source, target[, type])``.

        With ``bidirectional`` the mirrored link is removed too, using the
        inverse type when a type is given. A missing or failing mirror is
        reported as a warning only.
        """
        if not source_id or not target_id:
            raise LinkError(
                "Source ID and target ID are required",
                source_id=source_id,
                target_id=target_id,
            )
        parsed_type = _parse_link_type(link_type) if link_type is not None else None

        params = {"source_id": eq(source_id), "target_id": eq(target_id)}
        if parsed_type is not None:
            params["link_type"] = eq(parsed_type.value)
        deleted = self._store.delete(LINKS, params)

        outcome: Dict[str, Any] = {
            "source_id": source_id,
            "target_id": target_id,
            "removed": len(deleted) if isinstance(deleted, list) else None,
        }
        warnings: List[str] = []
        if bidirectional:
            mirror = {"source_id": eq(target_id), "target_id": eq(source_id)}
            if parsed_type is not None:
                mirror["link_type"] = eq(inverse_link_type(parsed_type).value)
            try:
                deleted = self._store.delete(LINKS, mirror)
                outcome["inverse_removed"] = (
                    len(deleted) if isinstance(deleted, list) else None
                )
            except ZettelkastenError as e:
                self._logger.warning(
                    f"Mirrored link {target_id} -> {source_id} not removed: {e}"
                )
                warnings.append(f"Mirrored link could not be removed: {e.message}")

        return Ok(outcome, warnings)

    @_service_operation
    def get_linked_notes(self, note_id: str, direction: Any = "outgoing") -> Result:
        """Notes at the other end of a note's links.

        Args:
            note_id: The note whose links to follow.
            direction: ``outgoing``, ``incoming`` or ``both``.

        Returns:
            ``Ok(List[Note])``, deduplicated, never containing ``note_id``.
            Links to notes that no longer exist or cannot be read are skipped.
        """
        note_id = _require_id(note_id, "note_id")
        try:
            direction = LinkDirection(str(direction).lower())
        except ValueError:
            raise ValidationError(
                "Direction must be 'outgoing', 'incoming', or 'both'",
                field="direction",
                value=direction,
                code=ErrorCode.INVALID_DIRECTION,
            )

        if direction is LinkDirection.OUTGOING:
            params = {"source_id": eq(note_id)}
        elif direction is LinkDirection.INCOMING:
            params = {"target_id": eq(note_id)}
        else:
            quoted = quote_filter_value(note_id)
            params = {"or": or_filter(f"source_id.eq.{quoted}", f"target_id.eq.{quoted}")}

        rows = self._store.get(LINKS, params)
        other_ids = []
        for link in codec.decode_links(rows):
            other_ids.append(link.target_id if link.source_id == note_id else link.source_id)

        notes = []
        for other_id in unique_preserving_order(other_ids):
            if other_id == note_id:
                continue
            try:
                note = self._fetch_note(other_id)
            except ZettelkastenError as e:
                self._logger.warning(f"Skipping linked note {other_id}: {e}")
                continue
            if note is None:
                self._logger.debug(f"Skipping link to missing note {other_id}")
                continue
            notes.append(note)
        return Ok(notes)

    # ========== Similarity & search ==========

    @_service_operation
    def find_similar_notes(
        self, note_id: str, threshold: float = 0.3, limit: int = 5
    ) -> Result:
        """Rank notes by shared tags and links with the given note.

        Candidates are the ``candidate_pool`` most recently updated notes.
        Each candidate costs two store reads (its tags and its outgoing
        links), so the operation is O(N) requests and meant for small
        personal collections. A candidate whose tags or links cannot
        be read is left out of the ranking.

        Returns:
            ``Ok(List[SimilarNote])`` with similarity >= ``threshold``,
            highest first, at most ``limit`` entries.
        """
        note_id = _require_id(note_id, "note_id")
        valid_threshold = (
            isinstance(threshold, (int, float))
            and not isinstance(threshold, bool)
            and 0.0 <= threshold <= 1.0
        )
        if not valid_threshold:
            raise ValidationError(
                "Threshold must be between 0.0 and 1.0",
                field="threshold",
                value=threshold,
                code=ErrorCode.INVALID_THRESHOLD,
            )
        _validate_limit(limit)

        self._require_note(note_id)
        reference_tags = self._tag_ids_for_note(note_id)
        reference_links = self._outgoing_ids(note_id)

        candidates = codec.decode_notes(
            self._store.get(
                NOTES,
                {
                    "id": f"neq.{note_id}",
                    "order": "updated_at.desc",
                    "limit": self._candidate_pool,
                },
            )
        )

        results: List[SimilarNote] = []
        for candidate in candidates:
            if candidate.id == note_id:
                continue
            try:
                candidate_tags = self._tag_ids_for_note(candidate.id)
                candidate_links = self._outgoing_ids(candidate.id)
            except ZettelkastenError as e:
                self._logger.warning(f"Skipping similarity candidate {candidate.id}: {e}")
                continue
            similarity, tags, links, incoming, outgoing = score_similarity(
                note_id,
                reference_tags,
                reference_links,
                candidate.id,
                candidate_tags,
                candidate_links,
            )
            if similarity >= threshold:
                results.append(
                    SimilarNote(
                        note=candidate,
                        similarity=similarity,
                        tag_overlap=tags,
                        link_overlap=links,
                        incoming_overlap=incoming,
                        outgoing_overlap=outgoing,
                    )
                )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return Ok(results[:limit])

    @_service_operation
    def search_notes(
        self,
        query: Optional[str] = None,
        note_type: Optional[Any] = None,
        tags: Optional[List[str]] = None,
        limit: int = 50,
    ) -> Result:
        """Substring search over title or content, optionally by note type.

        Matching is case-insensitive. Tag filtering is not implemented: a
        non-empty ``tags`` argument is ignored and reported as a warning.
        """
        _validate_limit(limit)
        params: Dict[str, Any] = {"order": "updated_at.desc", "limit": limit}
        if query and query.strip():
            term = query.strip()
            params["or"] = or_filter(
                ilike_condition("title", term), ilike_condition("content", term)
            )
        if note_type is not None:
            params["note_type"] = eq(_parse_note_type(note_type).value)

        warnings: List[str] = []
        if _normalize_tag_names(tags):
            warnings.append("Filtering by tags is not supported yet; 'tags' was ignored")

        return Ok(codec.decode_notes(self._store.get(NOTES, params)), warnings)
