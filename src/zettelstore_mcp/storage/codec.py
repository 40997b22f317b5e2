"""Conversion between store records and domain models.

Store rows arrive as plain JSON objects (or lists of them, since PostgREST
answers every query with an array). Decoders accept either shape and
never raise: a record that does not decode is logged and dropped.
Encoders build the JSON payloads for writes.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from zettelstore_mcp.models.schema import (
    Link,
    LinkType,
    Note,
    NoteTag,
    NoteType,
    Tag,
    utc_now,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

_NOTE_FIELDS = (
    "id",
    "title",
    "content",
    "note_type",
    "embedding",
    "created_at",
    "updated_at",
)
_TAG_FIELDS = ("id", "name", "created_at")
_NOTE_TAG_FIELDS = ("note_id", "tag_id", "created_at")
_LINK_FIELDS = (
    "id",
    "source_id",
    "target_id",
    "link_type",
    "description",
    "created_at",
)
_ID_FIELDS = ("id", "note_id", "tag_id", "source_id", "target_id")


def _first_record(record: Any) -> Optional[Dict[str, Any]]:
    """Unwrap a single-element response into its record."""
    if isinstance(record, list):
        record = record[0] if record else None
    if not record or not isinstance(record, dict):
        return None
    return record


def _pick(record: Dict[str, Any], fields: Sequence[str]) -> Dict[str, Any]:
    """Keep known columns, dropping nulls so model defaults apply."""
    data = {}
    for name in fields:
        value = record.get(name)
        if value is None:
            continue
        if name in _ID_FIELDS:
            value = str(value)
        data[name] = value
    return data


def _parse_embedding(value: Any) -> Optional[List[float]]:
    """Accept a JSON array or a pgvector text literal like ``"[0.1,0.2]"``."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Ignoring undecodable embedding value")
            return None
    if not isinstance(value, list):
        return None
    return [float(v) for v in value]


def _decode(model: Type[M], record: Any, fields: Sequence[str]) -> Optional[M]:
    row = _first_record(record)
    if row is None:
        return None
    try:
        return model(**_pick(row, fields))
    except (PydanticValidationError, TypeError, ValueError) as e:
        logger.warning(f"Could not decode {model.__name__} record: {e}")
        return None


def _decode_many(model: Type[M], records: Any, fields: Sequence[str]) -> List[M]:
    if not isinstance(records, list):
        return []
    decoded = []
    for record in records:
        item = _decode(model, record, fields)
        if item is not None:
            decoded.append(item)
    return decoded


def decode_note(record: Any) -> Optional[Note]:
    """Build a Note from a store record, or None if it does not decode."""
    row = _first_record(record)
    if row is None:
        return None
    try:
        data = _pick(row, _NOTE_FIELDS)
        if "embedding" in data:
            data["embedding"] = _parse_embedding(data["embedding"])
        return Note(**data)
    except (PydanticValidationError, TypeError, ValueError) as e:
        logger.warning(f"Could not decode Note record: {e}")
        return None


def decode_notes(records: Any) -> List[Note]:
    if not isinstance(records, list):
        return []
    notes = []
    for record in records:
        note = decode_note(record)
        if note is not None:
            notes.append(note)
    return notes


def decode_tag(record: Any) -> Optional[Tag]:
    return _decode(Tag, record, _TAG_FIELDS)


def decode_tags(records: Any) -> List[Tag]:
    return _decode_many(Tag, records, _TAG_FIELDS)


def decode_note_tags(records: Any) -> List[NoteTag]:
    return _decode_many(NoteTag, records, _NOTE_TAG_FIELDS)


def decode_link(record: Any) -> Optional[Link]:
    return _decode(Link, record, _LINK_FIELDS)


def decode_links(records: Any) -> List[Link]:
    return _decode_many(Link, records, _LINK_FIELDS)


def _timestamp() -> str:
    return utc_now().isoformat()


def encode_note_payload(
    title: str,
    content: str,
    note_type: NoteType = NoteType.PERMANENT,
    embedding: Optional[Sequence[float]] = None,
) -> Dict[str, Any]:
    """Payload for creating a note; ``embedding`` is omitted when absent."""
    now = _timestamp()
    payload: Dict[str, Any] = {
        "title": title,
        "content": content,
        "note_type": NoteType(note_type).value,
        "created_at": now,
        "updated_at": now,
    }
    if embedding:
        payload["embedding"] = list(embedding)
    return payload


def encode_note_patch(
    title: Optional[str] = None,
    content: Optional[str] = None,
    note_type: Optional[NoteType] = None,
    embedding: Optional[Sequence[float]] = None,
    clear_embedding: bool = False,
) -> Dict[str, Any]:
    """Partial update payload. ``updated_at`` is always refreshed.

    ``clear_embedding`` writes an explicit null, for text changes whose new
    embedding could not be generated.
    """
    payload: Dict[str, Any] = {"updated_at": _timestamp()}
    if title is not None:
        payload["title"] = title
    if content is not None:
        payload["content"] = content
    if note_type is not None:
        payload["note_type"] = NoteType(note_type).value
    if embedding:
        payload["embedding"] = list(embedding)
    elif clear_embedding:
        payload["embedding"] = None
    return payload


def encode_tag_payload(name: str) -> Dict[str, Any]:
    return {"name": name, "created_at": _timestamp()}


def encode_note_tag_payload(note_id: str, tag_id: str) -> Dict[str, Any]:
    return {"note_id": note_id, "tag_id": tag_id, "created_at": _timestamp()}


def encode_link_payload(
    source_id: str,
    target_id: str,
    link_type: LinkType = LinkType.REFERENCE,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """Payload for one directed link row. ``description`` may be null."""
    return {
        "source_id": source_id,
        "target_id": target_id,
        "link_type": LinkType(link_type).value,
        "description": description,
        "created_at": _timestamp(),
    }
