"""Data models for the Zettelstore MCP server."""

import datetime
from datetime import timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_TITLE_LENGTH = 500
MAX_CONTENT_LENGTH = 10_000
MAX_TAG_NAME_LENGTH = 100
MAX_LINK_DESCRIPTION_LENGTH = 500


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current time with UTC timezone info attached.
    """
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(
    dt_value: Optional[datetime.datetime],
) -> Optional[datetime.datetime]:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Stores that use ``timestamp without time zone`` columns hand back naive
    values; those are assumed to be UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The same datetime with UTC timezone if it was naive, otherwise unchanged.
    """
    if dt_value is None:
        return None
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


class LinkType(str, Enum):
    """Types of links between notes."""

    REFERENCE = "reference"  # Simple reference to another note
    EXTENDS = "extends"  # Current note extends another note
    EXTENDED_BY = "extended_by"  # Current note is extended by another note
    REFINES = "refines"  # Current note refines another note
    REFINED_BY = "refined_by"  # Current note is refined by another note
    CONTRADICTS = "contradicts"  # Current note contradicts another note
    CONTRADICTED_BY = "contradicted_by"  # Current note is contradicted by another note
    QUESTIONS = "questions"  # Current note questions another note
    QUESTIONED_BY = "questioned_by"  # Current note is questioned by another note
    SUPPORTS = "supports"  # Current note supports another note
    SUPPORTED_BY = "supported_by"  # Current note is supported by another note
    RELATED = "related"  # Notes are related in some way


# Semantic inverse of every link type; the mapping is its own inverse.
INVERSE_LINK_TYPES: Dict[LinkType, LinkType] = {
    LinkType.REFERENCE: LinkType.REFERENCE,
    LinkType.EXTENDS: LinkType.EXTENDED_BY,
    LinkType.EXTENDED_BY: LinkType.EXTENDS,
    LinkType.REFINES: LinkType.REFINED_BY,
    LinkType.REFINED_BY: LinkType.REFINES,
    LinkType.CONTRADICTS: LinkType.CONTRADICTED_BY,
    LinkType.CONTRADICTED_BY: LinkType.CONTRADICTS,
    LinkType.QUESTIONS: LinkType.QUESTIONED_BY,
    LinkType.QUESTIONED_BY: LinkType.QUESTIONS,
    LinkType.SUPPORTS: LinkType.SUPPORTED_BY,
    LinkType.SUPPORTED_BY: LinkType.SUPPORTS,
    LinkType.RELATED: LinkType.RELATED,
}


def inverse_link_type(link_type: LinkType) -> LinkType:
    """Return the link type used for the reverse half of a bidirectional link."""
    return INVERSE_LINK_TYPES.get(link_type, link_type)


class NoteType(str, Enum):
    """Types of notes in a Zettelkasten."""

    FLEETING = "fleeting"  # Quick, temporary notes
    LITERATURE = "literature"  # Notes from reading material
    PERMANENT = "permanent"  # Permanent, well-formulated notes
    STRUCTURE = "structure"  # Structure/index notes that organize other notes
    HUB = "hub"  # Hub notes that serve as entry points


class LinkDirection(str, Enum):
    """Which side of a note's links to follow."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


class Note(BaseModel):
    """A Zettelkasten note as persisted in the ``notes`` collection."""

    id: str = Field(..., description="Store-assigned ID of the note")
    title: str = Field(..., description="Title of the note")
    content: str = Field(..., description="Content of the note")
    note_type: NoteType = Field(default=NoteType.PERMANENT, description="Type of note")
    embedding: Optional[List[float]] = Field(
        default=None, description="Vector derived from title and content"
    )
    created_at: Optional[datetime.datetime] = Field(
        default=None, description="When the note was created (UTC)"
    )
    updated_at: Optional[datetime.datetime] = Field(
        default=None, description="When the note was last updated (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def validate_timestamps(
        cls, v: Optional[datetime.datetime]
    ) -> Optional[datetime.datetime]:
        return ensure_timezone_aware(v)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    def summary(self) -> Dict[str, object]:
        """Compact JSON-friendly view without the embedding vector."""
        data = self.model_dump(mode="json", exclude={"embedding"})
        data["has_embedding"] = self.has_embedding
        return data


class Tag(BaseModel):
    """A tag for categorizing notes."""

    id: str = Field(..., description="Store-assigned ID of the tag")
    name: str = Field(..., description="Tag name")
    created_at: Optional[datetime.datetime] = Field(default=None)

    model_config = {"validate_assignment": True, "frozen": True}

    @field_validator("created_at")
    @classmethod
    def validate_created_at(
        cls, v: Optional[datetime.datetime]
    ) -> Optional[datetime.datetime]:
        return ensure_timezone_aware(v)

    def __str__(self) -> str:
        """Return string representation of tag."""
        return self.name


class NoteTag(BaseModel):
    """Join row between a note and a tag."""

    note_id: str
    tag_id: str
    created_at: Optional[datetime.datetime] = None

    model_config = {"frozen": True}


class Link(BaseModel):
    """A directed link between two notes."""

    id: Optional[str] = Field(default=None, description="Store-assigned ID, if any")
    source_id: str = Field(..., description="ID of the source note")
    target_id: str = Field(..., description="ID of the target note")
    link_type: LinkType = Field(default=LinkType.REFERENCE, description="Type of link")
    description: Optional[str] = Field(
        default=None, description="Optional description of the link"
    )
    created_at: Optional[datetime.datetime] = Field(
        default=None, description="When the link was created (UTC)"
    )

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "frozen": True,  # Links are immutable
    }

    @model_validator(mode="after")
    def _reject_self_link(self) -> "Link":
        if self.source_id == self.target_id:
            raise ValueError("A note cannot link to itself")
        return self

    def inverse(self) -> "Link":
        """The reverse half of a bidirectional link."""
        return Link(
            source_id=self.target_id,
            target_id=self.source_id,
            link_type=inverse_link_type(self.link_type),
            description=self.description,
        )


class TagAttachment(BaseModel):
    """Outcome of attaching tags to a note."""

    note_id: str
    added_tags: List[str] = Field(default_factory=list)


class LinkResult(BaseModel):
    """Outcome of creating a link.

    ``target_note`` and ``inverse_link`` are only set when the reverse link of
    a bidirectional request was written.
    """

    source_note: Note
    target_note: Optional[Note] = None
    link: Link
    inverse_link: Optional[Link] = None


class SimilarNote(BaseModel):
    """A candidate note with its structural similarity to a reference note."""

    note: Note
    similarity: float
    tag_overlap: int = 0
    link_overlap: int = 0
    incoming_overlap: int = 0
    outgoing_overlap: int = 0
