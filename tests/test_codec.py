"""Tests for conversion between store records and models."""
import datetime

from zettelstore_mcp.models.schema import LinkType, NoteType
from zettelstore_mcp.storage import codec


def _note_record(**overrides):
    record = {
        "id": 42,
        "title": "Atomic notes",
        "content": "One idea per note.",
        "note_type": "literature",
        "embedding": None,
        "created_at": "2024-03-01T10:00:00+00:00",
        "updated_at": "2024-03-02T10:00:00+00:00",
    }
    record.update(overrides)
    return record


class TestDecodeNote:
    """Tests for decode_note / decode_notes."""

    def test_decode_record(self):
        note = codec.decode_note(_note_record())
        assert note.id == "42"
        assert note.note_type == NoteType.LITERATURE
        assert note.embedding is None
        assert note.created_at == datetime.datetime(
            2024, 3, 1, 10, 0, tzinfo=datetime.timezone.utc
        )

    def test_decode_first_element_of_list(self):
        note = codec.decode_note([_note_record(id="a"), _note_record(id="b")])
        assert note.id == "a"

    def test_empty_inputs_yield_none(self):
        assert codec.decode_note(None) is None
        assert codec.decode_note([]) is None
        assert codec.decode_note({}) is None
        assert codec.decode_note("not a record") is None

    def test_invalid_record_yields_none(self):
        assert codec.decode_note(_note_record(title="")) is None
        assert codec.decode_note(_note_record(note_type="scribble")) is None

    def test_pgvector_text_embedding(self):
        note = codec.decode_note(_note_record(embedding="[0.5,-0.25,1]"))
        assert note.embedding == [0.5, -0.25, 1.0]

    def test_list_embedding(self):
        note = codec.decode_note(_note_record(embedding=[1, 2]))
        assert note.embedding == [1.0, 2.0]

    def test_extra_columns_ignored(self):
        note = codec.decode_note(_note_record(owner="someone"))
        assert note is not None

    def test_decode_notes_skips_bad_records(self):
        notes = codec.decode_notes(
            [_note_record(id="a"), _note_record(id="b", title=""), "junk"]
        )
        assert [n.id for n in notes] == ["a"]

    def test_decode_notes_non_list(self):
        assert codec.decode_notes(None) == []
        assert codec.decode_notes({"id": "a"}) == []


class TestDecodeTagsAndLinks:
    """Tests for tag, join row and link decoding."""

    def test_decode_tags(self):
        tags = codec.decode_tags([{"id": 1, "name": "python"}, {"id": 2}])
        assert len(tags) == 1
        assert tags[0].id == "1"
        assert tags[0].name == "python"

    def test_decode_tag_single(self):
        assert codec.decode_tag([{"id": "t", "name": "x"}]).name == "x"
        assert codec.decode_tag([]) is None

    def test_decode_note_tags(self):
        rows = codec.decode_note_tags([{"note_id": 1, "tag_id": 2}])
        assert rows[0].note_id == "1"
        assert rows[0].tag_id == "2"

    def test_decode_links(self):
        links = codec.decode_links(
            [
                {"id": 9, "source_id": "a", "target_id": "b", "link_type": "extends"},
                {"source_id": "a", "target_id": "a", "link_type": "reference"},
            ]
        )
        assert len(links) == 1
        assert links[0].link_type == LinkType.EXTENDS
        assert links[0].id == "9"


class TestEncode:
    """Tests for write payloads."""

    def test_note_payload_stamps_timestamps(self):
        payload = codec.encode_note_payload("T", "C", NoteType.HUB)
        assert payload["note_type"] == "hub"
        assert payload["created_at"] == payload["updated_at"]
        datetime.datetime.fromisoformat(payload["created_at"])
        assert "embedding" not in payload

    def test_note_payload_with_embedding(self):
        payload = codec.encode_note_payload("T", "C", embedding=[0.1, 0.2])
        assert payload["embedding"] == [0.1, 0.2]

    def test_note_patch_only_given_fields(self):
        patch = codec.encode_note_patch(title="New")
        assert set(patch) == {"title", "updated_at"}

    def test_note_patch_clear_embedding(self):
        patch = codec.encode_note_patch(content="New", clear_embedding=True)
        assert patch["embedding"] is None
        patch = codec.encode_note_patch(content="New", embedding=[1.0], clear_embedding=True)
        assert patch["embedding"] == [1.0]

    def test_link_payload(self):
        payload = codec.encode_link_payload("a", "b", LinkType.SUPPORTS)
        assert payload["link_type"] == "supports"
        assert payload["description"] is None
        assert payload["source_id"] == "a"

    def test_tag_and_join_payloads(self):
        assert codec.encode_tag_payload("x")["name"] == "x"
        join = codec.encode_note_tag_payload("n", "t")
        assert (join["note_id"], join["tag_id"]) == ("n", "t")
