# tests/test_models.py
"""Tests for the data models of the Strata vault."""
import datetime
from datetime import timezone

import pytest
from pydantic import ValidationError

from strata_vault.models.schema import (
    Connection,
    DEFAULT_TITLE,
    Entry,
    EntryMeta,
    Pressure,
    Structure,
    generate_id,
    normalize_tags,
    parse_timestamp,
    validate_safe_path_component,
)


class TestEntryModel:
    """Tests for the Entry model."""

    def test_entry_defaults(self):
        """A bare entry gets a fresh ID and neutral defaults."""
        entry = Entry()
        assert entry.id
        assert entry.title == DEFAULT_TITLE
        assert entry.structure == Structure.THOUGHT
        assert entry.pressure == Pressure.LOW
        assert not entry.pinned and not entry.archived and not entry.trashed
        assert entry.notebook == ""
        assert entry.tags == []
        assert entry.sort_order is None
        assert entry.body == ""
        assert entry.created.tzinfo is not None
        assert entry.modified.tzinfo is not None

    def test_tags_are_normalized(self):
        entry = Entry(id="e1", tags=["Work", " work ", "", "Ideas"])
        assert entry.tags == ["work", "ideas"]

    def test_tag_operations(self):
        """Test adding and removing tags."""
        entry = Entry(id="e1", tags=["initial"])
        entry.add_tag("Test")
        assert entry.tags == ["initial", "test"]
        entry.add_tag("test")
        assert entry.tags == ["initial", "test"]
        entry.remove_tag("INITIAL")
        assert entry.tags == ["test"]

    def test_unsafe_ids_rejected(self):
        for bad_id in ["", "../etc", "a/b", "a\\b", "has space", "dot.md"]:
            with pytest.raises(ValidationError):
                Entry(id=bad_id)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            Entry(id="e1", colour="red")

    def test_naive_timestamps_become_utc(self):
        naive = datetime.datetime(2024, 1, 2, 3, 4, 5)
        entry = Entry(id="e1", created=naive, modified=naive)
        assert entry.created.tzinfo == timezone.utc

    def test_to_meta_drops_body(self):
        entry = Entry(id="e1", title="T", body="secret", sort_order=300)
        meta = entry.to_meta()
        assert isinstance(meta, EntryMeta)
        assert not isinstance(meta, Entry)
        assert meta.id == "e1"
        assert meta.sort_order == 300
        assert not hasattr(meta, "body")

    def test_enum_values_accepted_as_strings(self):
        entry = Entry(id="e1", structure="decision", pressure="high")
        assert entry.structure is Structure.DECISION
        assert entry.pressure is Pressure.HIGH

    def test_invalid_enum_rejected(self):
        with pytest.raises(ValidationError):
            Entry(id="e1", structure="rant")


class TestConnectionModel:
    """Tests for the Connection model."""

    def test_aliases(self):
        connection = Connection.model_validate({"from": "a", "to": "b"})
        assert connection.source == "a"
        assert connection.target == "b"
        assert connection.to_dict() == {"from": "a", "to": "b"}

    def test_equality_ignores_direction(self):
        assert Connection(source="a", target="b") == Connection(source="b", target="a")
        assert len({Connection(source="a", target="b"), Connection(source="b", target="a")}) == 1

    def test_joins_and_mentions(self):
        connection = Connection(source="a", target="b")
        assert connection.joins("b", "a")
        assert not connection.joins("a", "c")
        assert connection.mentions("a")
        assert not connection.mentions("c")

    def test_empty_endpoint_rejected(self):
        with pytest.raises(ValidationError):
            Connection(source="", target="b")


class TestHelpers:
    """Tests for module-level helpers."""

    def test_generate_id_unique(self):
        ids = {generate_id() for _ in range(100)}
        assert len(ids) == 100
        for value in ids:
            validate_safe_path_component(value)

    def test_parse_timestamp_accepts_trailing_z(self):
        parsed = parse_timestamp("2024-03-01T10:15:00.123Z")
        assert parsed == datetime.datetime(2024, 3, 1, 10, 15, 0, 123000, tzinfo=timezone.utc)

    def test_parse_timestamp_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")
        with pytest.raises(ValueError):
            parse_timestamp(12345)

    def test_normalize_tags_keeps_first_occurrence_order(self):
        assert normalize_tags(["B", "a", "b", " A "]) == ["b", "a"]
