"""Tests for the EntryRepository class."""
import os
from unittest.mock import patch

import pytest

from strata_vault.exceptions import ErrorCode, StorageError, ValidationError
from strata_vault.models.schema import Connection, Entry


def write_raw(repository, name, text):
    path = repository.entries_dir / name
    path.write_text(text, encoding="utf-8")
    return path


class TestEntryRepository:
    """Tests for the EntryRepository class."""

    def test_write_and_get(self, entry_repository):
        entry = Entry(id="e1", title="Hello", body="World", tags=["x"])
        entry_repository.write(entry)
        assert (entry_repository.entries_dir / "e1.md").exists()

        loaded = entry_repository.get("e1")
        assert loaded is not None
        assert loaded.title == "Hello"
        assert loaded.body == "World"
        assert loaded.tags == ["x"]

    def test_write_stamps_modified(self, entry_repository):
        entry = Entry(id="e1", title="Hello")
        before = entry.modified
        written = entry_repository.write(entry)
        assert written.modified >= before
        assert written.created == entry.created

    def test_get_missing_returns_none(self, entry_repository):
        assert entry_repository.get("nope") is None
        assert not entry_repository.exists("nope")

    def test_unsafe_id_is_not_found(self, entry_repository, test_config):
        secret = test_config.get_vault_path() / "secrets.md"
        secret.write_text("---\nid: secrets\n---\nhidden", encoding="utf-8")
        assert entry_repository.get("../secrets") is None
        assert entry_repository.decode("../secrets") is None
        assert not entry_repository.exists("../secrets")
        assert entry_repository.delete("../secrets") is False
        assert secret.exists()

    def test_unsafe_id_write_rejected(self, entry_repository):
        entry = Entry.model_construct(id="../secrets", body="x")
        with pytest.raises(ValidationError) as exc_info:
            entry_repository.write(entry)
        assert exc_info.value.code == ErrorCode.PATH_TRAVERSAL_DETECTED

    def test_crlf_body_survives_store_round_trip(self, entry_repository):
        body = "line one\r\nline two\r\n"
        entry_repository.write(Entry(id="crlf", title="Windows", body=body))
        assert entry_repository.get("crlf").body == body
        raw = (entry_repository.entries_dir / "crlf.md").read_bytes()
        assert b"line one\r\nline two\r\n" in raw

    def test_crlf_file_keeps_line_endings_through_mutators(self, entry_repository):
        path = entry_repository.entries_dir / "dos.md"
        path.write_bytes(b"---\r\nid: dos\r\ntitle: Dos\r\ntags: [a]\r\n---\r\nfirst\r\nsecond\r\n")
        pinned = entry_repository.pin("dos")
        assert pinned.title == "Dos"
        assert pinned.tags == ["a"]
        assert entry_repository.get("dos").body == "first\r\nsecond\r\n"
        entry_repository.list_entries()
        assert entry_repository.search_index.search("first\r\nsecond") == {"dos"}

    def test_bom_file_keeps_metadata(self, entry_repository):
        path = entry_repository.entries_dir / "bom.md"
        path.write_text(
            "\ufeff---\nid: bom\ntitle: Kept title\npinned: true\ntags: [x]\n---\nbody",
            encoding="utf-8",
        )
        result = entry_repository.decode("bom")
        assert result.pristine is False  # created/modified missing
        assert result.entry.title == "Kept title"
        assert result.entry.pinned is True
        assert result.entry.body == "body"

        entry_repository.archive("bom")
        rewritten = entry_repository.get("bom")
        assert rewritten.title == "Kept title"
        assert rewritten.tags == ["x"]
        assert rewritten.body == "body"
        assert not path.read_text(encoding="utf-8").startswith("\ufeff")

    def test_list_entries_excludes_body(self, entry_repository):
        entry_repository.write(Entry(id="e1", title="One", body="b1"))
        entry_repository.write(Entry(id="e2", title="Two", body="b2"))
        listed = entry_repository.list_entries()
        assert sorted(e.id for e in listed) == ["e1", "e2"]
        assert all(not hasattr(e, "body") for e in listed)

    def test_list_ignores_other_files(self, entry_repository):
        entry_repository.write(Entry(id="e1"))
        write_raw(entry_repository, "notes.txt", "not an entry")
        (entry_repository.entries_dir / "folder.md").mkdir()
        assert [e.id for e in entry_repository.list_entries()] == ["e1"]

    def test_malformed_file_still_listed_with_defaults(self, entry_repository):
        write_raw(entry_repository, "broken.md", "no frontmatter at all")
        listed = entry_repository.list_entries()
        assert [e.id for e in listed] == ["broken"]
        result = entry_repository.decode("broken")
        assert not result.pristine
        assert result.body == "no frontmatter at all"

    def test_unreadable_file_is_skipped(self, entry_repository):
        entry_repository.write(Entry(id="good"))
        (entry_repository.entries_dir / "bad.md").write_bytes(b"\xff\xfe\x00garbage")
        assert [e.id for e in entry_repository.list_entries()] == ["good"]
        assert entry_repository.get("bad") is None

    def test_file_name_overrides_declared_id(self, entry_repository):
        write_raw(entry_repository, "real.md", "---\nid: fake\ntitle: T\n---\nbody")
        entry = entry_repository.get("real")
        assert entry.id == "real"
        assert entry.title == "T"

    def test_write_failure_raises_storage_error(self, entry_repository):
        entry = Entry(id="e1")
        with patch("builtins.open", side_effect=PermissionError("read-only")):
            with pytest.raises(StorageError) as exc_info:
                entry_repository.write(entry)
        assert exc_info.value.code == ErrorCode.STORAGE_WRITE_FAILED
        assert "e1" not in entry_repository.search_index


class TestIndexConsistency:
    """The search index always matches the stored entries."""

    def test_list_reconciles_index(self, entry_repository):
        entry_repository.write(Entry(id="e1", title="alpha"))
        entry_repository.write(Entry(id="e2", title="beta"))
        # Changes made behind the repository's back
        os.remove(entry_repository.entries_dir / "e1.md")
        write_raw(entry_repository, "e3.md", "---\nid: e3\ntitle: gamma\n---\n")
        listed = entry_repository.list_entries()
        assert entry_repository.search_index.ids() == {e.id for e in listed}
        assert entry_repository.search_index.ids() == {"e2", "e3"}

    def test_write_updates_index(self, entry_repository):
        entry = entry_repository.write(Entry(id="e1", title="alpha", body="first"))
        assert entry_repository.search_index.search("first") == {"e1"}
        entry.body = "second"
        entry_repository.write(entry)
        assert entry_repository.search_index.search("first") == set()
        assert entry_repository.search_index.search("second") == {"e1"}

    def test_rebuild_index_counts(self, entry_repository):
        for i in range(3):
            entry_repository.write(Entry(id=f"e{i}"))
        entry_repository.search_index.clear()
        assert entry_repository.rebuild_index() == 3


class TestDelete:
    """Tests for permanent deletion."""

    def test_delete_removes_file_index_and_connections(self, entry_repository):
        entry_repository.write(Entry(id="a", title="doomed"))
        entry_repository.write(Entry(id="b"))
        entry_repository.write(Entry(id="c"))
        connections = entry_repository.connections
        connections.add(Connection(source="a", target="b"))
        connections.add(Connection(source="c", target="a"))
        connections.add(Connection(source="b", target="c"))

        assert entry_repository.delete("a") is True
        assert not entry_repository.exists("a")
        assert "a" not in entry_repository.search_index
        remaining = connections.load()
        assert remaining == [Connection(source="b", target="c")]
        assert all(not c.mentions("a") for c in remaining)

    def test_delete_is_idempotent(self, entry_repository):
        entry_repository.write(Entry(id="a"))
        assert entry_repository.delete("a") is True
        assert entry_repository.delete("a") is False
        assert entry_repository.delete("never-existed") is False


class TestFlagMutators:
    """Tests for archive, trash, restore, pin and unpin."""

    def test_archive_and_restore(self, entry_repository):
        entry_repository.write(Entry(id="e1"))
        assert entry_repository.archive("e1").archived
        assert entry_repository.get("e1").archived
        restored = entry_repository.restore("e1")
        assert not restored.archived and not restored.trashed

    def test_trash_then_restore_clears_both_flags(self, entry_repository):
        entry_repository.write(Entry(id="e1"))
        entry_repository.archive("e1")
        entry_repository.trash("e1")
        entry = entry_repository.get("e1")
        assert entry.archived and entry.trashed
        entry_repository.restore("e1")
        entry = entry_repository.get("e1")
        assert not entry.archived and not entry.trashed

    def test_pin_unpin(self, entry_repository):
        entry_repository.write(Entry(id="e1", body="keep me"))
        assert entry_repository.pin("e1").pinned
        unpinned = entry_repository.unpin("e1")
        assert not unpinned.pinned
        assert unpinned.body == "keep me"

    def test_mutators_on_missing_entry(self, entry_repository):
        for method in (
            entry_repository.archive,
            entry_repository.trash,
            entry_repository.restore,
            entry_repository.pin,
            entry_repository.unpin,
        ):
            assert method("ghost") is None
        assert entry_repository.list_entries() == []
