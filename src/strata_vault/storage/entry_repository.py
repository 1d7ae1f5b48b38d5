"""Repository for entry storage and retrieval."""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from strata_vault.config import config
from strata_vault.exceptions import ErrorCode, StorageError, ValidationError
from strata_vault.models.schema import (
    Entry,
    EntryMeta,
    utc_now,
    validate_safe_path_component,
)
from strata_vault.storage.connection_repository import ConnectionRepository
from strata_vault.storage.frontmatter_codec import DecodeResult, FrontmatterCodec
from strata_vault.storage.search_index import SearchIndex

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".md"


class EntryRepository:
    """Repository for entry storage and retrieval.

    Each entry lives in ``<entries_dir>/<id>.md``; the file system is the
    source of truth. The repository owns the in-memory SearchIndex and keeps
    it consistent with every listing, write and delete. Deleting an entry
    also drops its connections from the ConnectionRepository.

    Reads degrade gracefully: a file that cannot be read or decoded is
    skipped by listings and reported as not-found by ``get``. Writes and
    deletes raise StorageError so a failed save is never silently lost.
    An ID that is not a safe file name has no entry file: reads and deletes
    treat it as not-found, writes reject it with a ValidationError.
    """

    def __init__(
        self,
        entries_dir: Optional[Path] = None,
        connections: Optional[ConnectionRepository] = None,
        search_index: Optional[SearchIndex] = None,
        codec: Optional[FrontmatterCodec] = None,
    ):
        """Initialize the repository.

        Args:
            entries_dir: Directory containing the entry files.
                         If None, uses config.get_entries_dir().
            connections: Connection graph to clean up on delete.
                         If None, uses the configured vault's document.
            search_index: Index to keep warm. A fresh one is created if None.
            codec: Frontmatter codec. A default one is created if None.
        """
        self.entries_dir = Path(entries_dir) if entries_dir else config.get_entries_dir()
        self.connections = connections or ConnectionRepository(
            config.get_connections_path()
        )
        self.search_index = search_index if search_index is not None else SearchIndex()
        self._codec = codec or FrontmatterCodec()

        self.entries_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"EntryRepository initialized: entries_dir={self.entries_dir}")

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _path_for(self, entry_id: str) -> Path:
        try:
            validate_safe_path_component(entry_id, "Entry ID")
        except ValueError as e:
            raise ValidationError(
                str(e), field="id", value=entry_id,
                code=ErrorCode.PATH_TRAVERSAL_DETECTED,
            ) from e
        return self.entries_dir / f"{entry_id}{ENTRY_SUFFIX}"

    def _lookup_path(self, entry_id: str) -> Optional[Path]:
        """Path for a read or delete; None when the ID cannot name an entry file."""
        try:
            return self._path_for(entry_id)
        except ValidationError:
            logger.warning(f"No entry file can exist for ID {entry_id!r}")
            return None

    def _entry_files(self) -> List[Path]:
        if not self.entries_dir.is_dir():
            return []
        return sorted(
            p for p in self.entries_dir.iterdir()
            if p.suffix == ENTRY_SUFFIX and p.is_file()
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _decode_file(self, file_path: Path) -> Optional[DecodeResult]:
        """Read and decode one entry file; None if it cannot be used."""
        try:
            with open(file_path, "r", encoding="utf-8", newline="") as f:
                content = f.read()
            result = self._codec.decode(content, fallback_id=file_path.stem)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Cannot read entry file {file_path.name}: {e}")
            return None
        except (ValueError, PydanticValidationError) as e:
            logger.warning(f"Skipping malformed entry file {file_path.name}: {e}")
            return None

        if not result.pristine:
            logger.info(
                f"Entry {result.entry.id} recovered with defaults for: "
                f"{', '.join(result.defaulted)}"
            )
        return result

    def _iter_decoded(self) -> Iterator[DecodeResult]:
        for file_path in self._entry_files():
            result = self._decode_file(file_path)
            if result is not None:
                yield result

    def list_entries(self) -> List[EntryMeta]:
        """List metadata for every readable entry in the vault.

        Malformed files are skipped. As a side effect the search index is
        rebuilt from this listing, so afterwards it holds exactly the listed
        IDs.
        """
        entries: List[EntryMeta] = []
        documents: List[Tuple[str, str, str]] = []
        for result in self._iter_decoded():
            entry = result.entry
            entries.append(entry.to_meta())
            documents.append((entry.id, entry.title, entry.body))
        self.search_index.rebuild(documents)
        return entries

    def rebuild_index(self) -> int:
        """Repopulate the search index from a full listing (used at startup).

        Returns:
            Number of indexed entries.
        """
        self.list_entries()
        count = len(self.search_index)
        logger.info(f"Search index built with {count} entries")
        return count

    def decode(self, entry_id: str) -> Optional[DecodeResult]:
        """Decode one entry, keeping track of which fields were defaulted.

        Returns:
            DecodeResult if the entry exists and is readable, None otherwise.
        """
        file_path = self._lookup_path(entry_id)
        if file_path is None or not file_path.exists():
            return None
        return self._decode_file(file_path)

    def get(self, entry_id: str) -> Optional[Entry]:
        """Get an entry by ID, including its body.

        Returns:
            Entry if found, None if there is no readable file for the ID.
        """
        result = self.decode(entry_id)
        return result.entry if result else None

    def exists(self, entry_id: str) -> bool:
        file_path = self._lookup_path(entry_id)
        return file_path is not None and file_path.exists()

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write(self, entry: Entry) -> Entry:
        """Create or overwrite an entry file.

        Stamps ``modified`` with the current time, writes the whole file and
        refreshes the search index for this entry.

        Returns:
            The written entry.

        Raises:
            StorageError: If the file cannot be written.
        """
        file_path = self._path_for(entry.id)
        entry.modified = utc_now()
        content = self._codec.encode(entry)

        try:
            self.entries_dir.mkdir(parents=True, exist_ok=True)
            with open(file_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
        except OSError as e:
            raise StorageError(
                f"Failed to write entry {entry.id}",
                operation="write",
                path=str(file_path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

        self.search_index.update(entry.id, entry.title, entry.body)
        return entry

    def delete(self, entry_id: str) -> bool:
        """Permanently delete an entry.

        Removes the file if present, evicts the entry from the search index
        and removes every connection mentioning it. Deleting an unknown ID
        is not an error.

        Returns:
            True if a file was removed.

        Raises:
            StorageError: If the file or the connections document cannot be
                updated.
        """
        file_path = self._lookup_path(entry_id)
        removed = False
        try:
            if file_path is not None:
                os.remove(file_path)
                removed = True
        except FileNotFoundError:
            logger.debug(f"Entry {entry_id} already absent")
        except OSError as e:
            raise StorageError(
                f"Failed to delete entry {entry_id}",
                operation="delete",
                path=f"{entry_id}{ENTRY_SUFFIX}",
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            ) from e

        self.search_index.remove(entry_id)
        dropped = self.connections.remove_all_for_entry(entry_id)
        if dropped:
            logger.debug(f"Removed {dropped} connections of deleted entry {entry_id}")
        return removed

    # ------------------------------------------------------------------
    # Flag mutators
    # ------------------------------------------------------------------

    def _set_flags(self, entry_id: str, **flags: bool) -> Optional[Entry]:
        entry = self.get(entry_id)
        if entry is None:
            return None
        for name, value in flags.items():
            setattr(entry, name, value)
        return self.write(entry)

    def archive(self, entry_id: str) -> Optional[Entry]:
        return self._set_flags(entry_id, archived=True)

    def trash(self, entry_id: str) -> Optional[Entry]:
        return self._set_flags(entry_id, trashed=True)

    def restore(self, entry_id: str) -> Optional[Entry]:
        """Bring an entry back from both the trash and the archive."""
        return self._set_flags(entry_id, trashed=False, archived=False)

    def pin(self, entry_id: str) -> Optional[Entry]:
        return self._set_flags(entry_id, pinned=True)

    def unpin(self, entry_id: str) -> Optional[Entry]:
        return self._set_flags(entry_id, pinned=False)
