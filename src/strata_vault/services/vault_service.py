"""Service layer implementing the vault contract used by the UI."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from strata_vault.config import config
from strata_vault.exceptions import (
    BulkOperationError,
    ErrorCode,
    StorageError,
    ValidationError,
)
from strata_vault.filters import EntryFilter, filter_entries
from strata_vault.models.schema import (
    Connection,
    Entry,
    EntryMeta,
    Pressure,
    Structure,
    utc_now,
)
from strata_vault.notebooks import build_notebook_path, list_notebooks, list_sections
from strata_vault.ordering import reorder, sort_entries
from strata_vault.storage.connection_repository import ConnectionRepository
from strata_vault.storage.entry_repository import EntryRepository

logger = logging.getLogger(__name__)


class VaultService:
    """Service for managing the entries of one vault.

    Every operation is addressed by entry ID or by a full entry value; none
    takes partial updates. Operations run synchronously and are expected to
    be invoked one at a time.
    """

    def __init__(
        self,
        repository: Optional[EntryRepository] = None,
        connections: Optional[ConnectionRepository] = None,
    ):
        """Initialize the service.

        Args:
            repository: Entry storage backend. Created from config if None.
            connections: Connection graph. Defaults to the repository's own.
        """
        self.repository = repository or EntryRepository()
        self.connections = connections or self.repository.connections

    def initialize(self) -> int:
        """Warm the search index from a full listing.

        Returns:
            Number of indexed entries.
        """
        count = self.repository.rebuild_index()
        logger.info(f"Vault service initialized with {count} entries")
        return count

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self) -> List[EntryMeta]:
        return self.repository.list_entries()

    def read_entry(self, entry_id: str) -> Optional[Entry]:
        return self.repository.get(entry_id)

    def write_entry(self, entry: Entry) -> Entry:
        """Persist the full entry value, replacing any previous version."""
        return self.repository.write(entry)

    def create_entry(
        self,
        title: str = "",
        body: str = "",
        notebook: str = "",
        tags: Optional[List[str]] = None,
        structure: Optional[Union[str, Structure]] = None,
        pressure: Optional[Union[str, Pressure]] = None,
    ) -> Entry:
        """Create and persist a new entry with a fresh ID.

        Structure and pressure fall back to the configured defaults.

        Raises:
            ValidationError: If a field value is not acceptable.
        """
        now = utc_now()
        try:
            entry = Entry(
                title=title,
                body=body,
                notebook=notebook,
                tags=tags or [],
                structure=structure or config.default_structure,
                pressure=pressure or config.default_pressure,
                created=now,
                modified=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid entry: {e.errors()[0]['msg']}",
                code=ErrorCode.ENTRY_VALIDATION_FAILED,
            ) from e
        return self.repository.write(entry)

    def archive_entry(self, entry_id: str) -> Optional[Entry]:
        return self.repository.archive(entry_id)

    def trash_entry(self, entry_id: str) -> Optional[Entry]:
        return self.repository.trash(entry_id)

    def restore_entry(self, entry_id: str) -> Optional[Entry]:
        return self.repository.restore(entry_id)

    def delete_entry_permanently(self, entry_id: str) -> bool:
        return self.repository.delete(entry_id)

    def pin_entry(self, entry_id: str) -> Optional[Entry]:
        return self.repository.pin(entry_id)

    def unpin_entry(self, entry_id: str) -> Optional[Entry]:
        return self.repository.unpin(entry_id)

    def search_entries(self, query: str) -> List[EntryMeta]:
        """Metadata of entries whose title or body contains ``query``.

        Matching is a case-insensitive substring test. A blank query is not
        special-cased and therefore matches every entry.
        """
        entries = self.repository.list_entries()
        matching = self.repository.search_index.search(query)
        return [e for e in entries if e.id in matching]

    def list_view(
        self,
        kind: Union[str, EntryFilter] = EntryFilter.ALL,
        name: Optional[str] = None,
        notebook: Optional[str] = None,
        section: Optional[str] = None,
    ) -> List[EntryMeta]:
        """Entries of one list view, in display order."""
        selected = filter_entries(
            self.repository.list_entries(),
            EntryFilter(kind),
            name=name,
            notebook=notebook,
            section=section,
        )
        return sort_entries(selected)

    # ------------------------------------------------------------------
    # Notebooks and tags
    # ------------------------------------------------------------------

    def _raw_notebooks(self) -> List[str]:
        return [e.notebook for e in self.repository.list_entries()]

    def list_notebooks(self) -> List[str]:
        """Distinct non-empty raw notebook values, sorted."""
        return sorted({raw for raw in self._raw_notebooks() if raw})

    def list_notebook_names(self) -> List[str]:
        """Distinct top-level notebook names, sorted."""
        return list_notebooks(self._raw_notebooks())

    def list_sections(self, notebook: str) -> List[str]:
        """Sections of a notebook, default section first."""
        return list_sections(self._raw_notebooks(), notebook)

    def list_tags(self) -> List[str]:
        tags = set()
        for entry in self.repository.list_entries():
            tags.update(entry.tags)
        return sorted(tags)

    def create_section(self, notebook: str, name: str) -> Optional[Entry]:
        """Create a section by writing an empty entry into it.

        Sections only exist through the entries that name them. Nothing is
        written when the notebook or the trimmed section name is empty.

        Returns:
            The placeholder entry, or None when nothing was created.
        """
        section = name.strip()
        if not notebook or not section:
            return None
        return self.create_entry(notebook=build_notebook_path(notebook, section))

    def rename_section(self, notebook: str, old_section: str, new_section: str) -> int:
        """Move every entry of one section to another section of the same notebook.

        Entries are rewritten one at a time. If a write fails partway, the
        entries already rewritten keep the new section; nothing is rolled
        back.

        Returns:
            Number of entries rewritten (0 when nothing matched).

        Raises:
            BulkOperationError: If a write fails; ``success_count`` tells how
                many entries were rewritten before the failure.
        """
        old_path = build_notebook_path(notebook, old_section.strip())
        new_path = build_notebook_path(notebook, new_section.strip())
        if old_path == new_path:
            return 0

        targets = [
            e.id for e in self.repository.list_entries() if e.notebook == old_path
        ]
        count = 0
        for index, entry_id in enumerate(targets):
            entry = self.repository.get(entry_id)
            if entry is None or entry.notebook != old_path:
                continue
            entry.notebook = new_path
            try:
                self.repository.write(entry)
            except StorageError as e:
                logger.error(
                    f"Section rename {old_path!r} -> {new_path!r} stopped after "
                    f"{count} of {len(targets)} entries: {e}"
                )
                raise BulkOperationError(
                    f"Section rename stopped after {count} entries",
                    operation="rename_section",
                    total_count=len(targets),
                    success_count=count,
                    failed_ids=targets[index:],
                    original_error=e,
                ) from e
            count += 1

        logger.info(f"Renamed section {old_path!r} -> {new_path!r} on {count} entries")
        return count

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def reorder_entries(
        self, updates: Iterable[Tuple[str, Union[int, float]]]
    ) -> int:
        """Apply manual sort positions.

        Args:
            updates: ``(entry_id, sort_order)`` pairs. Unknown IDs are skipped.

        Returns:
            Number of entries rewritten.
        """
        count = 0
        for entry_id, sort_order in updates:
            entry = self.repository.get(entry_id)
            if entry is None:
                logger.debug(f"Skipping reorder of missing entry {entry_id}")
                continue
            entry.sort_order = sort_order
            self.repository.write(entry)
            count += 1
        return count

    def move_entries(self, ordered_ids: Sequence[str]) -> List[Tuple[str, int]]:
        """Renumber the given entries to match their order and persist it."""
        updates = reorder(ordered_ids)
        self.reorder_entries(updates)
        return updates

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def get_connections(self) -> List[Connection]:
        return self.connections.load()

    def add_connection(self, connection: Connection) -> bool:
        return self.connections.add(connection)

    def remove_connection(self, source_id: str, target_id: str) -> bool:
        return self.connections.remove(source_id, target_id)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Dict[str, str]:
        return {"vaultPath": str(config.get_vault_path())}

    def set_vault_path(self, new_path: str) -> Dict[str, str]:
        """Switch to another vault and reload the index from it.

        Raises:
            ConfigurationError: If the new location cannot be prepared.
        """
        config.set_vault_path(new_path)
        self.repository = EntryRepository(
            entries_dir=config.get_entries_dir(),
            connections=ConnectionRepository(config.get_connections_path()),
        )
        self.connections = self.repository.connections
        self.initialize()
        return self.get_settings()
