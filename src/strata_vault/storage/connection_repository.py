"""Repository for the connection graph between entries."""
import json
import logging
import os
from pathlib import Path
from typing import Iterable, List

from pydantic import ValidationError as PydanticValidationError

from strata_vault.exceptions import (
    ConnectionValidationError,
    ErrorCode,
    StorageError,
)
from strata_vault.models.schema import Connection

logger = logging.getLogger(__name__)


class ConnectionRepository:
    """Repository for undirected connections between entries.

    The whole graph lives in one JSON document of the form
    ``{"connections": [{"from": ..., "to": ...}, ...]}``. Every mutation
    loads the document, changes it and writes it back in full.
    """

    def __init__(self, path: Path):
        """Initialize the connection repository.

        Args:
            path: Location of the connections JSON document.
        """
        self.path = Path(path)

    def load(self) -> List[Connection]:
        """Load every stored connection.

        A missing or unreadable document yields an empty list. Items that are
        not valid connections are skipped and duplicate pairs are collapsed.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"Cannot read connections from {self.path.name}: {e}")
            return []

        items = data.get("connections", []) if isinstance(data, dict) else []
        if not isinstance(items, list):
            logger.warning("Connections document has no connection list; ignoring it")
            return []

        connections: List[Connection] = []
        seen = set()
        for item in items:
            try:
                connection = Connection.model_validate(item)
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed connection {item!r}: {e}")
                continue
            if connection.pair in seen:
                continue
            seen.add(connection.pair)
            connections.append(connection)
        return connections

    def save(self, connections: Iterable[Connection]) -> None:
        """Persist the full set of connections, replacing the previous document.

        Raises:
            StorageError: If the document cannot be written.
        """
        data = {"connections": [c.to_dict() for c in connections]}
        temp_path = self.path.with_suffix(".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(temp_path, self.path)
        except OSError as e:
            raise StorageError(
                "Failed to save connections",
                operation="save_connections",
                path=str(self.path),
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            ) from e

    def add(self, connection: Connection) -> bool:
        """Add a connection unless the same pair is already linked.

        Returns:
            True if the connection was added, False if it already existed.

        Raises:
            ConnectionValidationError: If both endpoints are the same entry.
        """
        if connection.source == connection.target:
            raise ConnectionValidationError(
                "An entry cannot be connected to itself",
                source_id=connection.source,
                target_id=connection.target,
                code=ErrorCode.CONNECTION_SELF_REFERENCE,
            )
        connections = self.load()
        if connection in connections:
            return False
        connections.append(connection)
        self.save(connections)
        return True

    def remove(self, source_id: str, target_id: str) -> bool:
        """Remove the connection between two entries, in either direction.

        Returns:
            True if a connection was removed.
        """
        connections = self.load()
        remaining = [c for c in connections if not c.joins(source_id, target_id)]
        if len(remaining) == len(connections):
            return False
        self.save(remaining)
        return True

    def remove_all_for_entry(self, entry_id: str) -> int:
        """Remove every connection mentioning an entry.

        Returns:
            Number of connections removed.
        """
        connections = self.load()
        remaining = [c for c in connections if not c.mentions(entry_id)]
        removed = len(connections) - len(remaining)
        if removed:
            self.save(remaining)
        return removed

    def get_for_entry(self, entry_id: str) -> List[Connection]:
        """Get all connections mentioning an entry."""
        return [c for c in self.load() if c.mentions(entry_id)]
