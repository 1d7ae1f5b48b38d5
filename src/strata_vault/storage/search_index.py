"""In-memory substring search index for vault entries.

Caches a lower-cased copy of each entry's title and body so queries never
have to re-read and re-parse entry files. The index is owned by the
EntryRepository, which refreshes it on every listing, write and delete.
"""
import logging
from typing import Dict, Iterable, Iterator, Set, Tuple

logger = logging.getLogger(__name__)


class SearchIndex:
    """Case-insensitive substring index over entry titles and bodies."""

    def __init__(self) -> None:
        self._documents: Dict[str, Tuple[str, str]] = {}

    def rebuild(self, documents: Iterable[Tuple[str, str, str]]) -> int:
        """Replace the whole index.

        Args:
            documents: ``(id, title, body)`` triples from a full store listing.

        Returns:
            Number of indexed entries.
        """
        fresh = {
            entry_id: (title.lower(), body.lower())
            for entry_id, title, body in documents
        }
        self._documents = fresh
        logger.debug(f"Search index rebuilt with {len(fresh)} entries")
        return len(fresh)

    def update(self, entry_id: str, title: str, body: str) -> None:
        """Insert or overwrite the cached text for one entry."""
        self._documents[entry_id] = (title.lower(), body.lower())

    def remove(self, entry_id: str) -> None:
        """Evict an entry; unknown IDs are ignored."""
        self._documents.pop(entry_id, None)

    def search(self, query: str) -> Set[str]:
        """IDs whose title or body contains ``query``, ignoring case.

        The empty string matches every entry.
        """
        needle = query.lower()
        return {
            entry_id
            for entry_id, (title, body) in self._documents.items()
            if needle in title or needle in body
        }

    def clear(self) -> None:
        self._documents.clear()

    def ids(self) -> Set[str]:
        return set(self._documents)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._documents))
