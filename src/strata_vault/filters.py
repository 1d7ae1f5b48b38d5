"""List views over entry metadata: all, pinned, archive, trash, notebook, tag.

Trashed entries only ever appear in the trash view; archived entries only in
the archive and trash views.
"""
from enum import Enum
from typing import Iterable, List, Optional, TypeVar

from strata_vault.models.schema import EntryMeta
from strata_vault.notebooks import NotebookPath

E = TypeVar("E", bound=EntryMeta)


class EntryFilter(str, Enum):
    """Which list of entries to show."""

    ALL = "all"
    PINNED = "pinned"
    ARCHIVE = "archive"
    TRASH = "trash"
    NOTEBOOK = "notebook"  # exact raw notebook value in `name`
    TAG = "tag"  # tag in `name`


# Views that can be narrowed further by a notebook/section selection
_HIERARCHY_VIEWS = {EntryFilter.ALL, EntryFilter.PINNED, EntryFilter.ARCHIVE}


def matches(entry: EntryMeta, kind: EntryFilter, name: Optional[str] = None) -> bool:
    """Whether an entry belongs to a view."""
    live = not entry.trashed and not entry.archived
    if kind is EntryFilter.ALL:
        return live
    if kind is EntryFilter.PINNED:
        return entry.pinned and live
    if kind is EntryFilter.ARCHIVE:
        return entry.archived and not entry.trashed
    if kind is EntryFilter.TRASH:
        return entry.trashed
    if kind is EntryFilter.NOTEBOOK:
        return entry.notebook == name and live
    if kind is EntryFilter.TAG:
        return name is not None and name.lower() in entry.tags and live
    return True


def filter_entries(
    entries: Iterable[E],
    kind: EntryFilter = EntryFilter.ALL,
    name: Optional[str] = None,
    notebook: Optional[str] = None,
    section: Optional[str] = None,
) -> List[E]:
    """Select the entries of a view.

    Args:
        entries: Candidate entries.
        kind: The view to show.
        name: Raw notebook value or tag, for the NOTEBOOK and TAG views.
        notebook: Optional notebook selection narrowing the all, pinned and
            archive views.
        section: Optional section within ``notebook``.
    """
    selected = [e for e in entries if matches(e, kind, name)]
    if notebook and kind in _HIERARCHY_VIEWS:
        narrowed = []
        for entry in selected:
            path = NotebookPath.parse(entry.notebook)
            if path.notebook != notebook:
                continue
            if section and path.section != section:
                continue
            narrowed.append(entry)
        selected = narrowed
    return selected
