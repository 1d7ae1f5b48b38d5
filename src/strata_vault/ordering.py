"""Display ordering of entry lists.

Pinned entries come first. Within the pinned and unpinned groups, entries
with a manual ``sort_order`` come before those without one, in ascending
order; everything else falls back to most recently modified first.
"""
import functools
import math
from typing import Iterable, List, Sequence, Tuple, TypeVar

from strata_vault.models.schema import EntryMeta

# Gap left between consecutive manual positions
SORT_ORDER_STEP = 100

E = TypeVar("E", bound=EntryMeta)


def _manual_position(entry: EntryMeta) -> float:
    return math.inf if entry.sort_order is None else entry.sort_order


def compare_entries(a: EntryMeta, b: EntryMeta) -> int:
    """Three-way comparison: negative if ``a`` is displayed before ``b``."""
    if a.pinned != b.pinned:
        return -1 if a.pinned else 1

    a_pos = _manual_position(a)
    b_pos = _manual_position(b)
    if a_pos != b_pos:
        return -1 if a_pos < b_pos else 1

    if a.modified != b.modified:
        return -1 if a.modified > b.modified else 1
    return 0


def sort_entries(entries: Iterable[E]) -> List[E]:
    """Return entries in display order (stable for full ties)."""
    return sorted(entries, key=functools.cmp_to_key(compare_entries))


def reorder(ids: Sequence[str]) -> List[Tuple[str, int]]:
    """Assign manual positions matching the given order.

    Positions are spaced ``SORT_ORDER_STEP`` apart starting at one step.
    The whole sequence is renumbered on every call.
    """
    return [(entry_id, (index + 1) * SORT_ORDER_STEP) for index, entry_id in enumerate(ids)]
