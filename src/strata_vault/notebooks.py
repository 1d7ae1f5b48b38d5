"""Notebook/section hierarchy encoded in an entry's single ``notebook`` field.

The on-disk form is ``"<notebook>/<section>"``, or just ``"<notebook>"`` for
the default section. The mapping is deliberately not bijective: ``"Work"``
and ``"Work/General"`` name the same location, and building a path for the
default section always yields the short form.
"""
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict

DEFAULT_SECTION = "General"
SEPARATOR = "/"


class NotebookPath(BaseModel):
    """A (notebook, section) location.

    An empty notebook means "no notebook"; its section is then empty too.
    """

    notebook: str = ""
    section: str = ""

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, raw: str) -> "NotebookPath":
        """Decode the raw ``notebook`` field of an entry.

        Splits on the first separator and trims both halves. A missing or
        blank section becomes the default section.
        """
        if not raw:
            return cls()
        head, sep, tail = raw.partition(SEPARATOR)
        if not sep:
            return cls(notebook=raw, section=DEFAULT_SECTION)
        return cls(notebook=head.strip(), section=tail.strip() or DEFAULT_SECTION)

    def to_raw(self) -> str:
        """Encode back to the raw field, collapsing the default section."""
        return build_notebook_path(self.notebook, self.section)

    @property
    def is_default_section(self) -> bool:
        return self.section == DEFAULT_SECTION


def parse_notebook_path(raw: str) -> NotebookPath:
    return NotebookPath.parse(raw)


def build_notebook_path(notebook: str, section: str) -> str:
    """Encode a (notebook, section) pair as a raw ``notebook`` field value."""
    if not notebook:
        return ""
    if not section or section == DEFAULT_SECTION:
        return notebook
    return f"{notebook}{SEPARATOR}{section}"


def list_notebooks(raw_paths: Iterable[str]) -> List[str]:
    """Distinct notebook names across raw field values, sorted."""
    names = set()
    for raw in raw_paths:
        path = NotebookPath.parse(raw)
        if path.notebook:
            names.add(path.notebook)
    return sorted(names)


def list_sections(raw_paths: Iterable[str], target_notebook: str) -> List[str]:
    """Distinct sections of one notebook, sorted, with the default section first."""
    sections = set()
    for raw in raw_paths:
        path = NotebookPath.parse(raw)
        if path.notebook == target_notebook and path.section:
            sections.add(path.section)
    ordered = sorted(sections)
    if DEFAULT_SECTION in sections:
        ordered.remove(DEFAULT_SECTION)
        ordered.insert(0, DEFAULT_SECTION)
    return ordered
