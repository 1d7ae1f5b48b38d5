"""Frontmatter encoding and decoding for vault entries.

An entry file is a ``---`` delimited YAML metadata block followed by the
body text verbatim. Decoding never fails on malformed metadata: every field
that is missing or of the wrong type falls back to its default, and the
result records which fields were defaulted.
"""
import datetime
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from frontmatter.default_handlers import YAMLHandler

from strata_vault.models.schema import (
    DEFAULT_TITLE,
    Entry,
    EntryMeta,
    Pressure,
    Structure,
    normalize_tags,
    parse_timestamp,
    utc_now,
    validate_safe_path_component,
)

logger = logging.getLogger(__name__)

DELIMITER = "---"
BOM = "\ufeff"

# Metadata keys in the order they are written
FIELD_ORDER = (
    "id",
    "title",
    "structure",
    "pressure",
    "pinned",
    "archived",
    "trashed",
    "notebook",
    "tags",
    "created",
    "modified",
    "sortOrder",
)

_BLOCK = re.compile(
    r"\A---[ \t]*\r?\n(?P<meta>.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)


class _Invalid(Exception):
    """A metadata value that cannot be used as-is."""


@dataclass(frozen=True)
class DecodeResult:
    """Best-effort decoded entry plus the metadata keys that were defaulted."""

    entry: Entry
    defaulted: Tuple[str, ...] = ()

    @property
    def pristine(self) -> bool:
        """True when every field came from the file unchanged."""
        return not self.defaulted

    @property
    def meta(self) -> EntryMeta:
        return self.entry.to_meta()

    @property
    def body(self) -> str:
        return self.entry.body


class FrontmatterCodec:
    """Serializes entries to and from YAML-frontmatter markdown."""

    def __init__(self) -> None:
        self._handler = YAMLHandler()

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def encode(self, entry: Entry) -> str:
        """Render an entry as a metadata block followed by its body."""
        metadata: Dict[str, Any] = {
            "id": entry.id,
            "title": entry.title,
            "structure": entry.structure.value,
            "pressure": entry.pressure.value,
            "pinned": entry.pinned,
            "archived": entry.archived,
            "trashed": entry.trashed,
            "notebook": entry.notebook,
            "tags": list(entry.tags),
            "created": entry.created.isoformat(),
            "modified": entry.modified.isoformat(),
        }
        if entry.sort_order is not None:
            metadata["sortOrder"] = entry.sort_order

        meta_text = self._handler.export(metadata, sort_keys=False)
        return f"{DELIMITER}\n{meta_text}\n{DELIMITER}\n{entry.body}"

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def split(self, text: str) -> Tuple[Optional[Dict[str, Any]], str]:
        """Separate the metadata block from the body.

        Returns:
            ``(metadata, body)``. A leading byte order mark is dropped.
            ``metadata`` is None when the block is missing, truncated or not
            a YAML mapping; the body is then the full text (no usable block
            boundary) or the text after the block.
        """
        if text.startswith(BOM):
            text = text[len(BOM):]
        match = _BLOCK.match(text)
        if not match:
            return None, text

        body = text[match.end():]
        try:
            raw = self._handler.load(match.group("meta"))
        except yaml.YAMLError as e:
            logger.warning(f"Unparsable frontmatter block: {e}")
            return None, body

        if raw is None:
            return {}, body
        if not isinstance(raw, dict):
            logger.warning(
                f"Frontmatter is a {type(raw).__name__}, not a mapping; ignoring it"
            )
            return None, body
        return raw, body

    def decode(self, text: str, fallback_id: Optional[str] = None) -> DecodeResult:
        """Decode an entry file.

        Args:
            text: Raw file contents.
            fallback_id: ID to use when the metadata carries none, normally
                the file's base name. When given it also wins over a
                mismatching ``id`` in the metadata.

        Returns:
            DecodeResult with the best-effort entry and the defaulted keys.

        Raises:
            ValueError: If no usable ID is available.
        """
        metadata, body = self.split(text)
        data: Dict[str, Any] = metadata or {}
        defaulted: List[str] = []

        def take(key: str, convert: Callable[[Any], Any], default: Any) -> Any:
            if key not in data or data[key] is None:
                defaulted.append(key)
                return default
            try:
                return convert(data[key])
            except _Invalid as e:
                logger.warning(
                    f"Invalid '{key}' in entry {entry_id}: {e}; using default"
                )
                defaulted.append(key)
                return default

        entry_id = self._resolve_id(data, fallback_id, defaulted)

        created = take("created", _to_timestamp, None)
        if created is None:
            created = utc_now()
        modified = take("modified", _to_timestamp, created)

        sort_order = None
        if "sortOrder" in data and data["sortOrder"] is not None:
            try:
                sort_order = _to_number(data["sortOrder"])
            except _Invalid as e:
                logger.warning(
                    f"Invalid 'sortOrder' in entry {entry_id}: {e}; leaving unordered"
                )
                defaulted.append("sortOrder")

        entry = Entry(
            id=entry_id,
            title=take("title", _to_text, DEFAULT_TITLE),
            structure=take("structure", _enum_of(Structure), Structure.THOUGHT),
            pressure=take("pressure", _enum_of(Pressure), Pressure.LOW),
            pinned=take("pinned", _to_bool, False),
            archived=take("archived", _to_bool, False),
            trashed=take("trashed", _to_bool, False),
            notebook=take("notebook", _to_text, ""),
            tags=take("tags", _to_tags, []),
            created=created,
            modified=modified,
            sort_order=sort_order,
            body=body,
        )
        if metadata is None:
            logger.warning(f"Entry {entry_id} has no usable frontmatter; using defaults")
        return DecodeResult(entry=entry, defaulted=tuple(defaulted))

    @staticmethod
    def _resolve_id(
        data: Dict[str, Any], fallback_id: Optional[str], defaulted: List[str]
    ) -> str:
        raw_id = data.get("id")
        declared: Optional[str] = None
        if isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool):
            try:
                declared = validate_safe_path_component(str(raw_id), "Entry ID")
            except ValueError as e:
                logger.warning(f"Ignoring invalid entry ID {raw_id!r}: {e}")

        if fallback_id is not None:
            if declared != fallback_id:
                if declared is not None:
                    logger.warning(
                        f"Entry file {fallback_id} declares ID {declared}; "
                        "using the file name"
                    )
                defaulted.append("id")
            return fallback_id

        if declared is None:
            raise ValueError("Entry ID missing from frontmatter")
        return declared


# ----------------------------------------------------------------------
# Field converters
# ----------------------------------------------------------------------


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise _Invalid(f"expected text, got {type(value).__name__}")


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise _Invalid(f"expected a boolean, got {value!r}")


def _to_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _Invalid(f"expected a number, got {value!r}")
    return value


def _to_tags(value: Any) -> List[str]:
    if not isinstance(value, list):
        raise _Invalid(f"expected a list of tags, got {type(value).__name__}")
    names = [
        _to_text(item)
        for item in value
        if item is not None and not isinstance(item, (dict, list))
    ]
    return normalize_tags(names)


def _to_timestamp(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day)
    try:
        return parse_timestamp(value)
    except ValueError as e:
        raise _Invalid(str(e))


def _enum_of(enum_cls):
    def convert(value: Any):
        if isinstance(value, str):
            value = value.strip().lower()
        try:
            return enum_cls(value)
        except ValueError:
            raise _Invalid(f"unknown {enum_cls.__name__.lower()} {value!r}")
    return convert
