"""Data models for the Strata vault."""

import datetime
import re
import uuid
from datetime import timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Entry IDs double as file base names: alphanumerics, underscores and hyphens
SAFE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+$")

DEFAULT_TITLE = "Untitled"


def validate_safe_path_component(value: str, field_name: str = "value") -> str:
    """Validate that a value is safe to use as a filesystem path component.

    Prevents path traversal by rejecting path separators, parent directory
    references and any character outside alphanumerics, underscore and hyphen.

    Raises:
        ValueError: If the value contains unsafe characters
    """
    if not value:
        raise ValueError(f"{field_name} cannot be empty")

    if ".." in value:
        raise ValueError(f"{field_name} cannot contain '..' (path traversal)")

    if "/" in value or "\\" in value:
        raise ValueError(f"{field_name} cannot contain path separators")

    if not SAFE_ID_PATTERN.match(value):
        raise ValueError(
            f"{field_name} contains invalid characters. "
            "Only alphanumeric characters, underscores and hyphens are allowed."
        )

    return value


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC."""
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def parse_timestamp(value: Union[str, datetime.datetime]) -> datetime.datetime:
    """Parse an ISO-8601 timestamp as written by this package or by JavaScript.

    Accepts the trailing ``Z`` form produced by ``Date.toISOString()``.

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp.
    """
    if isinstance(value, datetime.datetime):
        return ensure_timezone_aware(value)
    if not isinstance(value, str):
        raise ValueError(f"Not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_timezone_aware(datetime.datetime.fromisoformat(text))


def generate_id() -> str:
    """Generate a fresh, stable entry ID."""
    return str(uuid.uuid4())


def normalize_tags(tags: List[str]) -> List[str]:
    """Lower-case and trim tags, dropping blanks and repeats but keeping order."""
    seen = set()
    result = []
    for tag in tags:
        name = tag.strip().lower()
        if name and name not in seen:
            seen.add(name)
            result.append(name)
    return result


class Structure(str, Enum):
    """Kind of thinking an entry represents."""

    THOUGHT = "thought"  # A passing observation
    IDEA = "idea"  # Something worth developing
    QUESTION = "question"  # Something unresolved
    DECISION = "decision"  # A committed closure
    SYSTEM = "system"  # A repeatable process
    INSIGHT = "insight"  # A realized understanding


class Pressure(str, Enum):
    """Urgency or weight of an entry."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EntryMeta(BaseModel):
    """Everything stored about an entry except its body."""

    id: str = Field(default_factory=generate_id, description="Stable ID, also the file name")
    title: str = Field(default=DEFAULT_TITLE, description="Free-text title")
    structure: Structure = Field(default=Structure.THOUGHT)
    pressure: Pressure = Field(default=Pressure.LOW)
    pinned: bool = Field(default=False)
    archived: bool = Field(default=False)
    trashed: bool = Field(default=False)
    notebook: str = Field(
        default="",
        description="Encoded notebook/section path; empty means no notebook",
    )
    tags: List[str] = Field(default_factory=list, description="Lower-cased tags")
    created: datetime.datetime = Field(
        default_factory=utc_now, description="Fixed at first write (UTC)"
    )
    modified: datetime.datetime = Field(
        default_factory=utc_now, description="Stamped by the store on every write (UTC)"
    )
    sort_order: Optional[Union[int, float]] = Field(
        default=None, description="Manual ordering key; None means unordered"
    )

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate that the ID is safe for filesystem use."""
        return validate_safe_path_component(v, "Entry ID")

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)

    @field_validator("created", "modified")
    @classmethod
    def validate_timestamps(cls, v: datetime.datetime) -> datetime.datetime:
        return ensure_timezone_aware(v)

    def add_tag(self, tag: str) -> None:
        """Add a tag to the entry (no-op when already present)."""
        self.tags = self.tags + [tag]

    def remove_tag(self, tag: str) -> None:
        """Remove a tag from the entry."""
        name = tag.strip().lower()
        self.tags = [t for t in self.tags if t != name]


class Entry(EntryMeta):
    """A note: metadata plus free-form body text."""

    body: str = Field(default="", description="Note content (markdown)")

    def to_meta(self) -> EntryMeta:
        """Return the metadata view of this entry (body excluded)."""
        return EntryMeta.model_validate(self.model_dump(exclude={"body"}))


class Connection(BaseModel):
    """An undirected link between two entries.

    Two connections are equal when they join the same unordered pair of IDs.
    """

    source: str = Field(..., alias="from", description="One endpoint entry ID")
    target: str = Field(..., alias="to", description="Other endpoint entry ID")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("source", "target")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Connection endpoints cannot be empty")
        return v

    @property
    def pair(self) -> FrozenSet[str]:
        """The unordered pair of entry IDs this connection joins."""
        return frozenset((self.source, self.target))

    def mentions(self, entry_id: str) -> bool:
        return entry_id in (self.source, self.target)

    def joins(self, a: str, b: str) -> bool:
        """True if this connection links ``a`` and ``b`` in either direction."""
        return self.pair == frozenset((a, b))

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.source, "to": self.target}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Connection):
            return NotImplemented
        return self.pair == other.pair

    def __hash__(self) -> int:
        return hash(self.pair)
