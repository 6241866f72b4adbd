"""Data models for log entries, logbooks and tags."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class State(Enum):
    """Lifecycle state of a logbook or tag."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Format datetime as ISO 8601 with timezone."""
    return dt.isoformat(timespec='milliseconds')


def parse_timestamp(s: str) -> datetime:
    """Parse ISO 8601 timestamp string."""
    return datetime.fromisoformat(s)


def _entries_from_dicts(data: Optional[list[Any]]) -> Optional[list[Entry]]:
    if data is None:
        return None
    entries = []
    for item in data:
        # Association payloads may list bare entry ids
        if isinstance(item, int):
            entries.append(Entry(id=item))
        else:
            entries.append(Entry.from_dict(item))
    return entries


@dataclass(eq=False)
class Logbook:
    """A named, owned grouping of entries.

    Two logbooks are the same iff name and owner match; state and the
    entry back-references do not take part in equality.
    """
    name: Optional[str] = None
    owner: Optional[str] = None
    state: State = State.ACTIVE
    entries: Optional[list[Entry]] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Logbook):
            return NotImplemented
        return self.name == other.name and self.owner == other.owner

    def __hash__(self) -> int:
        return hash((self.name, self.owner))

    def to_logger(self) -> str:
        return f"{self.name}({self.owner})"

    def to_dict(self) -> dict[str, Any]:
        """Convert logbook to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "owner": self.owner,
            "state": self.state.value,
        }
        if self.entries is not None:
            result["entries"] = [e.to_dict() for e in self.entries]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Logbook:
        return cls(
            name=data.get("name"),
            owner=data.get("owner"),
            state=State(data.get("state", State.ACTIVE.value)),
            entries=_entries_from_dicts(data.get("entries")),
        )


@dataclass(eq=False)
class Tag:
    """A named label attachable to entries. Tags carry no owner."""
    name: Optional[str] = None
    state: State = State.ACTIVE
    entries: Optional[list[Entry]] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tag):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def to_logger(self) -> str:
        return f"{self.name}"

    def to_dict(self) -> dict[str, Any]:
        """Convert tag to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "state": self.state.value,
        }
        if self.entries is not None:
            result["entries"] = [e.to_dict() for e in self.entries]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Tag:
        return cls(
            name=data.get("name"),
            state=State(data.get("state", State.ACTIVE.value)),
            entries=_entries_from_dicts(data.get("entries")),
        )


@dataclass
class Entry:
    """A single log entry and its logbook/tag associations."""
    id: int = 0
    owner: Optional[str] = None

    # Content fields
    subject: Optional[str] = None
    description: Optional[str] = None
    level: str = "Info"
    created: Optional[datetime] = None
    modified: Optional[datetime] = None

    # Associations, unique by name within one entry
    logbooks: list[Logbook] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)

    def logbook_names(self) -> list[str]:
        return [lb.name for lb in self.logbooks]

    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    def to_logger(self) -> str:
        """Render a one-line summary for audit logs."""
        books = ",".join(str(n) for n in self.logbook_names())
        return f"{self.id}({self.owner})[{books}]"

    def to_dict(self) -> dict[str, Any]:
        """Convert entry to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "owner": self.owner,
            "subject": self.subject,
            "description": self.description,
            "level": self.level,
            "created": format_timestamp(self.created) if self.created else None,
            "modified": format_timestamp(self.modified) if self.modified else None,
            "logbooks": [lb.to_dict() for lb in self.logbooks],
            "tags": [t.to_dict() for t in self.tags],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entry:
        created = data.get("created")
        modified = data.get("modified")
        return cls(
            id=int(data.get("id") or 0),
            owner=data.get("owner"),
            subject=data.get("subject"),
            description=data.get("description"),
            level=data.get("level") or "Info",
            created=parse_timestamp(created) if created else None,
            modified=parse_timestamp(modified) if modified else None,
            logbooks=[Logbook.from_dict(lb) for lb in data.get("logbooks") or []],
            tags=[Tag.from_dict(t) for t in data.get("tags") or []],
        )
