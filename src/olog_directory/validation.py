"""Structural checks on entry, logbook and tag payloads.

Every check returns ``None`` when the payload is acceptable and a
``BadRequest`` describing the first problem otherwise. Nothing here raises;
the manager decides when to abort.
"""

from __future__ import annotations

from typing import Optional

from .errors import BadRequest
from .models import Entry, Logbook, Tag


def validate_entry(data: Entry) -> Optional[BadRequest]:
    """Check the entry for valid id/owner data."""
    if not data.id:
        return BadRequest("Invalid log id (null or empty string)")
    if not data.owner:
        return BadRequest(f"Invalid log owner (null or empty string) for '{data.id}'")
    return None


def validate_entries(data: Optional[list[Entry]]) -> Optional[BadRequest]:
    """Check all entries for valid id/owner data, stopping at the first failure."""
    if data is None:
        return None
    for entry in data:
        error = validate_entry(entry)
        if error is not None:
            return error
    return None


def validate_logbook(data: Logbook) -> Optional[BadRequest]:
    """Check the logbook for valid name/owner data."""
    if not data.name:
        return BadRequest("Invalid logbook name (null or empty string)")
    if not data.owner:
        return BadRequest(f"Invalid logbook owner (null or empty string) for '{data.name}'")
    return None


def validate_logbooks(data: Optional[list[Logbook]]) -> Optional[BadRequest]:
    if data is None:
        return None
    for logbook in data:
        error = validate_logbook(logbook)
        if error is not None:
            return error
    return None


def validate_tag(data: Tag) -> Optional[BadRequest]:
    """Check the tag for a valid name. Tags have no owner to check."""
    if not data.name:
        return BadRequest("Invalid tag name (null or empty string)")
    return None


def validate_tags(data: Optional[list[Tag]]) -> Optional[BadRequest]:
    if data is None:
        return None
    for tag in data:
        error = validate_tag(tag)
        if error is not None:
            return error
    return None


def check_id_matches(entry_id: int, data: Entry) -> Optional[BadRequest]:
    """Check that the path-level ``entry_id`` equals the id in the payload."""
    if entry_id != data.id:
        return BadRequest(
            f"Specified log id '{entry_id}' and payload log id '{data.id}' do not match"
        )
    return None


def check_name_matches(name: str, data: Optional[Logbook | Tag]) -> Optional[BadRequest]:
    """Check that the path-level ``name`` equals the name in the payload.

    A missing payload has nothing to contradict the path and passes.
    """
    if data is None:
        return None
    kind = "tag" if isinstance(data, Tag) else "logbook"
    if name != data.name:
        return BadRequest(
            f"Specified {kind} name '{name}' and payload {kind} name '{data.name}' do not match"
        )
    return None
