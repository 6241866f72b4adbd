"""Directory manager - every business operation on entries, logbooks and tags.

Each mutating operation is a short pipeline: validate the payload, check
the caller's group membership, then talk to the store. Validation and
authorization run before the first store mutation, so a rejected request
leaves no trace. Store failures abort where they happen; the batch forms
are not atomic across elements.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping, Optional, Sequence

from .authorization import Authorizer
from .config import DirectoryConfig
from .errors import BadRequest, DirectoryError, NotFound
from .merge import merge_entries
from .models import Entry, Logbook, Tag
from .store import EntryStore
from .users import UserContext
from .validation import (
    check_id_matches,
    check_name_matches,
    validate_entries,
    validate_entry,
    validate_logbook,
    validate_logbooks,
    validate_tag,
    validate_tags,
)

logger = logging.getLogger(__name__)


def _raise_if(error: Optional[DirectoryError]) -> None:
    if error is not None:
        raise error


class DirectoryManager:
    """Business logic layer composing validation, authorization, merge and storage.

    Construct once at service start and share; the manager itself holds no
    per-request state.
    """

    def __init__(self, store: EntryStore, users: UserContext, config: Optional[DirectoryConfig] = None):
        self.store = store
        self.users = users
        self.config = config or DirectoryConfig()
        self.authorizer = Authorizer(users, store, tag_owner_group=self.config.tag_owner_group)

    def _notify(self, operation: str, target: Any) -> None:
        """Log a completed mutation and call the post_write hook if defined."""
        logger.debug("%s: %s by %s", operation, target, self.users.current_user_name())
        if "post_write" in self.config.hooks:
            self.config.hooks["post_write"](operation, target)

    # ========== Entries ==========

    def find_entry(self, entry_id: int) -> Optional[Entry]:
        """Return single entry found by id, or None."""
        return self.store.find_by_id(entry_id)

    def find_entries_by_logbook(self, name: str) -> list[Entry]:
        return self.store.find_by_logbook_name(name)

    def find_entries_by_tag(self, name: str) -> list[Entry]:
        return self.store.find_by_tag_name(name)

    def find_entries(self, criteria: Mapping[str, Sequence[str]]) -> list[Entry]:
        """Return entries matching logbook, tag, search and owner patterns.

        Args:
            criteria: Match key to ordered list of wildcard patterns

        Raises:
            BadRequest: On an unknown match key.
        """
        return self.store.find_by_multi_match(criteria)

    def create_entry(self, data: Entry) -> Entry:
        """Create a new entry; the store assigns its id.

        Raises:
            BadRequest: If the owner is missing.
            Forbidden: If the caller is not in the owner group.
        """
        # The hook runs first so that its result is what gets checked
        if "pre_create_entry" in self.config.hooks:
            data = self.config.hooks["pre_create_entry"](data)

        if not data.owner:
            raise BadRequest("Invalid log owner (null or empty string)")
        _raise_if(self.authorizer.check_entry(data))

        created = self.store.create(dataclasses.replace(data, id=0))
        self._notify("create_entry", created.to_logger())
        return created

    def _replace_entry(self, entry_id: int, data: Entry) -> Entry:
        self.store.delete_by_id(entry_id, fail_if_absent=False)
        created = self.store.create(data)
        self._notify("replace_entry", created.to_logger())
        return created

    def create_or_replace_entry(self, entry_id: int, data: Entry) -> Entry:
        """Create entry ``entry_id``, fully replacing any existing one.

        The logbook and tag sets in ``data`` have to be complete; existing
        associations are replaced, not merged.

        Raises:
            BadRequest: On invalid id/owner or id mismatch.
            Forbidden: If the caller owns neither the stored nor the new entry.
        """
        _raise_if(validate_entry(data) or check_id_matches(entry_id, data))
        _raise_if(self.authorizer.check_entry_id(entry_id) or self.authorizer.check_entry(data))
        return self._replace_entry(entry_id, data)

    def create_or_replace_entries(self, data: list[Entry]) -> list[Entry]:
        """Create or replace every entry in ``data``.

        All entries are validated and authorized before the first one is
        written. A store failure part way through leaves the earlier entries
        written.
        """
        _raise_if(validate_entries(data))
        for entry in data:
            _raise_if(self.authorizer.check_entry_id(entry.id) or self.authorizer.check_entry(entry))
        return [self._replace_entry(entry.id, entry) for entry in data]

    def update_entry(self, entry_id: int, data: Entry) -> Entry:
        """Merge the logbooks and tags in ``data`` into the existing entry.

        The stored entry takes the id and owner of ``data``; its content is
        kept and its associations become the name-keyed union of both.

        Raises:
            BadRequest: On invalid id/owner or id mismatch.
            Forbidden: On ownership mismatch.
            NotFound: If the entry does not exist.
        """
        _raise_if(validate_entry(data) or check_id_matches(entry_id, data))
        _raise_if(self.authorizer.check_entry_id(entry_id) or self.authorizer.check_entry(data))

        dest = self.store.find_by_id(entry_id)
        if dest is None:
            raise NotFound(f"Specified log '{entry_id}' does not exist")
        dest.id = data.id
        dest.owner = data.owner
        merge_entries(dest, data, self.config.merge_policy)
        return self._replace_entry(entry_id, dest)

    def remove_entry(self, entry_id: int) -> None:
        """Delete an entry; deleting a missing entry is not an error."""
        _raise_if(self.authorizer.check_entry_id(entry_id))
        self.store.delete_by_id(entry_id, fail_if_absent=False)
        self._notify("remove_entry", entry_id)

    def remove_existing_entry(self, entry_id: int) -> None:
        """Delete an entry, raising NotFound if it does not exist."""
        _raise_if(self.authorizer.check_entry_id(entry_id))
        self.store.delete_by_id(entry_id, fail_if_absent=True)
        self._notify("remove_entry", entry_id)

    # ========== Logbooks ==========

    def list_logbooks(self) -> list[Logbook]:
        return self.store.list_logbooks()

    def find_logbook(self, name: str) -> Optional[Logbook]:
        """Return the logbook with its entries attached, or None."""
        logbook = self.store.find_logbook(name)
        if logbook is not None:
            logbook.entries = self.store.find_by_logbook_name(name)
        return logbook

    def update_logbook(self, name: str, data: Logbook) -> Logbook:
        """Add logbook ``name`` to the entries listed in ``data``.

        Raises:
            BadRequest: On name mismatch.
            Forbidden: If the caller is not in the logbook's owner group.
            NotFound: If the logbook or a listed entry does not exist.
        """
        _raise_if(check_name_matches(name, data))
        _raise_if(self.authorizer.check_logbook_name(name))
        self.store.apply_logbook_associations(name, data)
        self._notify("update_logbook", name)
        return self.find_logbook(name)

    def _replace_logbook(self, data: Logbook) -> None:
        self.store.delete_logbook(data.name, fail_if_absent=False)
        self.store.create_logbook(data.name, data.owner, data.state)
        self.store.apply_logbook_associations(data.name, data)
        self._notify("replace_logbook", data.to_logger())

    def create_or_replace_logbook(self, name: str, data: Logbook) -> Logbook:
        """Create logbook ``name`` attached exclusively to the entries in ``data``."""
        _raise_if(validate_logbook(data) or check_name_matches(name, data))
        _raise_if(self.authorizer.check_logbook_name(name) or self.authorizer.check_logbook(data))
        self._replace_logbook(data)
        return self.find_logbook(data.name)

    def create_or_replace_logbooks(self, data: list[Logbook]) -> list[Logbook]:
        """Create or replace every logbook in ``data`` (not atomic across logbooks)."""
        _raise_if(validate_logbooks(data))
        for logbook in data:
            _raise_if(
                self.authorizer.check_logbook_name(logbook.name)
                or self.authorizer.check_logbook(logbook)
            )
        for logbook in data:
            self._replace_logbook(logbook)
        return [self.find_logbook(logbook.name) for logbook in data]

    def add_single_logbook(self, name: str, entry_id: int) -> None:
        """Attach logbook ``name`` to entry ``entry_id`` only."""
        _raise_if(self.authorizer.check_logbook_name(name))
        self.store.apply_logbook_associations(name, Logbook(name=name, entries=[Entry(id=entry_id)]))
        self._notify("add_logbook", f"{name}->{entry_id}")

    def remove_logbook(self, name: str) -> None:
        _raise_if(self.authorizer.check_logbook_name(name))
        self.store.delete_logbook(name, fail_if_absent=False)
        self._notify("remove_logbook", name)

    def remove_existing_logbook(self, name: str) -> None:
        _raise_if(self.authorizer.check_logbook_name(name))
        self.store.delete_logbook(name, fail_if_absent=True)
        self._notify("remove_logbook", name)

    def remove_single_logbook(self, name: str, entry_id: int) -> None:
        """Detach logbook ``name`` from entry ``entry_id`` only."""
        _raise_if(self.authorizer.check_logbook_name(name))
        self.store.detach_logbook(name, entry_id)
        self._notify("remove_logbook", f"{name}-/>{entry_id}")

    # ========== Tags ==========

    def list_tags(self) -> list[Tag]:
        return self.store.list_tags()

    def find_tag(self, name: str) -> Optional[Tag]:
        """Return the tag with its entries attached, or None."""
        tag = self.store.find_tag(name)
        if tag is not None:
            tag.entries = self.store.find_by_tag_name(name)
        return tag

    def update_tag(self, name: str, data: Optional[Tag]) -> Tag:
        """Add tag ``name`` to the entries listed in ``data``."""
        _raise_if(check_name_matches(name, data))
        _raise_if(self.authorizer.check_tag_name(name))
        self.store.apply_tag_associations(name, data if data is not None else Tag(name=name))
        self._notify("update_tag", name)
        return self.find_tag(name)

    def _replace_tag(self, data: Tag) -> None:
        self.store.delete_tag(data.name, fail_if_absent=False)
        self.store.create_tag(data.name, data.state)
        self.store.apply_tag_associations(data.name, data)
        self._notify("replace_tag", data.to_logger())

    def create_or_replace_tag(self, name: str, data: Tag) -> Tag:
        """Create tag ``name`` attached exclusively to the entries in ``data``."""
        _raise_if(validate_tag(data) or check_name_matches(name, data))
        _raise_if(self.authorizer.check_tag_name(name) or self.authorizer.check_tag(data))
        self._replace_tag(data)
        return self.find_tag(data.name)

    def create_or_replace_tags(self, data: list[Tag]) -> list[Tag]:
        """Create or replace every tag in ``data`` (not atomic across tags)."""
        _raise_if(validate_tags(data))
        _raise_if(self.authorizer.check_tags(data))
        for tag in data:
            self._replace_tag(tag)
        return [self.find_tag(tag.name) for tag in data]

    def add_single_tag(self, name: str, entry_id: int) -> None:
        """Attach tag ``name`` to entry ``entry_id`` only."""
        _raise_if(self.authorizer.check_tag_name(name))
        self.store.apply_tag_associations(name, entry_id)
        self._notify("add_tag", f"{name}->{entry_id}")

    def remove_tag(self, name: str) -> None:
        _raise_if(self.authorizer.check_tag_name(name))
        self.store.delete_tag(name, fail_if_absent=False)
        self._notify("remove_tag", name)

    def remove_existing_tag(self, name: str) -> None:
        _raise_if(self.authorizer.check_tag_name(name))
        self.store.delete_tag(name, fail_if_absent=True)
        self._notify("remove_tag", name)

    def remove_single_tag(self, name: str, entry_id: int) -> None:
        """Detach tag ``name`` from entry ``entry_id`` only."""
        _raise_if(self.authorizer.check_tag_name(name))
        self.store.detach_tag(name, entry_id)
        self._notify("remove_tag", f"{name}-/>{entry_id}")
