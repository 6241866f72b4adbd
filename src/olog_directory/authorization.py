"""Group-membership checks against the owner of an entry, logbook or tag.

Checks return ``None`` when the calling user may act on the target and a
``Forbidden`` otherwise. A missing target (``None``, or an id/name that
resolves to nothing) always passes: some operations look up a target that
does not exist yet and must not be rejected for it.
"""

from __future__ import annotations

from typing import Optional

from .errors import Forbidden
from .models import Entry, Logbook, Tag
from .store import EntryStore
from .users import UserContext


class Authorizer:
    """Ownership checks for the calling user."""

    def __init__(self, users: UserContext, store: EntryStore, tag_owner_group: Optional[str] = None):
        self.users = users
        self.store = store
        self.tag_owner_group = tag_owner_group

    def _forbidden(self, group: Optional[str], kind: str, target: object) -> Forbidden:
        return Forbidden(
            f"User '{self.users.current_user_name()}' does not belong to owner group "
            f"'{group}' of {kind} '{target}'"
        )

    # ========== Entries ==========

    def check_entry(self, data: Optional[Entry]) -> Optional[Forbidden]:
        if data is None:
            return None
        if not self.users.is_in_group(data.owner):
            return self._forbidden(data.owner, "log", data.id)
        return None

    def check_entries(self, data: Optional[list[Entry]]) -> Optional[Forbidden]:
        if data is None:
            return None
        for entry in data:
            error = self.check_entry(entry)
            if error is not None:
                return error
        return None

    def check_entry_id(self, entry_id: int) -> Optional[Forbidden]:
        """Check ownership of the stored entry ``entry_id``."""
        if not entry_id:
            return None
        return self.check_entry(self.store.find_by_id(entry_id))

    # ========== Logbooks ==========

    def check_logbook(self, data: Optional[Logbook]) -> Optional[Forbidden]:
        if data is None:
            return None
        if not self.users.is_in_group(data.owner):
            return self._forbidden(data.owner, "logbook", data.name)
        return None

    def check_logbooks(self, data: Optional[list[Logbook]]) -> Optional[Forbidden]:
        if data is None:
            return None
        for logbook in data:
            error = self.check_logbook(logbook)
            if error is not None:
                return error
        return None

    def check_logbook_name(self, name: Optional[str]) -> Optional[Forbidden]:
        """Check ownership of the stored logbook ``name``."""
        if not name:
            return None
        return self.check_logbook(self.store.find_logbook(name))

    # ========== Tags ==========

    def check_tag(self, data: Optional[Tag]) -> Optional[Forbidden]:
        """Check the right to change a tag.

        With a configured tag owner group, membership of that group is
        required. Otherwise the name is only looked up among logbooks, so
        a name taken by a foreign logbook is refused. Tags and logbooks
        never share a name, so this does not check ownership of existing
        tags: any user may change them.
        """
        if data is None:
            return None
        if self.tag_owner_group is not None:
            if not self.users.is_in_group(self.tag_owner_group):
                return self._forbidden(self.tag_owner_group, "tag", data.name)
            return None
        return self.check_logbook_name(data.name)

    def check_tags(self, data: Optional[list[Tag]]) -> Optional[Forbidden]:
        if data is None:
            return None
        for tag in data:
            error = self.check_tag(tag)
            if error is not None:
                return error
        return None

    def check_tag_name(self, name: Optional[str]) -> Optional[Forbidden]:
        if not name:
            return None
        return self.check_tag(Tag(name=name))
