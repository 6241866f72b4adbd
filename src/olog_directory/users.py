"""Calling-principal identity and group membership.

The directory only ever asks two questions of the outside world: who is
calling, and is that user in a given group. Answers are never cached;
every check asks again.
"""

from __future__ import annotations

import getpass
import grp
import logging
import os
import pwd
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .config import DirectoryConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class UserContext(Protocol):
    """Protocol that every identity backend must implement."""

    def current_user_name(self) -> str: ...

    def is_in_group(self, group: Optional[str]) -> bool:
        """Return True if the calling user is a member of ``group``."""
        ...


@dataclass
class StaticUserContext:
    """User with a fixed, configured set of groups."""

    user: str
    groups: list[str] = field(default_factory=list)
    admin: bool = False

    def current_user_name(self) -> str:
        return self.user

    def is_in_group(self, group: Optional[str]) -> bool:
        if self.admin:
            return True
        if not group:
            return False
        return group in self.groups


class OSUserContext:
    """User whose groups come from the operating system account database."""

    def __init__(self, user: Optional[str] = None, admin_groups: Iterable[str] = ()):
        self._user = user
        self.admin_groups = set(admin_groups)

    def current_user_name(self) -> str:
        return self._user or getpass.getuser()

    def group_names(self) -> set[str]:
        """Look up the names of all groups the user belongs to."""
        user = self.current_user_name()
        try:
            primary_gid = pwd.getpwnam(user).pw_gid
        except KeyError:
            logger.warning("Unknown OS user '%s'", user)
            return set()

        names = set()
        for gid in os.getgrouplist(user, primary_gid):
            try:
                names.add(grp.getgrgid(gid).gr_name)
            except KeyError:
                continue  # gid without a group entry
        return names

    def is_in_group(self, group: Optional[str]) -> bool:
        names = self.group_names()
        if self.admin_groups & names:
            return True
        if not group:
            return False
        return group in names


def make_user_context(config: DirectoryConfig) -> UserContext:
    """Build the user context described by the configuration.

    A configured group list gives a static context; otherwise group
    membership is read from the OS for every check.
    """
    if config.groups is not None:
        user = config.user or getpass.getuser()
        admin = bool(set(config.admin_groups) & set(config.groups))
        return StaticUserContext(user=user, groups=list(config.groups), admin=admin)
    return OSUserContext(user=config.user, admin_groups=config.admin_groups)
