"""Name-keyed merge of logbook and tag associations between two entries."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Union

from .models import Entry, Logbook, Tag


class MergePolicy(Enum):
    """What to do when the source carries an association the destination already has."""
    SKIP = "skip"            # existing association wins, untouched
    OVERWRITE = "overwrite"  # source association replaces it in place


def _merge_by_name(
    dest: list[Union[Logbook, Tag]],
    src: Optional[list[Union[Logbook, Tag]]],
    policy: MergePolicy,
) -> None:
    for s in src or []:
        for i, d in enumerate(dest):
            if d.name == s.name:
                if policy is MergePolicy.OVERWRITE:
                    dest[i] = s
                break
        else:
            dest.append(s)


def merge_entries(dest: Entry, src: Entry, policy: MergePolicy = MergePolicy.SKIP) -> None:
    """Merge logbooks and tags of ``src`` into ``dest`` in place.

    The merge is a union keyed by name: nothing is ever removed from
    ``dest``, existing associations keep their relative order, and new ones
    are appended in source order. Logbooks and tags are merged
    independently.

    Args:
        dest: Entry to merge into
        src: Entry whose associations are added
        policy: Handling of same-name associations (default: keep existing)
    """
    if dest.logbooks is None:
        dest.logbooks = []
    if dest.tags is None:
        dest.tags = []
    _merge_by_name(dest.logbooks, src.logbooks, policy)
    _merge_by_name(dest.tags, src.tags, policy)
