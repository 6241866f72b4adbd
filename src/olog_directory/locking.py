"""Cross-process locking around store mutations."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker


def lock_path_for(db_path: Path) -> Path:
    """Return the lock file guarding ``db_path``."""
    return db_path.with_suffix(db_path.suffix + ".lock")


@contextmanager
def file_lock(db_path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock on the database for the duration of the block.

    The lock lives in a ``.lock`` file next to the database so that readers
    are never blocked; only writers serialize on it.

    Args:
        db_path: Database file to guard
        timeout: Seconds to wait for lock

    Raises:
        portalocker.LockException: If lock cannot be acquired
    """
    lock_path = lock_path_for(db_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout, fail_when_locked=False):
        yield
