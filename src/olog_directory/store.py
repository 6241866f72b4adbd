"""Persistent storage for entries, logbooks and tags.

The manager talks to storage only through the ``EntryStore`` protocol.
``SqliteEntryStore`` is the shipped implementation: one SQLite file,
logbooks and tags sharing a single table (and therefore a single name
namespace) told apart by an ``is_tag`` flag.

Database location: <data_dir>/olog.db
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

import portalocker

from .errors import BadRequest, NotFound, StoreFailure
from .locking import file_lock
from .models import Entry, Logbook, State, Tag, format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

MATCH_KEYS = ("logbook", "tag", "search", "owner")


@runtime_checkable
class EntryStore(Protocol):
    """Storage operations consumed by the directory manager.

    Every failure crossing this boundary is a ``DirectoryError``.
    """

    def find_by_id(self, entry_id: int) -> Optional[Entry]: ...

    def find_by_logbook_name(self, name: str) -> list[Entry]: ...

    def find_by_tag_name(self, name: str) -> list[Entry]: ...

    def find_by_multi_match(self, criteria: Mapping[str, Sequence[str]]) -> list[Entry]: ...

    def delete_by_id(self, entry_id: int, fail_if_absent: bool) -> None: ...

    def create(self, entry: Entry) -> Entry: ...

    def list_logbooks(self) -> list[Logbook]: ...

    def find_logbook(self, name: str) -> Optional[Logbook]: ...

    def list_tags(self) -> list[Tag]: ...

    def find_tag(self, name: str) -> Optional[Tag]: ...

    def create_logbook(self, name: str, owner: str, state: State = State.ACTIVE) -> None: ...

    def create_tag(self, name: str, state: State = State.ACTIVE) -> None: ...

    def delete_logbook(self, name: str, fail_if_absent: bool) -> None: ...

    def delete_tag(self, name: str, fail_if_absent: bool) -> None: ...

    def detach_logbook(self, name: str, entry_id: int) -> None: ...

    def detach_tag(self, name: str, entry_id: int) -> None: ...

    def apply_logbook_associations(self, name: str, payload: Logbook) -> None: ...

    def apply_tag_associations(self, name: str, payload: Union[Tag, int]) -> None: ...


def _glob_to_like(pattern: str) -> str:
    """Translate a ``*``/``?`` wildcard pattern into a LIKE pattern (escape ``\\``)."""
    escaped = pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped.replace("*", "%").replace("?", "_")


def _split_patterns(values: Sequence[str]) -> list[str]:
    patterns = []
    for value in values:
        for part in value.split(","):
            part = part.strip()
            if part:
                patterns.append(part)
    return patterns


def _kind(is_tag: bool) -> str:
    return "Tag" if is_tag else "Logbook"


class SqliteEntryStore:
    """SQLite-backed entry store."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path, lock_timeout: float = 10.0):
        """Open (and create if needed) the store.

        Args:
            db_path: Path to the SQLite database file
            lock_timeout: Seconds a writer waits for the store lock
        """
        self.db_path = db_path
        self.lock_timeout = lock_timeout
        self._connection: Optional[sqlite3.Connection] = None
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._translate_errors():
            self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(str(self.db_path))
            self._connection.row_factory = sqlite3.Row
            # Associations are removed together with their entry or logbook
            self._connection.execute("PRAGMA foreign_keys = ON")
            self._connection.execute("PRAGMA journal_mode = WAL")
        return self._connection

    def _ensure_schema(self) -> None:
        conn = self._get_connection()
        cursor = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
        )
        if cursor.fetchone() is None:
            self._init_schema(conn)

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize the database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
            INSERT INTO schema_version (version) VALUES (1);

            CREATE TABLE IF NOT EXISTS entries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                owner TEXT NOT NULL,
                subject TEXT,
                description TEXT,
                level TEXT NOT NULL DEFAULT 'Info',
                created TEXT NOT NULL,          -- ISO 8601
                modified TEXT NOT NULL          -- ISO 8601
            );

            -- Logbooks and tags share one name namespace
            CREATE TABLE IF NOT EXISTS logbooks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                owner TEXT,                     -- NULL for tags
                state TEXT NOT NULL DEFAULT 'Active',
                is_tag INTEGER NOT NULL DEFAULT 0
            );

            -- rowid order is association order
            CREATE TABLE IF NOT EXISTS entries_logbooks (
                entry_id INTEGER NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
                logbook_id INTEGER NOT NULL REFERENCES logbooks(id) ON DELETE CASCADE,
                UNIQUE (entry_id, logbook_id)
            );

            CREATE INDEX IF NOT EXISTS idx_entries_owner ON entries(owner);
            CREATE INDEX IF NOT EXISTS idx_el_logbook ON entries_logbooks(logbook_id);
        """)
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @contextmanager
    def _translate_errors(self) -> Generator[None, None, None]:
        try:
            yield
        except sqlite3.Error as e:
            raise StoreFailure(f"Database error: {e}") from e
        except portalocker.LockException as e:
            raise StoreFailure(f"Could not lock store '{self.db_path}': {e}") from e

    @contextmanager
    def _writing(self) -> Generator[sqlite3.Connection, None, None]:
        """Run one mutation as a single locked transaction."""
        with self._translate_errors():
            with file_lock(self.db_path, timeout=self.lock_timeout):
                conn = self._get_connection()
                try:
                    yield conn
                except BaseException:
                    conn.rollback()
                    raise
                conn.commit()

    # ========== Row helpers ==========

    def _row_to_entry(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Entry:
        entry = Entry(
            id=row["id"],
            owner=row["owner"],
            subject=row["subject"],
            description=row["description"],
            level=row["level"],
            created=parse_timestamp(row["created"]),
            modified=parse_timestamp(row["modified"]),
        )
        cursor = conn.execute(
            """
            SELECT l.name, l.owner, l.state, l.is_tag
            FROM entries_logbooks el JOIN logbooks l ON l.id = el.logbook_id
            WHERE el.entry_id = ?
            ORDER BY el.rowid
            """,
            (entry.id,),
        )
        for label in cursor.fetchall():
            if label["is_tag"]:
                entry.tags.append(Tag(name=label["name"], state=State(label["state"])))
            else:
                entry.logbooks.append(
                    Logbook(name=label["name"], owner=label["owner"], state=State(label["state"]))
                )
        return entry

    def _find_entries(self, where: str, params: Sequence) -> list[Entry]:
        with self._translate_errors():
            conn = self._get_connection()
            cursor = conn.execute(f"SELECT * FROM entries {where} ORDER BY id", params)
            return [self._row_to_entry(conn, row) for row in cursor.fetchall()]

    def _label_id(self, conn: sqlite3.Connection, name: str, is_tag: bool) -> Optional[int]:
        row = conn.execute(
            "SELECT id FROM logbooks WHERE name = ? AND is_tag = ?", (name, int(is_tag))
        ).fetchone()
        return None if row is None else row["id"]

    def _require_entry(self, conn: sqlite3.Connection, entry_id: int) -> None:
        row = conn.execute("SELECT 1 FROM entries WHERE id = ?", (entry_id,)).fetchone()
        if row is None:
            raise NotFound(f"Log id '{entry_id}' does not exist")

    def _attach(self, conn: sqlite3.Connection, name: str, entry_id: int, is_tag: bool) -> None:
        label_id = self._label_id(conn, name, is_tag)
        if label_id is None:
            raise NotFound(f"{_kind(is_tag)} '{name}' does not exist")
        conn.execute(
            "INSERT OR IGNORE INTO entries_logbooks (entry_id, logbook_id) VALUES (?, ?)",
            (entry_id, label_id),
        )

    # ========== Entries ==========

    def find_by_id(self, entry_id: int) -> Optional[Entry]:
        """Return the entry with its logbooks and tags, or None."""
        entries = self._find_entries("WHERE id = ?", (entry_id,))
        return entries[0] if entries else None

    def find_by_logbook_name(self, name: str) -> list[Entry]:
        return self._find_entries(
            """WHERE id IN (
                SELECT el.entry_id FROM entries_logbooks el JOIN logbooks l ON l.id = el.logbook_id
                WHERE l.name = ? AND l.is_tag = 0)""",
            (name,),
        )

    def find_by_tag_name(self, name: str) -> list[Entry]:
        return self._find_entries(
            """WHERE id IN (
                SELECT el.entry_id FROM entries_logbooks el JOIN logbooks l ON l.id = el.logbook_id
                WHERE l.name = ? AND l.is_tag = 1)""",
            (name,),
        )

    def find_by_multi_match(self, criteria: Mapping[str, Sequence[str]]) -> list[Entry]:
        """Find entries matching every key of ``criteria``.

        Args:
            criteria: Mapping of match key (logbook, tag, search, owner) to
                wildcard patterns. Patterns under one key are alternatives;
                all keys must match.

        Raises:
            BadRequest: On an unknown match key.
        """
        conditions = []
        params: list = []

        for key, values in criteria.items():
            if key not in MATCH_KEYS:
                raise BadRequest(f"Unknown match key '{key}', expected one of {list(MATCH_KEYS)}")
            patterns = [_glob_to_like(p) for p in _split_patterns(values)]
            if not patterns:
                continue

            if key in ("logbook", "tag"):
                alternatives = " OR ".join(["l.name LIKE ? ESCAPE '\\'"] * len(patterns))
                conditions.append(
                    "id IN (SELECT el.entry_id FROM entries_logbooks el "
                    "JOIN logbooks l ON l.id = el.logbook_id "
                    f"WHERE l.is_tag = ? AND ({alternatives}))"
                )
                params.append(1 if key == "tag" else 0)
                params.extend(patterns)
            elif key == "search":
                alternatives = " OR ".join(
                    ["subject LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\'"] * len(patterns)
                )
                conditions.append(f"({alternatives})")
                for p in patterns:
                    params.extend([p, p])
            else:
                alternatives = " OR ".join(["owner LIKE ? ESCAPE '\\'"] * len(patterns))
                conditions.append(f"({alternatives})")
                params.extend(patterns)

        where = ""
        if conditions:
            where = "WHERE " + " AND ".join(conditions)
        return self._find_entries(where, params)

    def delete_by_id(self, entry_id: int, fail_if_absent: bool) -> None:
        with self._writing() as conn:
            cursor = conn.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
            if cursor.rowcount == 0 and fail_if_absent:
                raise NotFound(f"Log id '{entry_id}' does not exist")
        logger.debug("Deleted log %s", entry_id)

    def create(self, entry: Entry) -> Entry:
        """Store a new entry together with its associations.

        A non-zero ``entry.id`` is kept; otherwise the next id is assigned.
        Every logbook and tag named by the entry must already exist.

        Returns:
            The stored entry as read back from the database.

        Raises:
            NotFound: If a referenced logbook or tag does not exist.
        """
        now = utc_now()
        created = entry.created or now
        with self._writing() as conn:
            cursor = conn.execute(
                """
                INSERT INTO entries (id, owner, subject, description, level, created, modified)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.id or None,
                    entry.owner,
                    entry.subject,
                    entry.description,
                    entry.level,
                    format_timestamp(created),
                    format_timestamp(now),
                ),
            )
            entry_id = cursor.lastrowid
            for logbook in entry.logbooks:
                self._attach(conn, logbook.name, entry_id, is_tag=False)
            for tag in entry.tags:
                self._attach(conn, tag.name, entry_id, is_tag=True)
        logger.debug("Created log %s", entry_id)
        return self.find_by_id(entry_id)

    # ========== Logbooks and tags ==========

    def _list_labels(self, is_tag: bool) -> list[Union[Logbook, Tag]]:
        with self._translate_errors():
            cursor = self._get_connection().execute(
                "SELECT name, owner, state FROM logbooks WHERE is_tag = ? ORDER BY name",
                (int(is_tag),),
            )
            rows = cursor.fetchall()
        if is_tag:
            return [Tag(name=r["name"], state=State(r["state"])) for r in rows]
        return [Logbook(name=r["name"], owner=r["owner"], state=State(r["state"])) for r in rows]

    def _find_label(self, name: str, is_tag: bool) -> Optional[Union[Logbook, Tag]]:
        with self._translate_errors():
            row = self._get_connection().execute(
                "SELECT name, owner, state FROM logbooks WHERE name = ? AND is_tag = ?",
                (name, int(is_tag)),
            ).fetchone()
        if row is None:
            return None
        if is_tag:
            return Tag(name=row["name"], state=State(row["state"]))
        return Logbook(name=row["name"], owner=row["owner"], state=State(row["state"]))

    def list_logbooks(self) -> list[Logbook]:
        return self._list_labels(is_tag=False)

    def find_logbook(self, name: str) -> Optional[Logbook]:
        return self._find_label(name, is_tag=False)

    def list_tags(self) -> list[Tag]:
        return self._list_labels(is_tag=True)

    def find_tag(self, name: str) -> Optional[Tag]:
        return self._find_label(name, is_tag=True)

    def _create_label(self, name: str, owner: Optional[str], state: State, is_tag: bool) -> None:
        with self._writing() as conn:
            row = conn.execute("SELECT is_tag FROM logbooks WHERE name = ?", (name,)).fetchone()
            if row is not None:
                raise BadRequest(f"Name '{name}' is already used by {_kind(bool(row['is_tag'])).lower()} '{name}'")
            conn.execute(
                "INSERT INTO logbooks (name, owner, state, is_tag) VALUES (?, ?, ?, ?)",
                (name, owner, state.value, int(is_tag)),
            )
        logger.debug("Created %s %s", _kind(is_tag).lower(), name)

    def create_logbook(self, name: str, owner: str, state: State = State.ACTIVE) -> None:
        self._create_label(name, owner, state, is_tag=False)

    def create_tag(self, name: str, state: State = State.ACTIVE) -> None:
        self._create_label(name, None, state, is_tag=True)

    def _delete_label(self, name: str, is_tag: bool, fail_if_absent: bool) -> None:
        with self._writing() as conn:
            cursor = conn.execute(
                "DELETE FROM logbooks WHERE name = ? AND is_tag = ?", (name, int(is_tag))
            )
            if cursor.rowcount == 0 and fail_if_absent:
                raise NotFound(f"{_kind(is_tag)} '{name}' does not exist")

    def delete_logbook(self, name: str, fail_if_absent: bool) -> None:
        """Delete a logbook and all its associations."""
        self._delete_label(name, is_tag=False, fail_if_absent=fail_if_absent)

    def delete_tag(self, name: str, fail_if_absent: bool) -> None:
        """Delete a tag and all its associations."""
        self._delete_label(name, is_tag=True, fail_if_absent=fail_if_absent)

    def _detach_label(self, name: str, entry_id: int, is_tag: bool) -> None:
        with self._writing() as conn:
            label_id = self._label_id(conn, name, is_tag)
            if label_id is None:
                raise NotFound(f"{_kind(is_tag)} '{name}' does not exist")
            conn.execute(
                "DELETE FROM entries_logbooks WHERE entry_id = ? AND logbook_id = ?",
                (entry_id, label_id),
            )

    def detach_logbook(self, name: str, entry_id: int) -> None:
        """Remove logbook ``name`` from a single entry.

        Raises:
            NotFound: If no logbook has that name (a tag of that name does not count).
        """
        self._detach_label(name, entry_id, is_tag=False)

    def detach_tag(self, name: str, entry_id: int) -> None:
        """Remove tag ``name`` from a single entry."""
        self._detach_label(name, entry_id, is_tag=True)

    def _apply_associations(self, name: str, entry_ids: list[int], is_tag: bool) -> None:
        with self._writing() as conn:
            label_id = self._label_id(conn, name, is_tag)
            if label_id is None:
                raise NotFound(f"{_kind(is_tag)} '{name}' does not exist")
            for entry_id in entry_ids:
                self._require_entry(conn, entry_id)
                conn.execute(
                    "INSERT OR IGNORE INTO entries_logbooks (entry_id, logbook_id) VALUES (?, ?)",
                    (entry_id, label_id),
                )

    def apply_logbook_associations(self, name: str, payload: Logbook) -> None:
        """Add logbook ``name`` to every entry listed in the payload."""
        self._apply_associations(name, [e.id for e in payload.entries or []], is_tag=False)

    def apply_tag_associations(self, name: str, payload: Union[Tag, int]) -> None:
        """Add tag ``name`` to every entry in the payload, or to one entry id."""
        if isinstance(payload, int):
            entry_ids = [payload]
        else:
            entry_ids = [e.id for e in payload.entries or []]
        self._apply_associations(name, entry_ids, is_tag=True)
