"""
SQLite Ledger - catalog, distributions and the assignment ledger

The ledger is the source of truth for the whole system. It provides:
- The assignment table, one row per (distribution, participant, part kind, type)
- Atomic runs: every allocation executes inside one transaction
- Idempotent pick recording via SQL upsert
- Full JSON export/import for backups

Fun fact: Double-entry bookkeeping was codified by Luca Pacioli in 1494 -
five centuries later, the best way to remember who got what is still a ledger!
"""

import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from partshare.kernel.errors import (
    BackupFormatError,
    LedgerError,
    LedgerLocked,
    PartShareError,
)
from partshare.kernel.logging import LogOperation, get_logger
from partshare.kernel.metrics import ledger_upserts_total

logger = get_logger(__name__)

BACKUP_VERSION = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS participants (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name TEXT NOT NULL,
    last_name TEXT NOT NULL,
    email TEXT,
    phone TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS objects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS part_kinds (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    object_id INTEGER NOT NULL REFERENCES objects(id) ON DELETE CASCADE,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS kit_types (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    object_id INTEGER NOT NULL REFERENCES objects(id) ON DELETE CASCADE,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS type_parts (
    type_id INTEGER NOT NULL REFERENCES kit_types(id) ON DELETE CASCADE,
    part_kind_id INTEGER NOT NULL REFERENCES part_kinds(id) ON DELETE CASCADE,
    quantity INTEGER NOT NULL CHECK (quantity > 0),
    PRIMARY KEY (type_id, part_kind_id)
);

CREATE TABLE IF NOT EXISTS distributions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS distribution_participants (
    distribution_id INTEGER NOT NULL REFERENCES distributions(id) ON DELETE CASCADE,
    participant_id INTEGER NOT NULL REFERENCES participants(id) ON DELETE CASCADE,
    PRIMARY KEY (distribution_id, participant_id)
);

CREATE TABLE IF NOT EXISTS distribution_selections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    distribution_id INTEGER NOT NULL REFERENCES distributions(id) ON DELETE CASCADE,
    type_id INTEGER NOT NULL REFERENCES kit_types(id) ON DELETE CASCADE,
    count INTEGER NOT NULL CHECK (count >= 0)
);

CREATE TABLE IF NOT EXISTS assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    distribution_id INTEGER NOT NULL REFERENCES distributions(id) ON DELETE CASCADE,
    participant_id INTEGER NOT NULL REFERENCES participants(id) ON DELETE CASCADE,
    part_kind_id INTEGER NOT NULL REFERENCES part_kinds(id) ON DELETE CASCADE,
    type_id INTEGER NOT NULL REFERENCES kit_types(id) ON DELETE CASCADE,
    quantity INTEGER NOT NULL CHECK (quantity >= 1),
    UNIQUE (distribution_id, participant_id, part_kind_id, type_id)
);

CREATE INDEX IF NOT EXISTS idx_assignments_participant
    ON assignments(participant_id, part_kind_id);
CREATE INDEX IF NOT EXISTS idx_assignments_distribution
    ON assignments(distribution_id);
"""

# Insert order respects foreign keys; deletion runs in reverse
BACKUP_TABLES = (
    "participants",
    "objects",
    "part_kinds",
    "kit_types",
    "type_parts",
    "distributions",
    "distribution_participants",
    "distribution_selections",
    "assignments",
)


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


class LedgerSession:
    """
    One open transaction against the ledger

    Handed out by SQLiteLedger.transaction(); everything executed through a
    session commits or rolls back together.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        return self.conn.execute(sql, tuple(params))

    # Assignment ledger

    def count_assignments(self, distribution_id: int) -> int:
        """Number of assignment rows owned by a distribution"""
        row = self.execute(
            "SELECT COUNT(*) FROM assignments WHERE distribution_id = ?",
            (distribution_id,),
        ).fetchone()
        return row[0]

    def sum_participant_quantities(self, participant_ids: list[int]) -> dict[int, int]:
        """
        Total quantity ever assigned per participant, across all distributions

        Participants without assignments are absent from the result.
        """
        if not participant_ids:
            return {}
        cursor = self.execute(
            f"""
            SELECT participant_id, SUM(quantity) AS total
            FROM assignments
            WHERE participant_id IN ({_placeholders(participant_ids)})
            GROUP BY participant_id
            """,
            participant_ids,
        )
        return {row["participant_id"]: row["total"] for row in cursor.fetchall()}

    def sum_participant_part_quantities(
        self, participant_ids: list[int]
    ) -> dict[int, dict[int, int]]:
        """Total quantity ever assigned per (participant, part kind)"""
        if not participant_ids:
            return {}
        cursor = self.execute(
            f"""
            SELECT participant_id, part_kind_id, SUM(quantity) AS total
            FROM assignments
            WHERE participant_id IN ({_placeholders(participant_ids)})
            GROUP BY participant_id, part_kind_id
            """,
            participant_ids,
        )
        totals: dict[int, dict[int, int]] = {}
        for row in cursor.fetchall():
            totals.setdefault(row["participant_id"], {})[row["part_kind_id"]] = row["total"]
        return totals

    def record_pick(
        self,
        distribution_id: int,
        participant_id: int,
        part_kind_id: int,
        type_id: int,
    ) -> None:
        """
        Record one unit handed to a participant

        Increments the existing row for the exact tuple, or creates it with
        quantity 1. Repeated picks therefore never duplicate rows.
        """
        self.execute(
            """
            INSERT INTO assignments (
                distribution_id, participant_id, part_kind_id, type_id, quantity
            ) VALUES (?, ?, ?, ?, 1)
            ON CONFLICT(distribution_id, participant_id, part_kind_id, type_id)
            DO UPDATE SET quantity = quantity + 1
            """,
            (distribution_id, participant_id, part_kind_id, type_id),
        )
        ledger_upserts_total.inc()


class SQLiteLedger:
    """
    SQLite-backed ledger with one transaction per unit of work

    Uses WAL mode for crash safety and foreign keys with ON DELETE CASCADE
    so that cancelling a distribution removes its selections, participant
    links and assignments.
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize ledger with SQLite database

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.executescript(SCHEMA)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections"""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[LedgerSession]:
        """
        Open a transaction that commits on success and rolls back on any error

        Domain errors propagate unchanged; raw sqlite3 errors are wrapped in
        LedgerError.

        Example:
            with ledger.transaction() as session:
                session.record_pick(1, 2, 3, 4)
        """
        with self._connect() as conn:
            try:
                yield LedgerSession(conn)
                conn.commit()
            except sqlite3.OperationalError as e:
                conn.rollback()
                message = str(e).lower()
                if "locked" in message or "busy" in message:
                    raise LedgerLocked(f"Ledger is locked: {e}") from e
                raise LedgerError(f"Ledger operation failed: {e}") from e
            except sqlite3.Error as e:
                conn.rollback()
                raise LedgerError(f"Ledger operation failed: {e}") from e
            except BaseException:
                conn.rollback()
                raise

    # Backup

    def export_dump(self, exported_at: datetime) -> dict[str, Any]:
        """
        Export every table as plain rows

        Returns:
            {"version": 1, "exported_at": ISO timestamp, "data": {table: [rows]}}
        """
        with self.transaction() as session:
            data = {
                table: [
                    dict(row)
                    for row in session.execute(f"SELECT * FROM {table}").fetchall()
                ]
                for table in BACKUP_TABLES
            }
        return {
            "version": BACKUP_VERSION,
            "exported_at": exported_at.isoformat(),
            "data": data,
        }

    def import_dump(self, dump: dict[str, Any]) -> dict[str, int]:
        """
        Replace the entire database content with a previously exported dump

        The wipe and the re-insert happen in one transaction, so a broken
        dump leaves the current content untouched.

        Returns:
            Number of rows inserted per table

        Raises:
            BackupFormatError: If the dump lacks version or data, names an
                unknown table or column, or holds rows that are not objects
        """
        if not isinstance(dump, dict) or not dump.get("version") or not isinstance(
            dump.get("data"), dict
        ):
            raise BackupFormatError("missing version or data section")
        if dump["version"] != BACKUP_VERSION:
            raise BackupFormatError(f"unsupported version {dump['version']}")

        data = dump["data"]
        unknown_tables = sorted(set(data) - set(BACKUP_TABLES))
        if unknown_tables:
            raise BackupFormatError(f"unknown tables {', '.join(map(str, unknown_tables))}")

        inserted: dict[str, int] = {}
        with LogOperation(logger, "import_dump", db_path=str(self.db_path)):
            with self.transaction() as session:
                rows_by_table = {
                    table: _checked_rows(session, table, data.get(table))
                    for table in BACKUP_TABLES
                }
                for table in reversed(BACKUP_TABLES):
                    session.execute(f"DELETE FROM {table}")
                for table, rows in rows_by_table.items():
                    for row in rows:
                        columns = list(row)
                        quoted = ", ".join(f'"{c}"' for c in columns)
                        session.execute(
                            f"INSERT INTO {table} ({quoted}) VALUES ({_placeholders(columns)})",
                            [row[c] for c in columns],
                        )
                    inserted[table] = len(rows)
        return inserted

    def count_rows(self, table: str) -> int:
        """Row count for one of the ledger tables"""
        if table not in BACKUP_TABLES:
            raise PartShareError(f"Unknown table {table}")
        with self.transaction() as session:
            return session.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def _checked_rows(session: LedgerSession, table: str, rows: Any) -> list[dict[str, Any]]:
    """
    Rows of one dump table, validated against the live schema

    Raises:
        BackupFormatError: If rows is not a list of objects or a row names a
            column the table does not have
    """
    if rows is None:
        return []
    if not isinstance(rows, list):
        raise BackupFormatError(f"{table} must be a list of rows")

    columns = {info["name"] for info in session.execute(f"PRAGMA table_info({table})")}
    for position, row in enumerate(rows):
        if not isinstance(row, dict):
            raise BackupFormatError(f"{table} row {position} is not an object")
        unknown = sorted(set(row) - columns)
        if unknown:
            raise BackupFormatError(
                f"{table} row {position} has unknown columns {', '.join(map(str, unknown))}"
            )
    return rows
