# Rev 0.2.0

"""SQLite connection, transaction & schema runner (Rev 0.2.0)
- WAL mode, foreign_keys=ON
- Applies SQL files in schedule_helper/data/migrations in lexical order
- Tracks applied files in schema_migrations(filename, sha256, applied_at_utc)
- transaction(): BEGIN IMMEDIATE / COMMIT, ROLLBACK on any error
"""
from __future__ import annotations
import hashlib
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from schedule_helper.models.errors import StoreError
from schedule_helper.utils.config import StoreConfig
from schedule_helper.utils.paths import MIGRATIONS_DIR

log = logging.getLogger(__name__)

EXPECTED_TABLES = ("TaskTypes", "Projects", "Tasks", "schema_migrations")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def sha256_text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class Database:
    def __init__(self, config: StoreConfig) -> None:
        self.config = config
        self._conn: Optional[sqlite3.Connection] = None

    # -------------------------
    # Connection handling
    # -------------------------
    def open(self) -> sqlite3.Connection:
        if self._conn is not None:
            return self._conn
        try:
            conn = sqlite3.connect(
                self.config.database,
                uri=self.config.uri,
                timeout=self.config.busy_timeout_ms / 1000.0,
                isolation_level=None,  # transactions are explicit, see transaction()
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON;")
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute(f"PRAGMA busy_timeout={int(self.config.busy_timeout_ms)};")
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open store {self.config.database!r}: {exc}") from exc
        self._conn = conn
        log.info("SQLite open %s", self.config.database)
        return conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self.open()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        except sqlite3.Error:
            log.warning("Error closing %s", self.config.database, exc_info=True)
        finally:
            self._conn = None

    def ping(self) -> bool:
        try:
            return self.conn.execute("SELECT 1").fetchone()[0] == 1
        except (sqlite3.Error, StoreError):
            log.warning("Store ping failed for %s", self.config.database, exc_info=True)
            return False

    # -------------------------
    # Transactions
    # -------------------------
    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """One atomic unit of work. Nested calls join the outer transaction."""
        conn = self.conn
        if conn.in_transaction:
            yield conn
            return
        try:
            conn.execute("BEGIN IMMEDIATE;")
        except sqlite3.Error as exc:
            raise StoreError(f"cannot begin transaction: {exc}") from exc
        try:
            yield conn
        except sqlite3.Error as exc:
            self._rollback(conn)
            raise StoreError(str(exc)) from exc
        except BaseException:
            self._rollback(conn)
            raise
        else:
            try:
                conn.execute("COMMIT;")
            except sqlite3.Error as exc:
                self._rollback(conn)
                raise StoreError(f"commit failed: {exc}") from exc

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK;")

    # -------------------------
    # Schema
    # -------------------------
    def ensure_migrations_table(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT NOT NULL UNIQUE,
                sha256 TEXT NOT NULL,
                applied_at_utc TEXT NOT NULL
            )
            """
        )

    def applied(self) -> dict[str, str]:
        rows = self.conn.execute(
            "SELECT filename, sha256 FROM schema_migrations ORDER BY filename"
        ).fetchall()
        return {r["filename"]: r["sha256"] for r in rows}

    def run_migrations(self, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
        """Apply pending .sql files; each file plus its bookkeeping row is one transaction."""
        try:
            self.ensure_migrations_table()
            applied = self.applied()
            applied_now: list[str] = []
            for path in sorted(migrations_dir.glob("*.sql")):
                sql = path.read_text(encoding="utf-8")
                digest = sha256_text(sql)
                if path.name in applied:
                    if applied[path.name] != digest:
                        log.warning("Migration %s changed after it was applied", path.name)
                    continue
                log.info("Applying migration %s", path.name)
                try:
                    self.conn.executescript("BEGIN;\n" + sql)
                    self.conn.execute(
                        "INSERT INTO schema_migrations(filename, sha256, applied_at_utc) VALUES (?, ?, ?)",
                        (path.name, digest, utc_now_iso()),
                    )
                    self.conn.execute("COMMIT;")
                except sqlite3.Error:
                    self._rollback(self.conn)
                    raise
                applied_now.append(path.name)
            return applied_now
        except sqlite3.Error as exc:
            raise StoreError(f"schema creation failed: {exc}") from exc

    def missing_tables(self) -> list[str]:
        rows = self.conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        ).fetchall()
        present = {r["name"] for r in rows}
        return [t for t in EXPECTED_TABLES if t not in present]
