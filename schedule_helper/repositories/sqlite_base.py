# Rev 0.2.0
from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Mapping, Optional, Union

from schedule_helper.models.entities import to_db_value


class SQLiteRepositoryBase:
    """
    Shared plumbing for the table repositories.
    Accepts a raw sqlite3.Connection or a wrapper exposing `.conn` / `.connect()`.
    Repositories never commit; the caller owns the transaction.
    """

    table = ""

    def __init__(self, db_or_conn: Union[sqlite3.Connection, Any]):
        self._db_or_conn = db_or_conn

    # -------------------------
    # Connection handling
    # -------------------------
    def _conn(self) -> sqlite3.Connection:
        c = None
        if isinstance(self._db_or_conn, sqlite3.Connection):
            c = self._db_or_conn
        elif hasattr(self._db_or_conn, "conn") and isinstance(self._db_or_conn.conn, sqlite3.Connection):
            c = self._db_or_conn.conn
        elif hasattr(self._db_or_conn, "connect"):
            maybe = self._db_or_conn.connect()
            if isinstance(maybe, sqlite3.Connection):
                c = maybe
        if c is None:
            raise RuntimeError(
                f"{type(self).__name__}: could not obtain sqlite3.Connection "
                "(expected .conn or .connect() on wrapper, or a raw Connection)."
            )
        return c

    def _fetch_all(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        return self._conn().execute(sql, tuple(params)).fetchall()

    def _fetch_one(self, sql: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        return self._conn().execute(sql, tuple(params)).fetchone()

    # -------------------------
    # Generic writes
    # -------------------------
    def _insert(self, values: Mapping[str, Any]) -> int:
        cols = ", ".join(values.keys())
        placeholders = ", ".join(["?"] * len(values))
        cur = self._conn().execute(
            f"INSERT INTO {self.table}({cols}) VALUES ({placeholders})",
            tuple(to_db_value(v) for v in values.values()),
        )
        return int(cur.lastrowid)

    def _update(self, row_id: int, values: Mapping[str, Any]) -> bool:
        if not values:
            return False
        sets = ", ".join(f"{col} = ?" for col in values.keys())
        cur = self._conn().execute(
            f"UPDATE {self.table} SET {sets} WHERE Id = ?",
            (*(to_db_value(v) for v in values.values()), row_id),
        )
        return cur.rowcount > 0

    def _delete(self, row_id: int) -> bool:
        cur = self._conn().execute(f"DELETE FROM {self.table} WHERE Id = ?", (row_id,))
        return cur.rowcount > 0

    def _exists(self, row_id: int) -> bool:
        return self._fetch_one(f"SELECT 1 FROM {self.table} WHERE Id = ?", (row_id,)) is not None

    def _name_taken(self, column: str, name: str, collation: str, exclude_id: Optional[int]) -> bool:
        sql = f"SELECT 1 FROM {self.table} WHERE {column} = ? COLLATE {collation}"
        params: list[Any] = [name]
        if exclude_id is not None:
            sql += " AND Id <> ?"
            params.append(exclude_id)
        return self._fetch_one(sql + " LIMIT 1", params) is not None
