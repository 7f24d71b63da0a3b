"""
Concierge Database Connection

One wrapper over SQLite and PostgreSQL. The backend is chosen from the
connection URL:
- ``postgresql://`` or ``postgres://`` → psycopg (PostgreSQL)
- anything else (file path, ``:memory:``) → sqlite3

Statements are written with ``?`` placeholders; they are rewritten to
``%s`` for PostgreSQL. Rows come back as dicts.
"""

from __future__ import annotations

import sqlite3
from typing import Any


class DbConnection:
    """Unified database connection wrapper."""

    def __init__(self, conn: Any, *, is_postgres: bool = False) -> None:
        self._conn = conn
        self._cursor: Any = None
        self.is_postgres = is_postgres

    def _convert_sql(self, sql: str) -> str:
        if not self.is_postgres:
            return sql
        return sql.replace("?", "%s")

    def execute(self, sql: str, params: tuple = ()) -> DbConnection:
        """Execute a single SQL statement. Returns self for chaining."""
        sql = self._convert_sql(sql)
        if self.is_postgres:
            self._cursor = self._conn.cursor()
            self._cursor.execute(sql, params or None)
        else:
            self._cursor = self._conn.execute(sql, params)
        return self

    def executescript(self, sql: str) -> None:
        """Execute multiple statements separated by semicolons."""
        if self.is_postgres:
            cur = self._conn.cursor()
            for stmt in sql.split(";"):
                stmt = stmt.strip()
                if stmt:
                    cur.execute(stmt)
            self._conn.commit()
        else:
            self._conn.executescript(sql)

    @property
    def rowcount(self) -> int:
        """Rows affected by the last execute(), or -1 if unknown."""
        if self._cursor is None:
            return -1
        return self._cursor.rowcount

    def fetchone(self) -> dict[str, Any] | None:
        if self._cursor is None:
            return None
        row = self._cursor.fetchone()
        return dict(row) if row is not None else None

    def fetchall(self) -> list[dict[str, Any]]:
        if self._cursor is None:
            return []
        return [dict(r) for r in self._cursor.fetchall()]

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    def upsert(self, table: str, pk: str, columns: list[str], values: tuple) -> None:
        """Insert or update a row keyed by ``pk``."""
        col_list = ", ".join(columns)

        if self.is_postgres:
            placeholders = ", ".join(["%s"] * len(columns))
            non_pk = [c for c in columns if c != pk]
            update_clause = ", ".join(f"{c} = EXCLUDED.{c}" for c in non_pk)
            sql = (
                f"INSERT INTO {table} ({col_list}) VALUES ({placeholders}) "
                f"ON CONFLICT ({pk}) DO UPDATE SET {update_clause}"
            )
            self._cursor = self._conn.cursor()
            self._cursor.execute(sql, values)
        else:
            placeholders = ", ".join(["?"] * len(columns))
            sql = f"INSERT OR REPLACE INTO {table} ({col_list}) VALUES ({placeholders})"
            self._cursor = self._conn.execute(sql, values)


def connect(db_url: str) -> DbConnection:
    """Create a database connection from a URL or path."""
    if db_url.startswith(("postgresql://", "postgres://")):
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError:
            raise ImportError(
                "PostgreSQL support requires psycopg. Install with: pip install 'concierge[postgres]'"
            ) from None

        conn = psycopg.connect(db_url, row_factory=dict_row, autocommit=False)
        return DbConnection(conn, is_postgres=True)

    conn = sqlite3.connect(db_url, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return DbConnection(conn, is_postgres=False)
