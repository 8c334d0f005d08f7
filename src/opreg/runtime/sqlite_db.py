# src/opreg/runtime/sqlite_db.py
from __future__ import annotations

import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS meta (
      key TEXT PRIMARY KEY,
      value TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS kv_entries (
      namespace TEXT NOT NULL,
      key TEXT NOT NULL,
      value TEXT NOT NULL,
      updated_ts_ms INTEGER NOT NULL,
      PRIMARY KEY (namespace, key)
    );
    """,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _env_ms(name: str, default: int, *, floor: int = 0) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    return max(floor, value)


class SqliteDB:
    """One SQLite file holding every registry namespace.

    Connections are opened per operation and never shared, so the object is
    safe to use from any thread or process. Writes go through write_tx(),
    which takes the writer lock up front (BEGIN IMMEDIATE) and retries while
    another writer holds it, until OPREG_SQLITE_WRITE_DEADLINE_MS runs out.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    def _pragmas(self) -> List[Tuple[str, object]]:
        # prod favours durability (FULL); dev/testnet trade it for speed (NORMAL).
        mode = (os.environ.get("OPREG_MODE") or "prod").strip().lower()
        synchronous = (os.environ.get("OPREG_SQLITE_SYNCHRONOUS") or "").strip().upper()
        if synchronous not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            synchronous = "FULL" if mode == "prod" else "NORMAL"
        return [
            ("synchronous", synchronous),
            ("temp_store", "MEMORY"),
            ("busy_timeout", _env_ms("OPREG_SQLITE_BUSY_TIMEOUT_MS", 5_000)),
        ]

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        # isolation_level=None: transactions are opened explicitly in write_tx().
        con = sqlite3.connect(self.path, isolation_level=None, check_same_thread=False)
        con.row_factory = sqlite3.Row
        try:
            journal = str(con.execute("PRAGMA journal_mode=WAL;").fetchone()[0]).lower()
            if journal != "wal" and (os.environ.get("OPREG_SQLITE_ALLOW_NON_WAL") or "").strip() != "1":
                raise RuntimeError(f"sqlite journal_mode is '{journal}', expected 'wal'")
            for name, value in self._pragmas():
                con.execute(f"PRAGMA {name}={value};")
        except BaseException:
            con.close()
            raise
        return con

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    def init_schema(self) -> None:
        with self.write_tx() as con:
            for ddl in _SCHEMA:
                con.execute(ddl)

            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
                return

            have = str(row["value"])
            if have != str(self.SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version mismatch: have={have} want={self.SCHEMA_VERSION}. "
                    "Refuse to start to avoid corrupting data."
                )

    @staticmethod
    def _execute_when_unlocked(con: sqlite3.Connection, sql: str, deadline_ts: int) -> None:
        """Run `sql`, retrying "database is locked" with jittered backoff.

        The delay doubles from OPREG_SQLITE_WRITE_BACKOFF_BASE_MS up to
        OPREG_SQLITE_WRITE_BACKOFF_MAX_MS. Past the deadline the last
        OperationalError propagates.
        """
        delay_s = _env_ms("OPREG_SQLITE_WRITE_BACKOFF_BASE_MS", 5, floor=1) / 1000.0
        cap_s = max(delay_s, _env_ms("OPREG_SQLITE_WRITE_BACKOFF_MAX_MS", 250) / 1000.0)
        while True:
            try:
                con.execute(sql)
                return
            except sqlite3.OperationalError as e:
                locked = "locked" in str(e).lower() or "busy" in str(e).lower()
                if not locked or _now_ms() >= deadline_ts:
                    raise
            time.sleep(delay_s * random.uniform(0.5, 1.5))
            delay_s = min(cap_s, delay_s * 2)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Single write transaction: committed on normal exit, rolled back on any exception."""
        deadline_ts = _now_ms() + _env_ms("OPREG_SQLITE_WRITE_DEADLINE_MS", 30_000, floor=50)

        with self.connection() as con:
            self._execute_when_unlocked(con, "BEGIN IMMEDIATE;", deadline_ts)
            try:
                yield con
                self._execute_when_unlocked(con, "COMMIT;", deadline_ts)
            except BaseException:
                if con.in_transaction:
                    con.execute("ROLLBACK;")
                raise


class SqliteKVStore:
    """KVStore over the kv_entries table, scoped to one namespace.

    Every set() is its own write transaction, so a single call is atomic and
    durable once it returns. Nothing here deletes rows.
    """

    def __init__(self, *, db: SqliteDB, namespace: str = "accounts") -> None:
        ns = str(namespace or "").strip()
        if not ns:
            raise ValueError("namespace must be a non-empty string")
        self._db = db
        self.namespace = ns
        self._db.init_schema()

    def get(self, key: str) -> Optional[str]:
        with self._db.connection() as con:
            row = con.execute(
                "SELECT value FROM kv_entries WHERE namespace=? AND key=?;",
                (self.namespace, str(key)),
            ).fetchone()
        return None if row is None else str(row["value"])

    def set(self, key: str, value: str) -> None:
        with self._db.write_tx() as con:
            con.execute(
                """
                INSERT INTO kv_entries(namespace, key, value, updated_ts_ms)
                VALUES(?, ?, ?, ?)
                ON CONFLICT(namespace, key) DO UPDATE SET
                  value=excluded.value,
                  updated_ts_ms=excluded.updated_ts_ms;
                """,
                (self.namespace, str(key), str(value), _now_ms()),
            )
