from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path

import pytest

from opreg.runtime.kv_store import KVStore
from opreg.runtime.registry import Registry
from opreg.runtime.sqlite_db import SqliteDB, SqliteKVStore

OPERATOR = "operator-key"


def _pragma(con: sqlite3.Connection, name: str) -> int | str:
    row = con.execute(f"PRAGMA {name};").fetchone()
    if row is None:
        raise AssertionError(f"missing pragma: {name}")
    return row[0]


def test_sqlite_operational_pragmas_are_applied(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPREG_MODE", "prod")
    monkeypatch.delenv("OPREG_SQLITE_SYNCHRONOUS", raising=False)
    monkeypatch.setenv("OPREG_SQLITE_BUSY_TIMEOUT_MS", "1234")

    db = SqliteDB(path=str(tmp_path / "opreg.db"))
    db.init_schema()

    with db.connection() as con:
        assert str(_pragma(con, "journal_mode")).lower() == "wal"
        # FULL is the prod default.
        assert int(_pragma(con, "synchronous")) == 2
        # MEMORY corresponds to 2
        assert int(_pragma(con, "temp_store")) == 2
        assert int(_pragma(con, "busy_timeout")) == 1234


def test_dev_mode_uses_normal_synchronous(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPREG_MODE", "dev")
    monkeypatch.delenv("OPREG_SQLITE_SYNCHRONOUS", raising=False)

    db = SqliteDB(path=str(tmp_path / "opreg.db"))
    with db.connection() as con:
        assert int(_pragma(con, "synchronous")) == 1


def test_store_round_trip_and_overwrite(tmp_path: Path) -> None:
    store = SqliteKVStore(db=SqliteDB(path=str(tmp_path / "opreg.db")))
    assert isinstance(store, KVStore)
    assert store.get("alice") is None

    store.set("alice", "addr1")
    assert store.get("alice") == "addr1"

    store.set("alice", "addr2")
    assert store.get("alice") == "addr2"


def test_entries_survive_reopen(tmp_path: Path) -> None:
    path = str(tmp_path / "nested" / "opreg.db")

    reg1 = Registry(operator=OPERATOR, store=SqliteKVStore(db=SqliteDB(path=path)))
    assert reg1.set_account(OPERATOR, "alice", "addr1").ok

    reg2 = Registry(operator=OPERATOR, store=SqliteKVStore(db=SqliteDB(path=path)))
    assert reg2.get_account(OPERATOR, "alice").value == "addr1"


def test_namespaces_are_isolated(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "opreg.db"))
    a = SqliteKVStore(db=db, namespace="accounts")
    b = SqliteKVStore(db=db, namespace="other")

    a.set("alice", "addr1")
    assert b.get("alice") is None
    b.set("alice", "zzz")
    assert a.get("alice") == "addr1"


def test_empty_namespace_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        SqliteKVStore(db=SqliteDB(path=str(tmp_path / "opreg.db")), namespace=" ")


def test_schema_version_mismatch_refuses_to_start(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "opreg.db"))
    db.init_schema()
    with db.write_tx() as con:
        con.execute("UPDATE meta SET value='99' WHERE key='schema_version';")

    with pytest.raises(RuntimeError, match="schema_version mismatch"):
        SqliteKVStore(db=db)


def test_write_tx_rolls_back_on_error(tmp_path: Path) -> None:
    db = SqliteDB(path=str(tmp_path / "opreg.db"))
    store = SqliteKVStore(db=db)

    with pytest.raises(ValueError):
        with db.write_tx() as con:
            con.execute(
                "INSERT INTO kv_entries(namespace, key, value, updated_ts_ms) VALUES('accounts', 'alice', 'x', 0);"
            )
            raise ValueError("boom")

    assert store.get("alice") is None


def _hold_writer_lock(path: str) -> sqlite3.Connection:
    holder = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
    holder.execute("BEGIN IMMEDIATE;")
    return holder


def test_set_waits_for_a_competing_writer(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep sqlite's own busy handler short so the write_tx retry loop does the waiting.
    monkeypatch.setenv("OPREG_SQLITE_BUSY_TIMEOUT_MS", "10")
    monkeypatch.setenv("OPREG_SQLITE_WRITE_DEADLINE_MS", "5000")

    path = str(tmp_path / "opreg.db")
    store = SqliteKVStore(db=SqliteDB(path=path))
    holder = _hold_writer_lock(path)
    release = threading.Timer(0.2, lambda: holder.execute("ROLLBACK;"))
    try:
        release.start()
        started = time.monotonic()
        store.set("alice", "addr1")
        assert time.monotonic() - started >= 0.15
    finally:
        release.join()
        holder.close()

    assert store.get("alice") == "addr1"


def test_set_gives_up_after_write_deadline(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPREG_SQLITE_BUSY_TIMEOUT_MS", "10")
    monkeypatch.setenv("OPREG_SQLITE_WRITE_DEADLINE_MS", "300")

    path = str(tmp_path / "opreg.db")
    store = SqliteKVStore(db=SqliteDB(path=path))
    holder = _hold_writer_lock(path)
    try:
        with pytest.raises(sqlite3.OperationalError, match="locked"):
            store.set("alice", "addr1")
    finally:
        holder.execute("ROLLBACK;")
        holder.close()

    assert store.get("alice") is None
