# src/arcade_ledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List

from arcade_ledger.env import env_bool, env_int, env_str

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Unknown types are not coerced: a non-JSON value in the ledger is a bug
    and must fail loudly here.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class SqliteDB:
    """SQLite manager for the arcade node.

    Design goals:
      - single durable DB file for the ledger snapshot, events and receipts
      - cross-process safe (SQLite locks)
      - cross-thread safe by never sharing connections

    SQLite allows only one writer at a time; BEGIN IMMEDIATE can transiently
    fail with "database is locked", so write_tx() retries with a deadline.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    @staticmethod
    def _sqlite_synchronous_pragma() -> str:
        """prod -> FULL, everything else -> NORMAL, unless ARCADE_SQLITE_SYNCHRONOUS overrides."""
        mode = env_str("ARCADE_MODE", "prod").lower()
        default = "FULL" if mode == "prod" else "NORMAL"
        raw = env_str("ARCADE_SQLITE_SYNCHRONOUS", default).upper()
        if raw not in {"OFF", "NORMAL", "FULL", "EXTRA"}:
            raw = default
        return raw

    def ensure_parent_dir(self) -> None:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        self.ensure_parent_dir()

        connect_timeout_s = float(env_int("ARCADE_SQLITE_CONNECT_TIMEOUT_MS", 30_000)) / 1000.0
        con = sqlite3.connect(
            self.path,
            timeout=connect_timeout_s,
            isolation_level=None,  # we manage BEGIN/COMMIT ourselves
            check_same_thread=False,
        )
        con.row_factory = sqlite3.Row

        row = con.execute("PRAGMA journal_mode=WAL;").fetchone()
        mode = str(row[0]).strip().lower() if row is not None else ""
        if mode and mode != "wal" and not env_bool("ARCADE_SQLITE_ALLOW_NON_WAL"):
            con.close()
            raise RuntimeError(f"sqlite journal_mode is '{mode}', expected 'wal'")

        con.execute(f"PRAGMA synchronous={self._sqlite_synchronous_pragma()};")
        con.execute("PRAGMA foreign_keys=ON;")
        con.execute("PRAGMA temp_store=MEMORY;")

        busy_ms = max(0, env_int("ARCADE_SQLITE_BUSY_TIMEOUT_MS", int(connect_timeout_s * 1000)))
        con.execute(f"PRAGMA busy_timeout={busy_ms};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                  key TEXT PRIMARY KEY,
                  value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  seq INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS events (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  seq INTEGER NOT NULL,
                  arcade TEXT NOT NULL,
                  event TEXT NOT NULL,
                  event_json TEXT NOT NULL,
                  created_ts_ms INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_events_arcade ON events(arcade, id);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS tx_receipts (
                  tx_id TEXT PRIMARY KEY,
                  seq INTEGER NOT NULL,
                  tx_type TEXT NOT NULL,
                  signer TEXT NOT NULL,
                  result_json TEXT NOT NULL,
                  created_ts_ms INTEGER NOT NULL
                );
                """
            )

            row = con.execute("SELECT value FROM meta WHERE key='schema_version' LIMIT 1;").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            else:
                try:
                    v = int(str(row["value"]))
                except ValueError:
                    v = 0
                if v != self.SCHEMA_VERSION:
                    raise RuntimeError(
                        f"sqlite schema_version mismatch: have={v} want={self.SCHEMA_VERSION}. "
                        "Refuse to start to avoid corrupting data."
                    )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _is_locked_error(e: Exception) -> bool:
        msg = str(e).lower()
        return ("database is locked" in msg) or ("database is busy" in msg)

    def _backoff(self, attempt: int) -> None:
        base = max(0.001, float(env_int("ARCADE_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0)
        cap = max(base, float(env_int("ARCADE_SQLITE_WRITE_BACKOFF_MAX_MS", 250)) / 1000.0)
        sleep_s = min(cap, base * (2.0 ** min(attempt, 8)))
        time.sleep(sleep_s * (0.5 + random.random()))

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Open a write transaction with bounded retry on writer-lock contention.

        Policy:
          - retry BEGIN IMMEDIATE / COMMIT until a deadline
          - exponential backoff with jitter
          - ROLLBACK and re-raise on any exception inside the block
        """
        deadline_ts = _now_ms() + max(250, env_int("ARCADE_SQLITE_WRITE_DEADLINE_MS", 30_000))

        with self.connection() as con:
            attempt = 0
            while True:
                try:
                    con.execute("BEGIN IMMEDIATE;")
                    break
                except sqlite3.OperationalError as e:
                    if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                        raise
                    self._backoff(attempt)
                    attempt += 1

            try:
                yield con

                attempt = 0
                while True:
                    try:
                        con.execute("COMMIT;")
                        break
                    except sqlite3.OperationalError as e:
                        if not self._is_locked_error(e) or _now_ms() >= deadline_ts:
                            raise
                        self._backoff(attempt)
                        attempt += 1
            except BaseException:
                con.execute("ROLLBACK;")
                raise


class SqliteLedgerStore:
    """World-state snapshot persisted as a single SQLite row.

      - read(): load latest snapshot and its commit sequence
      - write(st): overwrite the snapshot atomically
      - commit(...): snapshot + events + receipt inside one write transaction
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    @property
    def db(self) -> SqliteDB:
        return self._db

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
        if row is None:
            raise FileNotFoundError("sqlite ledger_state is missing")
        st = json.loads(str(row["state_json"]))
        if not isinstance(st, dict):
            raise ValueError("ledger_state is not a JSON object")
        return st

    def read_seq(self) -> int:
        with self._db.connection() as con:
            row = con.execute("SELECT seq FROM ledger_state WHERE id=1;").fetchone()
        return int(row["seq"]) if row is not None else 0

    @staticmethod
    def _upsert_state(con: sqlite3.Connection, st: Json, seq: int) -> None:
        con.execute(
            """
            INSERT INTO ledger_state(id, seq, state_json, updated_ts_ms)
            VALUES(1, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              seq=excluded.seq,
              state_json=excluded.state_json,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (int(seq), _canon_json(st), _now_ms()),
        )

    def write(self, st: Json, *, seq: int = 0) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._db.write_tx() as con:
            self._upsert_state(con, st, seq)

    def commit(
        self,
        st: Json,
        *,
        seq: int,
        tx_id: str,
        tx_type: str,
        signer: str,
        result: Json,
        events: List[Json],
        before_write: Callable[[sqlite3.Connection], None] | None = None,
    ) -> None:
        """Persist one applied operation atomically."""
        now = _now_ms()
        with self._db.write_tx() as con:
            if before_write is not None:
                before_write(con)
            con.execute(
                "INSERT INTO tx_receipts(tx_id, seq, tx_type, signer, result_json, created_ts_ms) VALUES(?, ?, ?, ?, ?, ?);",
                (tx_id, int(seq), tx_type, signer, _canon_json(result), now),
            )
            for ev in events:
                con.execute(
                    "INSERT INTO events(seq, arcade, event, event_json, created_ts_ms) VALUES(?, ?, ?, ?, ?);",
                    (int(seq), str(ev.get("arcade") or ""), str(ev.get("event") or ""), _canon_json(ev), now),
                )
            self._upsert_state(con, st, seq)

    def receipt(self, tx_id: str) -> Json | None:
        with self._db.connection() as con:
            row = con.execute(
                "SELECT tx_id, seq, tx_type, signer, result_json FROM tx_receipts WHERE tx_id=? LIMIT 1;",
                (str(tx_id),),
            ).fetchone()
        if row is None:
            return None
        return {
            "tx_id": str(row["tx_id"]),
            "seq": int(row["seq"]),
            "tx_type": str(row["tx_type"]),
            "signer": str(row["signer"]),
            "result": json.loads(str(row["result_json"])),
        }

    def events(self, arcade: str, *, after_id: int = 0, limit: int = 100) -> List[Json]:
        limit = max(1, min(int(limit), 1000))
        with self._db.connection() as con:
            rows = con.execute(
                "SELECT id, event_json FROM events WHERE arcade=? AND id>? ORDER BY id ASC LIMIT ?;",
                (str(arcade), int(after_id), limit),
            ).fetchall()
        out: List[Json] = []
        for r in rows:
            ev = json.loads(str(r["event_json"]))
            ev["id"] = int(r["id"])
            out.append(ev)
        return out
