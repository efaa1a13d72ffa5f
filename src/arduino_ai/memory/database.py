"""SQLite connection and schema management for the error memory store."""

from __future__ import annotations

import logging
import os
import sqlite3
from typing import Optional

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def connect_db(path: str) -> sqlite3.Connection:
    """Connect to the SQLite database, creating its directory if needed."""
    if path != ":memory:":
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def ensure_meta_table(conn: sqlite3.Connection) -> None:
    """Ensure meta table exists."""
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def get_meta(
    conn: sqlite3.Connection, key: str, default: Optional[str] = None
) -> Optional[str]:
    ensure_meta_table(conn)
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    return default if row is None else row["value"]


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    ensure_meta_table(conn)
    conn.execute(
        """
        INSERT INTO meta (key, value)
        VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version."""
    try:
        return int(get_meta(conn, "schema_version", "0"))
    except (TypeError, ValueError):
        return 0


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Ensure database schema is up to date."""
    version = get_schema_version(conn)
    if version > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {version} is newer than this tool supports "
            f"(max {SCHEMA_VERSION})."
        )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS error_signatures (
            hash TEXT PRIMARY KEY,
            raw_pattern TEXT NOT NULL,
            normalized TEXT NOT NULL,
            error_type TEXT,
            context TEXT,
            occurrence_count INTEGER NOT NULL DEFAULT 1,
            first_seen INTEGER NOT NULL,
            last_seen INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS fixes (
            id TEXT PRIMARY KEY,
            error_signature_hash TEXT NOT NULL REFERENCES error_signatures(hash),
            description TEXT NOT NULL,
            normalized_description TEXT NOT NULL,
            code TEXT,
            context TEXT,
            created_at INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS error_fix_associations (
            error_signature_hash TEXT NOT NULL REFERENCES error_signatures(hash),
            fix_id TEXT NOT NULL REFERENCES fixes(id),
            success_count INTEGER NOT NULL DEFAULT 1,
            failure_count INTEGER NOT NULL DEFAULT 0,
            last_used INTEGER NOT NULL,
            PRIMARY KEY (error_signature_hash, fix_id)
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS execution_outcomes (
            slot INTEGER PRIMARY KEY,
            seq INTEGER NOT NULL,
            tool TEXT NOT NULL,
            arguments TEXT NOT NULL,
            success INTEGER NOT NULL,
            error TEXT,
            timestamp_ms INTEGER NOT NULL,
            execution_time_ms INTEGER
        )
        """
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_error_signatures_type ON error_signatures(error_type)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_fixes_signature ON fixes(error_signature_hash)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_execution_outcomes_seq ON execution_outcomes(seq)"
    )

    if version < SCHEMA_VERSION:
        set_meta(conn, "schema_version", str(SCHEMA_VERSION))
    conn.commit()


def resize_execution_log(conn: sqlite3.Connection, capacity: int) -> None:
    """Re-slot the execution log when its capacity changed between runs.

    Keeps the newest `capacity` entries and reassigns slot = seq % capacity.
    """
    stored = get_meta(conn, "execution_log_capacity")
    if stored is not None and int(stored) == capacity:
        return

    if stored is not None:
        logger.info(f"Resizing execution log from {stored} to {capacity} entries")
        rows = conn.execute(
            "SELECT * FROM execution_outcomes ORDER BY seq DESC LIMIT ?", (capacity,)
        ).fetchall()
        conn.execute("DELETE FROM execution_outcomes")
        conn.executemany(
            """
            INSERT INTO execution_outcomes
                (slot, seq, tool, arguments, success, error, timestamp_ms, execution_time_ms)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    row["seq"] % capacity,
                    row["seq"],
                    row["tool"],
                    row["arguments"],
                    row["success"],
                    row["error"],
                    row["timestamp_ms"],
                    row["execution_time_ms"],
                )
                for row in rows
            ],
        )

    set_meta(conn, "execution_log_capacity", str(capacity))
    conn.commit()
