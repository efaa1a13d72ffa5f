"""
Error memory store.

Persists error signatures, the fixes that resolved them and a bounded
log of tool execution outcomes in SQLite. Every mutation is committed
immediately, so reopening the same file yields the same state.

Usage:
    store = ErrorMemoryStore("~/.config/arduino-ai/memory.db")

    signature = await store.record_error("avrdude: stk500_getsync() ...")
    await store.record_fix(signature, "Select the correct port and press reset")

    result = await store.search_similar("avrdude: stk500_getsync() ...")
    result.confidence  # 1.0
"""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Optional

from ..domain.entities import (
    ErrorSignature,
    ExecutionOutcome,
    Fix,
    FixAssociation,
    FixMatch,
    FuzzyMatch,
    MemoryStats,
    SimilarErrorResult,
)
from ..domain.ports import IMemoryStore
from .database import connect_db, ensure_schema, get_meta, resize_execution_log, set_meta
from .signatures import (
    UNKNOWN_ERROR_TYPE,
    classify_error,
    is_signature_hash,
    normalize,
    signature_hash,
)

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_LOG_SIZE = 100
EXACT_MATCH_CONFIDENCE = 1.0
# Fuzzy tiers, all strictly below an exact match
QUERY_IN_PATTERN_CONFIDENCE = 0.8
PATTERN_IN_QUERY_CONFIDENCE = 0.6
SAME_TYPE_CONFIDENCE = 0.4
PATTERN_PREFIX_LENGTH = 50
FUZZY_FIXES_PER_MATCH = 3


def _now_ms() -> int:
    return int(time.time() * 1000)


def _dump(value: Optional[dict[str, Any]]) -> Optional[str]:
    return None if value is None else json.dumps(value, default=str)


def _load(value: Optional[str]) -> Optional[dict[str, Any]]:
    return None if value is None else json.loads(value)


class ErrorMemoryStore(IMemoryStore):
    """SQLite-backed error signature learning store.

    Attributes:
        db_path: Database file (":memory:" for a throwaway store)
        execution_log_size: Capacity of the execution outcome ring
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        execution_log_size: int = DEFAULT_EXECUTION_LOG_SIZE,
    ):
        if execution_log_size < 1:
            raise ValueError("execution_log_size must be at least 1")

        self.db_path = db_path if db_path == ":memory:" else os.path.expanduser(db_path)
        self.execution_log_size = execution_log_size

        self._conn = connect_db(self.db_path)
        ensure_schema(self._conn)
        resize_execution_log(self._conn, execution_log_size)
        self._next_seq = int(get_meta(self._conn, "execution_seq", "0"))

        logger.info(f"Error memory opened at {self.db_path}")

    # ============================================
    # Error signatures
    # ============================================

    async def record_error(
        self,
        text: str,
        error_type: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> str:
        """Record an error occurrence.

        Re-recording text that normalizes to a known signature only bumps
        its occurrence count and last_seen.

        Args:
            text: Raw error text
            error_type: Category (classified from the text when omitted)
            context: Arbitrary context stored with the first observation

        Returns:
            The signature hash
        """
        if not normalize(text):
            raise ValueError("Error text is required")

        sig_hash = signature_hash(text)
        now = _now_ms()

        existing = self._conn.execute(
            "SELECT error_type FROM error_signatures WHERE hash = ?", (sig_hash,)
        ).fetchone()

        if existing is not None:
            self._conn.execute(
                """
                UPDATE error_signatures
                SET occurrence_count = occurrence_count + 1,
                    last_seen = ?,
                    error_type = COALESCE(?, error_type)
                WHERE hash = ?
                """,
                (now, error_type, sig_hash),
            )
            logger.debug(f"Error signature {sig_hash} seen again")
        else:
            self._insert_signature(sig_hash, text, error_type, context, now)
            logger.debug(f"Recorded new error signature {sig_hash}")

        self._conn.commit()
        return sig_hash

    def _insert_signature(
        self,
        sig_hash: str,
        text: str,
        error_type: Optional[str],
        context: Optional[dict[str, Any]],
        now: int,
    ) -> None:
        self._conn.execute(
            """
            INSERT INTO error_signatures
                (hash, raw_pattern, normalized, error_type, context,
                 occurrence_count, first_seen, last_seen)
            VALUES (?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                sig_hash,
                text,
                normalize(text),
                error_type or classify_error(text),
                _dump(context),
                now,
                now,
            ),
        )

    async def get_error(self, signature_hash: str) -> Optional[ErrorSignature]:
        row = self._conn.execute(
            "SELECT * FROM error_signatures WHERE hash = ?", (signature_hash,)
        ).fetchone()
        return None if row is None else self._row_to_signature(row)

    # ============================================
    # Search
    # ============================================

    async def search_similar(self, query: str, limit: int = 10) -> SimilarErrorResult:
        """Find a stored error matching the query.

        An exact signature hit returns the signature with all of its fixes
        (confidence 1.0). Otherwise up to `limit` weak matches are returned,
        ranked by confidence then occurrence count.
        """
        normalized = normalize(query)
        if not normalized:
            return SimilarErrorResult()

        sig_hash = signature_hash(query)
        row = self._conn.execute(
            "SELECT * FROM error_signatures WHERE hash = ?", (sig_hash,)
        ).fetchone()

        if row is not None:
            return SimilarErrorResult(
                exact_match=self._row_to_signature(row),
                fixes=self._fixes_for(sig_hash),
                confidence=EXACT_MATCH_CONFIDENCE,
            )

        limit = int(limit)
        if limit <= 0:
            return SimilarErrorResult()

        query_type = classify_error(query)
        rows = self._conn.execute(
            """
            SELECT * FROM (
                SELECT *,
                    CASE
                        WHEN instr(normalized, :query) > 0 THEN :query_in_pattern
                        WHEN instr(:query, substr(normalized, 1, :prefix)) > 0 THEN :pattern_in_query
                        WHEN :query_type != :unknown AND error_type = :query_type THEN :same_type
                        ELSE 0
                    END AS confidence
                FROM error_signatures
            )
            WHERE confidence > 0
            ORDER BY confidence DESC, occurrence_count DESC, last_seen DESC
            LIMIT :limit
            """,
            {
                "query": normalized,
                "prefix": PATTERN_PREFIX_LENGTH,
                "query_type": query_type,
                "unknown": UNKNOWN_ERROR_TYPE,
                "query_in_pattern": QUERY_IN_PATTERN_CONFIDENCE,
                "pattern_in_query": PATTERN_IN_QUERY_CONFIDENCE,
                "same_type": SAME_TYPE_CONFIDENCE,
                "limit": limit,
            },
        ).fetchall()

        fuzzy_matches = [
            FuzzyMatch(
                error=self._row_to_signature(r),
                fixes=self._fixes_for(r["hash"], limit=FUZZY_FIXES_PER_MATCH),
                confidence=r["confidence"],
            )
            for r in rows
        ]

        return SimilarErrorResult(
            fuzzy_matches=fuzzy_matches,
            confidence=fuzzy_matches[0].confidence if fuzzy_matches else 0.0,
        )

    def _fixes_for(self, sig_hash: str, limit: Optional[int] = None) -> list[FixMatch]:
        sql = """
            SELECT f.*, a.success_count, a.failure_count
            FROM error_fix_associations a
            JOIN fixes f ON f.id = a.fix_id
            WHERE a.error_signature_hash = ?
            ORDER BY a.success_count DESC, a.last_used DESC
        """
        params: tuple = (sig_hash,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (sig_hash, limit)
        return [
            FixMatch(
                fix=self._row_to_fix(row),
                success_count=row["success_count"],
                failure_count=row["failure_count"],
            )
            for row in self._conn.execute(sql, params).fetchall()
        ]

    # ============================================
    # Fixes
    # ============================================

    async def record_fix(
        self,
        signature: str,
        description: str,
        code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> Fix:
        """Associate a fix with an error signature.

        Args:
            signature: A known signature hash, or raw error text (recorded
                as a new signature when unknown)
            description: What resolved the error
            code: Optional code snippet
            context: Optional context (board, sketch, ...)

        Returns:
            The stored fix. Recording the same description again for the
            same signature returns the existing fix and bumps its
            success count.
        """
        normalized_description = normalize(description)
        if not normalized_description:
            raise ValueError("Fix description is required")
        if not normalize(signature):
            raise ValueError("Error signature is required")

        now = _now_ms()
        sig_hash = self._resolve_signature(signature, now)

        row = self._conn.execute(
            """
            SELECT * FROM fixes
            WHERE error_signature_hash = ? AND normalized_description = ?
            """,
            (sig_hash, normalized_description),
        ).fetchone()

        if row is not None:
            fix = self._row_to_fix(row)
            self._conn.execute(
                """
                INSERT INTO error_fix_associations
                    (error_signature_hash, fix_id, success_count, failure_count, last_used)
                VALUES (?, ?, 1, 0, ?)
                ON CONFLICT(error_signature_hash, fix_id) DO UPDATE SET
                    success_count = success_count + 1,
                    last_used = excluded.last_used
                """,
                (sig_hash, fix.id, now),
            )
            self._conn.commit()
            logger.debug(f"Fix {fix.id} confirmed again for {sig_hash}")
            return fix

        fix = Fix(
            id=f"fix_{uuid.uuid4().hex[:12]}",
            error_signature_hash=sig_hash,
            description=description,
            code=code,
            context=context,
            created_at=now,
        )
        self._conn.execute(
            """
            INSERT INTO fixes
                (id, error_signature_hash, description, normalized_description,
                 code, context, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                fix.id,
                sig_hash,
                description,
                normalized_description,
                code,
                _dump(context),
                now,
            ),
        )
        self._conn.execute(
            """
            INSERT INTO error_fix_associations
                (error_signature_hash, fix_id, success_count, failure_count, last_used)
            VALUES (?, ?, 1, 0, ?)
            """,
            (sig_hash, fix.id, now),
        )
        self._conn.commit()
        logger.info(f"Recorded fix {fix.id} for error signature {sig_hash}")
        return fix

    def _resolve_signature(self, signature: str, now: int) -> str:
        """Map a hash or raw error text to a stored signature hash."""
        if is_signature_hash(signature):
            row = self._conn.execute(
                "SELECT 1 FROM error_signatures WHERE hash = ?", (signature,)
            ).fetchone()
            if row is not None:
                return signature

        sig_hash = signature_hash(signature)
        row = self._conn.execute(
            "SELECT 1 FROM error_signatures WHERE hash = ?", (sig_hash,)
        ).fetchone()
        if row is None:
            self._insert_signature(sig_hash, signature, None, None, now)
        return sig_hash

    async def record_fix_outcome(self, signature_hash: str, fix_id: str, success: bool) -> bool:
        """Report whether applying a known fix worked.

        Returns:
            False if the signature/fix association does not exist
        """
        column = "success_count" if success else "failure_count"
        cursor = self._conn.execute(
            f"""
            UPDATE error_fix_associations
            SET {column} = {column} + 1, last_used = ?
            WHERE error_signature_hash = ? AND fix_id = ?
            """,
            (_now_ms(), signature_hash, fix_id),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    # ============================================
    # Execution log
    # ============================================

    async def record_execution(
        self,
        tool: str,
        arguments: dict[str, Any],
        success: bool,
        error: Optional[str] = None,
        execution_time_ms: Optional[int] = None,
    ) -> None:
        """Append to the execution log, overwriting the oldest slot when full."""
        seq = self._next_seq
        self._conn.execute(
            """
            INSERT OR REPLACE INTO execution_outcomes
                (slot, seq, tool, arguments, success, error, timestamp_ms, execution_time_ms)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                seq % self.execution_log_size,
                seq,
                tool,
                json.dumps(arguments or {}, default=str),
                1 if success else 0,
                error,
                _now_ms(),
                execution_time_ms,
            ),
        )
        set_meta(self._conn, "execution_seq", str(seq + 1))
        self._conn.commit()
        self._next_seq = seq + 1

    async def recent_executions(self, limit: int = 20) -> list[ExecutionOutcome]:
        """Most recent execution outcomes, newest first."""
        rows = self._conn.execute(
            "SELECT * FROM execution_outcomes ORDER BY seq DESC LIMIT ?", (int(limit),)
        ).fetchall()
        return [self._row_to_execution(row) for row in rows]

    # ============================================
    # Stats and snapshots
    # ============================================

    async def get_stats(self) -> MemoryStats:
        error_count = self._conn.execute("SELECT COUNT(*) FROM error_signatures").fetchone()[0]
        fix_count = self._conn.execute("SELECT COUNT(*) FROM fixes").fetchone()[0]
        row = self._conn.execute(
            "SELECT COUNT(*), COALESCE(SUM(success), 0) FROM execution_outcomes"
        ).fetchone()
        execution_count, successes = row[0], row[1]

        return MemoryStats(
            error_count=error_count,
            fix_count=fix_count,
            execution_count=execution_count,
            success_rate=(successes / execution_count) if execution_count else 0.0,
        )

    async def export_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        """Dump the whole store as plain data."""
        signatures = self._conn.execute(
            "SELECT * FROM error_signatures ORDER BY first_seen, hash"
        ).fetchall()
        fixes = self._conn.execute("SELECT * FROM fixes ORDER BY created_at, id").fetchall()
        associations = self._conn.execute(
            "SELECT * FROM error_fix_associations ORDER BY error_signature_hash, fix_id"
        ).fetchall()
        executions = self._conn.execute(
            "SELECT * FROM execution_outcomes ORDER BY seq"
        ).fetchall()

        return {
            "errorSignatures": [self._row_to_signature(r).to_dict() for r in signatures],
            "fixes": [self._row_to_fix(r).to_dict() for r in fixes],
            "associations": [
                FixAssociation(
                    error_signature_hash=r["error_signature_hash"],
                    fix_id=r["fix_id"],
                    success_count=r["success_count"],
                    failure_count=r["failure_count"],
                    last_used=r["last_used"],
                ).to_dict()
                for r in associations
            ],
            "executionLog": [self._row_to_execution(r).to_dict() for r in executions],
        }

    async def import_snapshot(self, snapshot: dict[str, list[dict[str, Any]]]) -> None:
        """Replace the store contents with a snapshot from export_snapshot()."""
        with self._conn:
            self._conn.execute("DELETE FROM error_fix_associations")
            self._conn.execute("DELETE FROM fixes")
            self._conn.execute("DELETE FROM error_signatures")
            self._conn.execute("DELETE FROM execution_outcomes")

            for sig in snapshot.get("errorSignatures", []):
                self._conn.execute(
                    """
                    INSERT INTO error_signatures
                        (hash, raw_pattern, normalized, error_type, context,
                         occurrence_count, first_seen, last_seen)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        sig["hash"],
                        sig["raw_pattern"],
                        normalize(sig["raw_pattern"]),
                        sig.get("error_type"),
                        _dump(sig.get("context")),
                        sig.get("occurrence_count", 1),
                        sig.get("first_seen", 0),
                        sig.get("last_seen", 0),
                    ),
                )
            for fix in snapshot.get("fixes", []):
                self._conn.execute(
                    """
                    INSERT INTO fixes
                        (id, error_signature_hash, description, normalized_description,
                         code, context, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        fix["id"],
                        fix["error_signature_hash"],
                        fix["description"],
                        normalize(fix["description"]),
                        fix.get("code"),
                        _dump(fix.get("context")),
                        fix.get("created_at", 0),
                    ),
                )
            for assoc in snapshot.get("associations", []):
                self._conn.execute(
                    """
                    INSERT INTO error_fix_associations
                        (error_signature_hash, fix_id, success_count, failure_count, last_used)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        assoc["error_signature_hash"],
                        assoc["fix_id"],
                        assoc.get("success_count", 1),
                        assoc.get("failure_count", 0),
                        assoc.get("last_used", 0),
                    ),
                )

            entries = snapshot.get("executionLog", [])[-self.execution_log_size:]
            for seq, entry in enumerate(entries):
                self._conn.execute(
                    """
                    INSERT INTO execution_outcomes
                        (slot, seq, tool, arguments, success, error, timestamp_ms,
                         execution_time_ms)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        seq % self.execution_log_size,
                        seq,
                        entry["tool"],
                        json.dumps(entry.get("arguments") or {}, default=str),
                        1 if entry.get("success") else 0,
                        entry.get("error"),
                        entry.get("timestamp_ms", 0),
                        entry.get("execution_time_ms"),
                    ),
                )
            self._next_seq = len(entries)
            set_meta(self._conn, "execution_seq", str(self._next_seq))

        logger.info(
            f"Imported {len(snapshot.get('errorSignatures', []))} error signatures "
            f"and {len(snapshot.get('fixes', []))} fixes"
        )

    async def close(self) -> None:
        self._conn.close()

    # ============================================
    # Row mapping
    # ============================================

    @staticmethod
    def _row_to_signature(row) -> ErrorSignature:
        return ErrorSignature(
            hash=row["hash"],
            raw_pattern=row["raw_pattern"],
            error_type=row["error_type"],
            context=_load(row["context"]),
            occurrence_count=row["occurrence_count"],
            first_seen=row["first_seen"],
            last_seen=row["last_seen"],
        )

    @staticmethod
    def _row_to_fix(row) -> Fix:
        return Fix(
            id=row["id"],
            error_signature_hash=row["error_signature_hash"],
            description=row["description"],
            code=row["code"],
            context=_load(row["context"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_execution(row) -> ExecutionOutcome:
        return ExecutionOutcome(
            tool=row["tool"],
            arguments=json.loads(row["arguments"]),
            success=bool(row["success"]),
            error=row["error"],
            timestamp_ms=row["timestamp_ms"],
            execution_time_ms=row["execution_time_ms"],
        )
