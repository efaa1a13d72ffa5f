"""
Tests for the SQLite error memory store.

Covers signature hashing, exact and fuzzy search, fix learning, the
bounded execution log and persistence across reopen.
"""

import pytest

from arduino_ai.memory.error_store import ErrorMemoryStore
from arduino_ai.memory.signatures import (
    classify_error,
    is_signature_hash,
    looks_like_error,
    normalize,
    signature_hash,
)


SYNC_ERROR = "avrdude: stk500_getsync() attempt 10 of 10: not in sync: resp=0x00"
DECLARE_ERROR = "Blink.ino:5:3: error: 'ledPin' was not declared in this scope"


class TestSignatures:
    """Tests for normalization, hashing and classification."""

    def test_normalize_collapses_whitespace_and_case(self):
        assert normalize("  Error:\n\tFOO   bar ") == "error: foo bar"

    def test_signature_ignores_case_and_whitespace(self):
        assert signature_hash("Error:  Foo\nBar") == signature_hash("error: foo bar")

    def test_signature_is_sixteen_hex_chars(self):
        sig = signature_hash(SYNC_ERROR)
        assert len(sig) == 16
        assert is_signature_hash(sig)
        assert not is_signature_hash("not a hash")

    def test_classify_known_patterns(self):
        assert classify_error(SYNC_ERROR) == "sync_failure"
        assert classify_error(DECLARE_ERROR) == "not_declared"
        assert classify_error("undefined reference to `setup'") == "undefined_reference"
        assert classify_error("avrdude: ser_open(): can't open device: Permission denied") == "permission_denied"
        assert classify_error("everything is fine") == "unknown"

    def test_looks_like_error(self):
        assert looks_like_error("Guru Meditation Error: Core 1 panic'ed")
        assert looks_like_error("Sensor read failed")
        assert not looks_like_error("Temperature: 21.5C")


class TestRecordError:
    """Tests for recording error occurrences."""

    @pytest.mark.asyncio
    async def test_record_is_idempotent(self, memory_store):
        """Recording the same text twice keeps one signature and counts both."""
        first = await memory_store.record_error(SYNC_ERROR)
        second = await memory_store.record_error(SYNC_ERROR.upper())

        assert first == second
        stored = await memory_store.get_error(first)
        assert stored.occurrence_count == 2
        assert stored.raw_pattern == SYNC_ERROR
        assert stored.error_type == "sync_failure"
        assert stored.last_seen >= stored.first_seen

        stats = await memory_store.get_stats()
        assert stats.error_count == 1

    @pytest.mark.asyncio
    async def test_explicit_error_type_and_context(self, memory_store):
        sig = await memory_store.record_error(
            "Brownout detector was triggered",
            error_type="power",
            context={"board": "esp32:esp32:esp32"},
        )
        stored = await memory_store.get_error(sig)
        assert stored.error_type == "power"
        assert stored.context == {"board": "esp32:esp32:esp32"}

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, memory_store):
        with pytest.raises(ValueError):
            await memory_store.record_error("   ")


class TestSearchSimilar:
    """Tests for exact and fuzzy lookup."""

    @pytest.mark.asyncio
    async def test_exact_match_has_full_confidence(self, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)

        result = await memory_store.search_similar(SYNC_ERROR)

        assert result.exact_match is not None
        assert result.exact_match.hash == sig
        assert result.confidence == 1.0
        assert result.fuzzy_matches == []

    @pytest.mark.asyncio
    async def test_fuzzy_matches_stay_below_exact(self, memory_store):
        await memory_store.record_error(SYNC_ERROR)
        await memory_store.record_error(DECLARE_ERROR)

        result = await memory_store.search_similar("stk500_getsync")

        assert result.exact_match is None
        assert len(result.fuzzy_matches) == 1
        assert result.fuzzy_matches[0].error.raw_pattern == SYNC_ERROR
        assert result.fuzzy_matches[0].confidence == 0.8
        assert 0.0 < result.confidence < 1.0

    @pytest.mark.asyncio
    async def test_fuzzy_same_type_tier(self, memory_store):
        await memory_store.record_error(DECLARE_ERROR)

        result = await memory_store.search_similar("error: 'sensorPin' was not declared in this scope")

        assert result.exact_match is None
        assert [m.confidence for m in result.fuzzy_matches] == [0.4]

    @pytest.mark.asyncio
    async def test_fuzzy_pattern_prefix_in_query_tier(self, memory_store):
        await memory_store.record_error("Guru Meditation Error")

        result = await memory_store.search_similar(
            "Boot log: guru meditation error: Core 1 panic'ed (LoadProhibited)"
        )

        assert result.fuzzy_matches[0].confidence == 0.6

    @pytest.mark.asyncio
    async def test_fuzzy_respects_limit(self, memory_store):
        for i in range(5):
            await memory_store.record_error(f"avrdude: stk500_getsync() attempt {i} of 10")

        result = await memory_store.search_similar("stk500_getsync", limit=2)

        assert len(result.fuzzy_matches) == 2

    @pytest.mark.asyncio
    async def test_no_match(self, memory_store):
        await memory_store.record_error(SYNC_ERROR)

        result = await memory_store.search_similar("completely unrelated text")

        assert not result.found
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_to_dict_shape(self, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)
        await memory_store.record_fix(sig, "Press reset right before upload")

        data = (await memory_store.search_similar(SYNC_ERROR)).to_dict()

        assert data["confidence"] == 1.0
        assert data["exact_match"]["hash"] == sig
        assert data["fixes"][0]["description"] == "Press reset right before upload"
        assert data["fixes"][0]["success_count"] == 1


class TestRecordFix:
    """Tests for fix learning."""

    @pytest.mark.asyncio
    async def test_sync_failure_scenario(self, memory_store):
        """Record the avrdude error, attach a fix, find it on the next failure."""
        sig = await memory_store.record_error(SYNC_ERROR, context={"port": "COM3"})
        fix = await memory_store.record_fix(
            sig, "Select the correct COM port and check the USB cable"
        )

        assert fix.id.startswith("fix_")
        assert fix.error_signature_hash == sig

        result = await memory_store.search_similar(SYNC_ERROR)
        assert result.confidence == 1.0
        assert [m.fix.id for m in result.fixes] == [fix.id]

    @pytest.mark.asyncio
    async def test_same_fix_twice_increments_success(self, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)
        first = await memory_store.record_fix(sig, "Press reset before upload")
        second = await memory_store.record_fix(sig, "press  RESET before upload")

        assert first.id == second.id
        result = await memory_store.search_similar(SYNC_ERROR)
        assert len(result.fixes) == 1
        assert result.fixes[0].success_count == 2
        assert (await memory_store.get_stats()).fix_count == 1

    @pytest.mark.asyncio
    async def test_fixes_ordered_by_success(self, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)
        await memory_store.record_fix(sig, "Try another cable")
        await memory_store.record_fix(sig, "Select the right port")
        await memory_store.record_fix(sig, "Select the right port")

        result = await memory_store.search_similar(SYNC_ERROR)

        assert [m.fix.description for m in result.fixes] == [
            "Select the right port",
            "Try another cable",
        ]

    @pytest.mark.asyncio
    async def test_fix_by_raw_error_text_creates_signature(self, memory_store):
        fix = await memory_store.record_fix(DECLARE_ERROR, "Declare ledPin before setup()")

        assert fix.error_signature_hash == signature_hash(DECLARE_ERROR)
        assert (await memory_store.get_error(fix.error_signature_hash)) is not None

    @pytest.mark.asyncio
    async def test_fix_outcome(self, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)
        fix = await memory_store.record_fix(sig, "Press reset")

        assert await memory_store.record_fix_outcome(sig, fix.id, success=False)
        assert not await memory_store.record_fix_outcome(sig, "fix_missing", success=True)

        result = await memory_store.search_similar(SYNC_ERROR)
        assert result.fixes[0].failure_count == 1

    @pytest.mark.asyncio
    async def test_empty_description_rejected(self, memory_store):
        with pytest.raises(ValueError):
            await memory_store.record_fix(SYNC_ERROR, "  ")


class TestExecutionLog:
    """Tests for the bounded execution log."""

    @pytest.mark.asyncio
    async def test_oldest_entries_evicted(self):
        store = ErrorMemoryStore(":memory:", execution_log_size=3)
        for i in range(5):
            await store.record_execution(f"tool_{i}", {"i": i}, success=i % 2 == 0)

        recent = await store.recent_executions(limit=10)

        assert [e.tool for e in recent] == ["tool_4", "tool_3", "tool_2"]
        assert recent[0].arguments == {"i": 4}
        stats = await store.get_stats()
        assert stats.execution_count == 3
        assert stats.success_rate == pytest.approx(2 / 3)
        await store.close()

    @pytest.mark.asyncio
    async def test_failed_execution_keeps_error(self, memory_store):
        await memory_store.record_execution(
            "compile_sketch", {}, success=False, error="exit status 1", execution_time_ms=12
        )

        [entry] = await memory_store.recent_executions()

        assert entry.success is False
        assert entry.error == "exit status 1"
        assert entry.execution_time_ms == 12


class TestPersistence:
    """Tests for reopening a database file."""

    @pytest.mark.asyncio
    async def test_reopen_keeps_state(self, tmp_path):
        db_path = str(tmp_path / "nested" / "memory.db")

        store = ErrorMemoryStore(db_path, execution_log_size=2)
        sig = await store.record_error(SYNC_ERROR)
        fix = await store.record_fix(sig, "Press reset")
        for i in range(3):
            await store.record_execution(f"tool_{i}", {}, success=True)
        await store.close()

        reopened = ErrorMemoryStore(db_path, execution_log_size=2)
        result = await reopened.search_similar(SYNC_ERROR)
        assert result.fixes[0].fix.id == fix.id

        await reopened.record_execution("tool_3", {}, success=True)
        recent = await reopened.recent_executions()
        assert [e.tool for e in recent] == ["tool_3", "tool_2"]
        await reopened.close()

    @pytest.mark.asyncio
    async def test_reopen_with_smaller_log(self, tmp_path):
        db_path = str(tmp_path / "memory.db")

        store = ErrorMemoryStore(db_path, execution_log_size=5)
        for i in range(5):
            await store.record_execution(f"tool_{i}", {}, success=True)
        await store.close()

        reopened = ErrorMemoryStore(db_path, execution_log_size=2)
        recent = await reopened.recent_executions()
        assert [e.tool for e in recent] == ["tool_4", "tool_3"]

        await reopened.record_execution("tool_5", {}, success=True)
        recent = await reopened.recent_executions()
        assert [e.tool for e in recent] == ["tool_5", "tool_4"]
        await reopened.close()

    @pytest.mark.asyncio
    async def test_snapshot_round_trip(self, memory_store):
        sig = await memory_store.record_error(SYNC_ERROR)
        await memory_store.record_fix(sig, "Press reset")
        await memory_store.record_execution("compile_sketch", {"boardFQBN": "arduino:avr:uno"}, True)
        snapshot = await memory_store.export_snapshot()

        assert set(snapshot) == {"errorSignatures", "fixes", "associations", "executionLog"}

        other = ErrorMemoryStore(":memory:")
        await other.import_snapshot(snapshot)

        assert await other.export_snapshot() == snapshot
        await other.close()
