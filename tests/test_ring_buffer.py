"""Tests for the serial telemetry ring buffer."""

import pytest

from arduino_ai.ring_buffer import RingBuffer


class TestRingBuffer:

    def test_keeps_insertion_order_below_capacity(self):
        buffer = RingBuffer(5)
        for item in ("a", "b", "c"):
            buffer.append(item)

        assert len(buffer) == 3
        assert buffer.to_list() == ["a", "b", "c"]

    def test_evicts_oldest_when_full(self):
        buffer = RingBuffer(3)
        for i in range(7):
            buffer.append(i)

        assert len(buffer) == 3
        assert list(buffer) == [4, 5, 6]

    def test_tail(self):
        buffer = RingBuffer(4)
        for i in range(6):
            buffer.append(i)

        assert buffer.tail(2) == [4, 5]
        assert buffer.tail(10) == [2, 3, 4, 5]
        assert buffer.tail(0) == []
        assert buffer.tail(-3) == []

    def test_clear(self):
        buffer = RingBuffer(2)
        buffer.append("x")
        buffer.clear()

        assert len(buffer) == 0
        buffer.append("y")
        assert buffer.to_list() == ["y"]

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            RingBuffer(0)
