"""Tests for HistoryBuffer."""
import pytest
from pydantic import ValidationError

from lobby.presence.history import HistoryBuffer
from lobby.presence.schemas import ChatEvent


def _event(i: int) -> ChatEvent:
    return ChatEvent(username="user", message=f"msg {i}", timestamp=i)


def test_default_capacity_is_fifty():
    assert HistoryBuffer().capacity == 50


def test_snapshot_is_oldest_first():
    buf = HistoryBuffer(capacity=5)
    for i in range(3):
        buf.append(_event(i))
    assert [e.message for e in buf.snapshot()] == ["msg 0", "msg 1", "msg 2"]


def test_overflow_keeps_last_n_in_order():
    buf = HistoryBuffer()
    for i in range(120):
        buf.append(_event(i))
        assert len(buf) <= 50
    assert buf.count() == 50
    assert [e.timestamp for e in buf.snapshot()] == list(range(70, 120))


def test_clear_empties_buffer():
    buf = HistoryBuffer(capacity=3)
    buf.append(_event(1))
    buf.clear()
    assert buf.snapshot() == []
    buf.append(_event(2))
    assert buf.count() == 1


def test_snapshot_is_detached_from_buffer():
    buf = HistoryBuffer(capacity=3)
    buf.append(_event(1))
    snap = buf.snapshot()
    buf.append(_event(2))
    assert len(snap) == 1


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        HistoryBuffer(capacity=0)


def test_chat_events_are_immutable():
    event = _event(1)
    with pytest.raises(ValidationError):
        event.message = "edited"
