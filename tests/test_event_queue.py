# ==============================================================================
# Tests for EventQueue — event_queue.py
# ==============================================================================
"""
Covers append gating, priority trimming, the absent/empty distinction,
snapshots, and recovery from corrupted persisted data.
"""

import pytest

from metrix_core import events
from metrix_core.config import MetrixConfig
from metrix_core.constants import (
    KEY_MAIN_QUEUE, KEY_SENDING_QUEUE, KEY_CLIENT_ID, CUSTOM, SESSION_START,
)
from metrix_core.event_queue import EventQueue, refine_queue
from metrix_core.identity import IdentityStore
from metrix_core.storage import MemoryStorage

# ==============================================================================
# Helpers
# ==============================================================================


def _custom(name, session_num=0):
    return events.custom(name, {}, "sid", session_num, 0)


def _revenue(name):
    return events.revenue(name, 1, "IRR", None, "sid", 0, 0)


def _start():
    return events.session_start("sid", 0, 0)


def _stop():
    return events.session_stop("old", 0, 10, 0)


def _names(queue_events):
    return [e.get("name", e["type"]) for e in queue_events]


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def queue(storage):
    return EventQueue(storage, IdentityStore(storage), MetrixConfig(app_id="A1"))


# ==============================================================================
# append
# ==============================================================================


class TestAppend:

    def test_append_persists_in_order(self, queue):
        queue.append(_custom("a"))
        queue.append(_custom("b"))
        assert _names(queue.events()) == ["a", "b"]

    def test_queue_slot_name(self, queue, storage):
        queue.append(_custom("a"))
        assert [e["name"] for e in storage.get_json("METRIX_LOCAL_OBJECT_QUEUE")] == ["a"]

    def test_rejected_without_app_id(self, storage):
        q = EventQueue(storage, IdentityStore(storage), MetrixConfig(app_id=None))
        assert q.append(_custom("a")) is False
        assert storage.get_item(KEY_MAIN_QUEUE) is None

    def test_rejected_for_negative_session_number(self, queue, storage):
        assert queue.append(_custom("a", session_num=-1)) is False
        assert storage.get_item(KEY_MAIN_QUEUE) is None


# ==============================================================================
# trim
# ==============================================================================


class TestRefineQueue:

    def test_groups_by_priority_and_keeps_relative_order(self):
        queue = [_start(), _custom("c1"), _stop(), _revenue("r1"), _custom("c2"), _start(), _custom("c3")]
        refined = refine_queue(queue, capacity=5)
        assert _names(refined) == ["c1", "c2", "c3", "r1", SESSION_START]

    def test_keep_first_preserves_head_unconditionally(self):
        queue = [_stop(), _custom("c1"), _custom("c2"), _revenue("r1")]
        refined = refine_queue(queue, capacity=2, keep_first=True)
        assert refined[0]["type"] == "sessionStop"
        assert _names(refined[1:]) == ["c1"]

    def test_session_stops_dropped_first(self):
        queue = [_stop(), _start(), _stop(), _start()]
        refined = refine_queue(queue, capacity=2)
        assert [e["type"] for e in refined] == [SESSION_START, SESSION_START]

    def test_unknown_types_are_dropped(self):
        queue = [{"type": "metrixMessage"}, _custom("c1")]
        assert _names(refine_queue(queue, capacity=5)) == ["c1"]


class TestTrimOnAppend:

    def test_overflow_with_known_identity(self, storage, queue):
        storage.set_item(KEY_CLIENT_ID, "U1")
        queue.append(_start())
        for i in range(300):
            queue.append(_custom(f"c{i}"))

        result = queue.events()
        assert len(result) == 300
        assert all(e["type"] == CUSTOM for e in result)
        assert _names(result) == [f"c{i}" for i in range(300)]

    def test_overflow_without_identity_keeps_bootstrap_event(self, queue):
        queue.append(_start())
        for i in range(300):
            queue.append(_custom(f"c{i}"))

        result = queue.events()
        assert len(result) == 300
        assert result[0]["type"] == SESSION_START
        assert _names(result[1:]) == [f"c{i}" for i in range(299)]

    def test_length_never_exceeds_capacity(self, queue):
        for i in range(320):
            queue.append(_stop() if i % 3 else _custom(f"c{i}"))
            assert queue.size() <= queue.capacity


# ==============================================================================
# snapshot / acknowledged prefix
# ==============================================================================


class TestSnapshot:

    def test_snapshot_takes_leading_chunk(self, queue, storage):
        for i in range(20):
            queue.append(_custom(f"c{i}"))
        snap = queue.snapshot()
        assert isinstance(snap, tuple)
        assert _names(snap) == [f"c{i}" for i in range(15)]
        assert len(queue.sending_events()) == 15

        queue.clear_snapshot()
        assert storage.get_item(KEY_SENDING_QUEUE) is None

    def test_snapshot_is_detached_from_queue(self, queue):
        queue.append(_custom("c0"))
        snap = queue.snapshot()
        snap[0]["name"] = "mutated"
        assert queue.events()[0]["name"] == "c0"


class TestTakeAcknowledgedPrefix:

    def test_removes_prefix(self, queue):
        for i in range(5):
            queue.append(_custom(f"c{i}"))
        assert queue.take_acknowledged_prefix(3) == 2
        assert _names(queue.events()) == ["c3", "c4"]

    def test_empty_queue_clears_slot(self, queue, storage):
        queue.append(_custom("c0"))
        queue.take_acknowledged_prefix(1)
        assert storage.get_item(KEY_MAIN_QUEUE) is None
        assert not queue.exists()


class TestCorruption:

    def test_corrupted_queue_is_absent(self, storage, queue):
        storage.set_item(KEY_MAIN_QUEUE, "[{oops")
        assert not queue.exists()
        assert queue.events() == []

    def test_non_list_queue_is_absent(self, storage, queue):
        storage.set_item(KEY_MAIN_QUEUE, '{"type": "custom"}')
        assert not queue.exists()

    def test_append_replaces_corrupted_queue(self, storage, queue):
        storage.set_item(KEY_MAIN_QUEUE, "garbage")
        queue.append(_custom("c0"))
        assert _names(queue.events()) == ["c0"]
