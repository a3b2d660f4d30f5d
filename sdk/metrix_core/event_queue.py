"""
EventQueue — the persisted, capacity-bounded sequence of pending events.

The main queue slot is absent when nothing is pending; "absent" and
"empty" are different states and the coordinator only looks at the
queue when the slot exists. A second slot holds the chunk that is
currently being sent.
"""

import copy

from .constants import (
    KEY_MAIN_QUEUE, KEY_SENDING_QUEUE,
    QUEUE_CAPACITY, CHUNK_SIZE, EVENT_PRIORITIES,
)
from .config import log

_RANK = {event_type: rank for rank, event_type in enumerate(EVENT_PRIORITIES)}


def refine_queue(events, capacity=QUEUE_CAPACITY, keep_first=False):
    """
    Priority compaction of an over-full queue.

    Events are regrouped by priority class (custom, revenue, sessionStart,
    sessionStop), keeping their relative order inside a class, and cut at
    capacity. With keep_first the head event survives unconditionally.
    Events of unknown type are dropped.
    """
    head = list(events[:1]) if keep_first and events else []
    rest = [e for e in events[len(head):] if isinstance(e, dict) and e.get("type") in _RANK]
    ranked = sorted(rest, key=lambda e: _RANK[e["type"]])  # stable
    return head + ranked[:max(capacity - len(head), 0)]


class EventQueue:

    def __init__(self, storage, identity, config, capacity=QUEUE_CAPACITY, chunk_size=CHUNK_SIZE):
        self._storage = storage
        self._identity = identity
        self._config = config
        self.capacity = capacity
        self.chunk_size = chunk_size

    # ── Reads ────────────────────────────────────────────────

    def _load(self, key):
        try:
            value = self._storage.get_json(key)
        except ValueError:
            log.warning("Persisted %s is corrupted — treating queue as absent", key)
            return None
        if value is None:
            return None
        if not isinstance(value, list):
            log.warning("Persisted %s is not a list — treating queue as absent", key)
            return None
        return value

    def events(self):
        return self._load(KEY_MAIN_QUEUE) or []

    def exists(self):
        return self._load(KEY_MAIN_QUEUE) is not None

    def size(self):
        return len(self.events())

    def is_backlogged(self):
        """More than one chunk pending — sending is forced even in the cool-down."""
        return self.size() > self.chunk_size

    def sending_events(self):
        return self._load(KEY_SENDING_QUEUE) or []

    # ── Mutations ────────────────────────────────────────────

    def _save(self, events):
        self._storage.persist_json(KEY_MAIN_QUEUE, events)

    def append(self, event):
        """Queue an event. Ignored until an app id is set, or for sessionNum < 0."""
        if event.get("sessionNum", -1) < 0:
            return False
        if self._config.app_id is None:
            return False

        events = self.events()
        events.append(event)
        self._save(events)
        log.info("A new event was added to main queue (type=%s)", event.get("type"))

        if len(events) > self.capacity:
            self.trim(events)
        return True

    def trim(self, events=None):
        events = self.events() if events is None else events
        if len(events) <= self.capacity:
            return
        refined = refine_queue(events, self.capacity, keep_first=not self._identity.known)
        log.warning("Queue over capacity (%d > %d) — dropped %d low-priority events",
                    len(events), self.capacity, len(events) - len(refined))
        self._save(refined)

    def snapshot(self):
        """Take the leading chunk as an immutable SendingSnapshot and persist it."""
        chunk = self.events()[:self.chunk_size]
        self._storage.persist_json(KEY_SENDING_QUEUE, chunk)
        return tuple(copy.deepcopy(chunk))

    def clear_snapshot(self):
        self._storage.discard_item(KEY_SENDING_QUEUE)

    def take_acknowledged_prefix(self, count):
        """Drop the first `count` events; clear the slot if nothing is left."""
        events = self.events()
        del events[:count]
        if events:
            self._save(events)
        else:
            self._storage.discard_item(KEY_MAIN_QUEUE)
        log.info("Removed %d acknowledged events (%d pending)", count, len(events))
        return len(events)
