"""
SessionManager — session id / number / duration and sliding expiration.

A session stays current while it keeps being read within the expiration
window and the visitor arrives from the same referrer. Every rotation
queues a sessionStop for the outgoing session (when there was one) and a
sessionStart for the new one.
"""

from urllib.parse import urlparse

from .constants import (
    KEY_LAST_VISIT_TIME, KEY_SESSION_DURATION, KEY_REFERRER_PATH,
    KEY_SESSION_NUMBER, KEY_SESSION_ID, KEY_SESSION_ID_LAST_READ_TIME,
)
from .config import log
from .identity import OnceListener
from . import events


class SessionManager:

    def __init__(self, storage, queue, config, clock=events.now_ms):
        self._storage = storage
        self._queue = queue
        self._config = config
        self._clock = clock
        self._listener = OnceListener("sessionId", value=self.session_id)

    # ── Persisted fields ─────────────────────────────────────

    @property
    def session_id(self):
        return self._storage.get_item(KEY_SESSION_ID)

    @property
    def last_read_time(self):
        return self._storage.get_number(KEY_SESSION_ID_LAST_READ_TIME)

    def has_been_read(self):
        return self.last_read_time is not None

    @property
    def session_number(self):
        """Persisted number, 0 before the first session was ever read."""
        if not self.has_been_read():
            return 0
        return int(self._storage.get_number(KEY_SESSION_NUMBER) or 0)

    @property
    def duration(self):
        return self._storage.get_number(KEY_SESSION_DURATION) or 0

    @property
    def last_visit_time(self):
        return self._storage.get_number(KEY_LAST_VISIT_TIME) or 0

    @property
    def stored_referrer(self):
        return self._storage.get_item(KEY_REFERRER_PATH)

    def _touch(self):
        self._storage.persist_item(KEY_SESSION_ID_LAST_READ_TIME, self._clock())

    # ── Duration bookkeeping ─────────────────────────────────

    def update_last_visit_time(self):
        """Reset the activity baseline (page shown / window focused)."""
        self._storage.persist_item(KEY_LAST_VISIT_TIME, self._clock())

    def flush_duration(self):
        """Add the time since the activity baseline to the accumulator."""
        added = self._clock() - self.last_visit_time
        self._storage.persist_item(KEY_SESSION_DURATION, self.duration + added)

    def reset_duration(self):
        self._storage.persist_item(KEY_SESSION_DURATION, 0)
        self.update_last_visit_time()

    # ── Expiration ───────────────────────────────────────────

    def referrer_unchanged(self):
        referrer = self._config.referrer or ""
        referrer_host = urlparse(referrer).hostname
        page_host = self._config.page_host
        if page_host is not None and page_host == referrer_host:
            return True
        return referrer == (self.stored_referrer or "")

    def is_current(self):
        if not (self.has_been_read() and self.session_id is not None and self.referrer_unchanged()):
            return False
        return self._clock() - self.last_read_time < self._config.session_expiration_ms

    def ensure_current_session(self):
        """Extend the current session, or rotate to a new one if it expired."""
        if self.is_current():
            self._touch()
            return False
        self.rotate()
        return True

    def rotate(self):
        log.info("Generating a new session...")

        first_ever = not self.has_been_read()
        new_number = 0 if first_ever else self.session_number + 1
        self._storage.persist_item(KEY_SESSION_NUMBER, new_number)

        last_number = new_number - 1
        last_id = self.session_id

        self._touch()
        new_id = events.new_guid()
        self._storage.persist_item(KEY_SESSION_ID, new_id)
        self._storage.persist_item(KEY_REFERRER_PATH, self._config.referrer or "")

        if last_number >= 0:
            self.flush_duration()
            self._queue.append(
                events.session_stop(last_id, last_number, self.duration, self._clock())
            )
        self.reset_duration()
        self._queue.append(events.session_start(new_id, new_number, self._clock()))

        log.info("Session %d started (%s)", new_number, new_id)
        self._listener.rearm(new_id)
        return new_id

    # ── Listener ─────────────────────────────────────────────

    def set_listener(self, callback):
        self._listener.register(callback)
