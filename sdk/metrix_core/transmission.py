"""
TransmissionCoordinator — decides when to send, sends one chunk, and
reconciles queue / identity / busy-flag state with the collector's reply.

States per context: Idle → Sending → Idle, with up to three consecutive
attempts per tick (BackingOff) before waiting for the next tick.

The busy flag lives in shared storage and is advisory. Setting it is a
plain write, not a compare-and-swap: two contexts that pass the check at
the same moment will both send the same chunk. That costs a duplicate
delivery, never data loss, and a flag left behind by a dead context
goes stale and is reset after 3 × timeout + unload interval.
"""

import threading

import requests

from .constants import (
    KEY_AJAX_STATE, KEY_LAST_DATA_SEND_TIME, KEY_LAST_DATA_SEND_TRY_TIME,
    AJAX_START, AJAX_STOP, MAX_SEND_ATTEMPTS,
    STOP_RETRY_STATUS_MIN, STOP_RETRY_STATUS_MAX, ACK_STATUS_LIMIT,
)
from .config import log
from .parcel import build_parcel
from . import api
from . import events


class TransmissionCoordinator:

    def __init__(self, storage, queue, identity, config, state, http,
                 probe=None, user_attributes=None, clock=events.now_ms, lock=None):
        self._storage = storage
        self._queue = queue
        self._identity = identity
        self._config = config
        self._state = state
        self.http = http
        self._probe = probe
        self._user_attributes = user_attributes if user_attributes is not None else {}
        self._clock = clock
        self._lock = lock or threading.RLock()

    # ── Shared timestamps / flag ─────────────────────────────

    @property
    def busy_flag(self):
        return self._storage.get_item(KEY_AJAX_STATE)

    @property
    def last_send_time(self):
        return self._storage.get_number(KEY_LAST_DATA_SEND_TIME)

    @property
    def last_try_time(self):
        return self._storage.get_number(KEY_LAST_DATA_SEND_TRY_TIME)

    @property
    def stale_after_ms(self):
        return 3 * self._config.timeout_ms + self._config.queue_unload_interval_ms

    def _clear_sending_state(self):
        self._queue.clear_snapshot()
        self._storage.persist_item(KEY_AJAX_STATE, AJAX_STOP)
        self._state.holds_busy_flag = False

    def release(self):
        """Teardown hook: drop the busy flag if this context set it."""
        with self._lock:
            if self._state.holds_busy_flag:
                log.info("Releasing busy flag on teardown")
                self._clear_sending_state()

    # ── Eligibility ──────────────────────────────────────────

    def is_send_eligible(self):
        last_send = self.last_send_time
        if last_send is None:
            return True
        if self._clock() - last_send >= self._config.queue_unload_interval_ms:
            return True
        return self._queue.is_backlogged()

    def recover_stale_flag(self):
        """Reset a Sending flag whose owner stopped refreshing it. Returns True if reset."""
        if self.busy_flag != AJAX_START:
            return False
        last_try = self.last_try_time
        if last_try is not None and self._clock() - last_try <= self.stale_after_ms:
            return False
        log.warning("Busy flag is stale (last attempt %s) — resetting to idle", last_try)
        self._clear_sending_state()
        self._state.on_busy_flag_reset()
        return True

    def should_attempt(self):
        if not self._queue.exists() or self._queue.size() == 0:
            return False
        if not self.is_send_eligible():
            return False
        self.recover_stale_flag()
        return self.busy_flag != AJAX_START

    # ── Sending ──────────────────────────────────────────────

    def _page_data(self):
        if self._probe is None:
            return None
        try:
            return self._probe()
        except Exception as e:
            log.warning("Environment probe failed: %s", e)
            return None

    def _begin(self):
        """Enter Sending. Returns (parcel, snapshot); parcel is None if nothing to send."""
        self._storage.persist_item(KEY_AJAX_STATE, AJAX_START)
        self._state.on_send_started()
        snapshot = self._queue.snapshot()
        parcel = build_parcel(
            snapshot,
            self._config,
            self._page_data(),
            user_id=self._identity.get(),
            user_attributes=self._user_attributes,
        )
        return parcel, snapshot

    def _acknowledge(self, reply, count):
        self._storage.persist_item(KEY_LAST_DATA_SEND_TIME, self._clock())

        advance = True
        if reply.has_user_id:
            self._identity.assign(reply.user_id)
        else:
            advance = False
            if reply.parse_error:
                log.error("Error parsing collector response (HTTP %d): %s",
                          reply.status, reply.parse_error)
            else:
                log.warning("Collector response (HTTP %d) has no userId — queue kept",
                            reply.status)

        if reply.status < ACK_STATUS_LIMIT and advance:
            self._queue.take_acknowledged_prefix(count)
        elif reply.status >= ACK_STATUS_LIMIT:
            log.warning("Collector rejected parcel: HTTP %d — not retrying", reply.status)

    def _transmit(self, parcel, count):
        """One network attempt. Returns True when the retry loop should stop."""
        success = False
        try:
            reply = api.send_parcel(self.http, self._config, parcel)
            if STOP_RETRY_STATUS_MIN <= reply.status <= STOP_RETRY_STATUS_MAX:
                with self._lock:
                    self._acknowledge(reply, count)
                success = True
            else:
                log.error("Request failed: HTTP %d", reply.status)
        except requests.RequestException as e:
            log.warning("Network error while sending parcel: %s", e)
        finally:
            with self._lock:
                self._clear_sending_state()
                self._state.on_send_finished(success)
        return success

    def tick(self):
        """
        One periodic tick. Sends while eligible, up to MAX_SEND_ATTEMPTS
        consecutive failures. Returns the number of network attempts made.
        """
        made = 0
        while True:
            with self._lock:
                if not self.should_attempt():
                    return made
                self._storage.persist_item(KEY_LAST_DATA_SEND_TRY_TIME, self._clock())
                if self._state.attempts >= MAX_SEND_ATTEMPTS:
                    log.warning("%d consecutive send failures — waiting for next tick",
                                self._state.attempts)
                    self._state.attempts = 0
                    return made
                parcel, snapshot = self._begin()
                if parcel is None:
                    self._clear_sending_state()
                    return made

            made += 1
            if self._transmit(parcel, len(snapshot)):
                return made
