"""
Client identity slot + the fire-at-most-once listener cell.

OnceListener is a two-state cell (unset / set(value)) with an optional
callback. Whichever of set() and register() completes the pair fires the
callback, exactly once per generation, on the caller's thread.
"""

import threading

from .constants import KEY_CLIENT_ID
from .config import log


class OnceListener:
    """Value/callback rendezvous that fires at most once per generation."""

    def __init__(self, name, value=None):
        self._name = name
        self._value = value
        self._callback = None
        self._fired = False
        self._lock = threading.Lock()

    @property
    def value(self):
        return self._value

    @property
    def fired(self):
        return self._fired

    def _claim(self):
        # Caller holds the lock. Returns the (callback, value) to fire, or None.
        if self._fired or self._callback is None or self._value is None:
            return None
        self._fired = True
        return self._callback, self._value

    def _fire(self, pending):
        if pending is None:
            return
        callback, value = pending
        try:
            callback(value)
        except Exception as e:
            log.error("%s listener raised: %s", self._name, e, exc_info=True)

    def register(self, callback):
        """Install the callback; fires now if the value is already known."""
        if not callable(callback):
            log.warning("Ignoring non-callable %s listener", self._name)
            return
        with self._lock:
            self._callback = callback
            pending = self._claim()
        self._fire(pending)

    def set(self, value):
        """Make the value known; fires now if a callback is waiting."""
        with self._lock:
            if self._value is None:
                self._value = value
            pending = self._claim()
        self._fire(pending)

    def rearm(self, value):
        """Start a new generation with a fresh value (one more firing allowed)."""
        with self._lock:
            self._value = value
            self._fired = False
            pending = self._claim()
        self._fire(pending)


class IdentityStore:
    """
    Server-assigned anonymous client id, persisted once per device.
    The listener cell is seeded from storage so a reload still delivers it.
    """

    def __init__(self, storage):
        self._storage = storage
        self._listener = OnceListener("userId", value=self.get())

    def get(self):
        return self._storage.get_item(KEY_CLIENT_ID)

    @property
    def known(self):
        return self.get() is not None

    def set_listener(self, callback):
        self._listener.register(callback)

    def assign(self, user_id):
        """
        Record the id from a collector response. Only the first id is kept;
        the listener fires with the stored id.
        """
        if not isinstance(user_id, str) or not user_id:
            log.warning("Ignoring invalid userId in response: %r", user_id)
            return False
        current = self.get()
        if current is None:
            self._storage.persist_item(KEY_CLIENT_ID, user_id)
            log.info("Client identity assigned: %s", user_id)
            current = user_id
        self._listener.set(current)
        return current == user_id
