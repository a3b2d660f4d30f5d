"""
MetrixClient — the handle returned by initialize().

Public calls validate their input, make sure a session is current and
queue the event; they never wait on the network. A daemon ticker thread
drives the TransmissionCoordinator every queue-unload interval.

All queue / session mutations of one client go through one RLock; the
coordinator releases it for the duration of the HTTP call.
"""

import atexit
import threading

from .config import log, MetrixConfig
from .state import TabState
from .storage import FileStorage
from .identity import IdentityStore
from .event_queue import EventQueue
from .session import SessionManager
from .transmission import TransmissionCoordinator
from .environment import probe_for
from . import events
from . import http_client


class MetrixClient:
    """
    Owns one execution context. Runs:
      tick()       — send eligibility + one transmission cycle   (every 10s)
      hooks        — on_visibility_lost / on_visibility_gained / close
    """

    def __init__(self, config, storage=None, http=None, probe=None, clock=events.now_ms):
        if not isinstance(config, MetrixConfig):
            config = MetrixConfig.from_options(config)
        self._config = config
        log.disabled = config.disable_logs

        if storage is None:
            storage = FileStorage(config.storage_dir, config.page_origin)
        self._storage = storage
        self._clock = clock
        self._lock = threading.RLock()
        self.state = TabState()
        self._user_attributes = {}

        self.identity = IdentityStore(storage)
        self.queue = EventQueue(storage, self.identity, config)
        self.session = SessionManager(storage, self.queue, config, clock=clock)
        self.coordinator = TransmissionCoordinator(
            storage, self.queue, self.identity, config, self.state,
            http=http or http_client.create_session(),
            probe=probe or probe_for(config),
            user_attributes=self._user_attributes,
            clock=clock,
            lock=self._lock,
        )

        self._stop = threading.Event()
        self._ticker = None

        if config.app_id is None:
            log.error("appId is required — events will be dropped until set_app_id() is called")

    @property
    def config(self):
        return self._config

    # ─── Lifecycle ───────────────────────────────────────────

    def start(self, background=True):
        """Initialize once per handle: first session + (optionally) the ticker thread."""
        with self._lock:
            if self.state.started:
                return self
            self.state.started = True
            log.info("Initializing Metrix SDK %s", self._config.describe())
            self.session.update_last_visit_time()
            self.session.ensure_current_session()

        if background:
            self._ticker = threading.Thread(target=self._run_ticker, name="metrix-ticker", daemon=True)
            self._ticker.start()
            atexit.register(self.close)
        return self

    def _run_ticker(self):
        interval = self._config.queue_unload_interval_ms / 1000
        log.info("Ticker started (interval=%.1fs)", interval)
        while not self._stop.wait(interval):
            try:
                self.tick()
            except Exception as e:
                log.error("_tick error: %s", e, exc_info=True)
                self.coordinator.http = http_client.reset_session(self.coordinator.http)

    def tick(self):
        """Run one transmission cycle now. Returns the number of network attempts."""
        return self.coordinator.tick()

    def on_visibility_lost(self):
        with self._lock:
            self.session.flush_duration()

    def on_visibility_gained(self):
        with self._lock:
            self.session.update_last_visit_time()

    def close(self):
        """Teardown: flush duration, release a held busy flag, stop ticking."""
        with self._lock:
            if self.state.closed:
                return
            self.state.closed = True
        self._stop.set()
        with self._lock:
            self.session.flush_duration()
        self.coordinator.release()
        try:
            atexit.unregister(self.close)
        except Exception:
            pass
        log.info("MetrixClient shut down.")

    # ─── Public API ──────────────────────────────────────────

    def set_app_id(self, app_id):
        self._config.app_id = app_id

    def send_event(self, name, attributes=None):
        with self._lock:
            self.session.ensure_current_session()

            if not events.is_string(name):
                log.error("Invalid value was received for event name. The event will be ignored")
                return False

            attributes = attributes if attributes is not None else {}
            if not events.validate_attributes(attributes):
                log.error("Invalid value was received for event attributes. The event will be ignored")
                return False

            event = events.custom(
                name, attributes,
                self.session.session_id, self.session.session_number, self._clock(),
            )
            return self.queue.append(event)

    def send_revenue(self, name, amount, currency=None, order_id=None):
        with self._lock:
            self.session.ensure_current_session()

            if not events.is_string(name):
                log.error("Invalid value was received for event name. The event will be ignored")
                return False
            if not events.is_number(amount):
                log.error("Invalid value was received for revenue amount. The event will be ignored")
                return False
            if order_id is not None and not events.is_string(order_id):
                log.error("Invalid value was received for revenue order id. The event will be ignored")
                return False

            event = events.revenue(
                name, amount, events.normalize_currency(currency), order_id,
                self.session.session_id, self.session.session_number, self._clock(),
            )
            return self.queue.append(event)

    def add_user_attributes(self, attributes):
        """Replace the free-form user attributes sent with every parcel."""
        if attributes is not None and not isinstance(attributes, dict):
            log.error("Invalid value was received for user attributes. Ignored")
            return
        with self._lock:
            self._user_attributes.clear()
            self._user_attributes.update(attributes or {})

    def set_user_id_listener(self, listener):
        self.identity.set_listener(listener)

    def set_session_id_listener(self, listener):
        self.session.set_listener(listener)
