"""
metrix_core — Metrix web telemetry client v0.9.0
================================================
Architecture: public calls queue synchronously; one daemon ticker per
client flushes the persisted queue to the collector. Zero busy-wait.

  constants.py    → Version, thresholds, headers, storage keys, event types
  config.py       → Paths, logging, MetrixConfig, config load/save
  storage.py      → Origin-scoped key/value slots (file + memory backends)
  identity.py     → IdentityStore + OnceListener (fire-at-most-once)
  events.py       → Event builders + input validation
  event_queue.py  → EventQueue (persisted, capacity 300, priority trim)
  session.py      → SessionManager (sliding expiration, start/stop events)
  environment.py  → Default Environment Probe (browser/document/screen/locale)
  parcel.py       → Parcel builder (events chunk + metadata)
  http_client.py  → HTTP session with pooling + SSL, no adapter retries
  api.py          → Collector POST + reply parsing
  state.py        → TabState (per-context attempt counter, flag ownership)
  transmission.py → TransmissionCoordinator (eligibility, busy flag, retries)
  app.py          → MetrixClient (public API, ticker thread, lifecycle hooks)
  runner.py       → initialize() + metrix-send CLI
"""

from .app import MetrixClient
from .config import MetrixConfig
from .runner import initialize
from .storage import FileStorage, MemoryStorage

__all__ = ["MetrixClient", "MetrixConfig", "initialize", "FileStorage", "MemoryStorage"]
