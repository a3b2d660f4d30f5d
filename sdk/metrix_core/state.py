"""
TabState — in-memory state of one execution context.

Everything shared between contexts lives in storage; this holds only
what must NOT be shared: the local attempt counter and whether this
context is the one that set the busy flag.
"""

from dataclasses import dataclass


@dataclass
class TabState:
    # ── Transmission ──────────────────────────────────────────
    attempts: int = 0                # Consecutive failed attempts in this context
    holds_busy_flag: bool = False    # True between marking Sending and clearing it

    # ── Lifecycle ─────────────────────────────────────────────
    started: bool = False
    closed: bool = False

    def on_send_started(self):
        self.holds_busy_flag = True

    def on_send_finished(self, success):
        self.holds_busy_flag = False
        if success:
            self.attempts = 0
        else:
            self.attempts += 1

    def on_busy_flag_reset(self):
        """Stale flag recovered — start counting attempts from scratch."""
        self.attempts = 0
