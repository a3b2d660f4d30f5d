"""
Event builders and input validation.

Events are plain JSON-ready dicts; that is what lands in the persisted
queue and on the wire.
"""

import math
import time
import uuid
from numbers import Real

from .constants import (
    SESSION_START, SESSION_STOP, REVENUE, CUSTOM,
    REVENUE_CURRENCIES, DEFAULT_CURRENCY,
)
from .config import log


def now_ms():
    return int(time.time() * 1000)


def new_guid():
    return str(uuid.uuid4())


# ─── Validation ──────────────────────────────────────────────────

def is_string(value):
    return isinstance(value, str)


def is_number(value):
    """Finite real number. NaN and infinities cannot be sent as JSON."""
    if not isinstance(value, Real) or isinstance(value, bool):
        return False
    return math.isfinite(value)


def validate_attributes(attributes):
    """Attributes must be a dict of str → str."""
    if not isinstance(attributes, dict):
        return False
    return all(is_string(k) and is_string(v) for k, v in attributes.items())


def normalize_currency(currency):
    """Known currency codes pass through; anything else falls back to IRR."""
    if is_string(currency) and currency.upper() in REVENUE_CURRENCIES:
        return currency.upper()
    if currency:
        log.warning("Unsupported revenue currency %r — using %s", currency, DEFAULT_CURRENCY)
    return DEFAULT_CURRENCY


# ─── Builders ────────────────────────────────────────────────────

def base_event(event_type, session_id, session_num, timestamp):
    return {
        "type": event_type,
        "id": new_guid(),
        "sessionId": session_id,
        "sessionNum": session_num,
        "timestamp": timestamp,
    }


def session_start(session_id, session_num, timestamp):
    return base_event(SESSION_START, session_id, session_num, timestamp)


def session_stop(session_id, session_num, duration, timestamp):
    event = base_event(SESSION_STOP, session_id, session_num, timestamp)
    event["duration"] = duration
    return event


def custom(name, attributes, session_id, session_num, timestamp):
    event = base_event(CUSTOM, session_id, session_num, timestamp)
    event["name"] = name
    event["attributes"] = dict(attributes)
    event["metrics"] = {}
    return event


def revenue(name, amount, currency, order_id, session_id, session_num, timestamp):
    event = base_event(REVENUE, session_id, session_num, timestamp)
    event["name"] = name
    event["revenue"] = amount
    event["currency"] = currency
    if order_id is not None:
        event["orderId"] = order_id
    return event
