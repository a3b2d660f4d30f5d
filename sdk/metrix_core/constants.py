"""
Constants, thresholds, wire headers, storage keys and event types.
"""

SDK_VERSION = "0.9.0"
PLATFORM_TAG = "PWA"
ENGINE_NAME = "web"

# ─── Endpoint ────────────────────────────────────────────────────
EVENTS_URL = "https://analytics.metrix.ir/v3/engagement_event"

# ─── Thresholds (milliseconds, like event timestamps) ────────────
TIMEOUT_MS = 5000                  # Fixed timeout for one send attempt
QUEUE_UNLOAD_INTERVAL_MS = 10000   # Tick period + cool-down after a good send
SESSION_EXPIRATION_MS = 60000      # Sliding session expiration
CHUNK_SIZE = 15                    # Max events per parcel
QUEUE_CAPACITY = 300               # Max events kept on disk
MAX_SEND_ATTEMPTS = 3              # Consecutive failures before waiting a tick

# Status codes in this range stop the retry loop (not necessarily "accepted")
STOP_RETRY_STATUS_MIN = 200
STOP_RETRY_STATUS_MAX = 500
# Below this the acknowledged prefix is removed from the queue
ACK_STATUS_LIMIT = 400

# ─── Event types ─────────────────────────────────────────────────
SESSION_START = "sessionStart"
SESSION_STOP = "sessionStop"
REVENUE = "revenue"
CUSTOM = "custom"

# Trim keeps interaction data first, housekeeping last.
EVENT_PRIORITIES = (CUSTOM, REVENUE, SESSION_START, SESSION_STOP)

# ─── Revenue currencies ──────────────────────────────────────────
CURRENCY_IRR = "IRR"
CURRENCY_USD = "USD"
CURRENCY_EUR = "EUR"
REVENUE_CURRENCIES = frozenset({CURRENCY_IRR, CURRENCY_USD, CURRENCY_EUR})
DEFAULT_CURRENCY = CURRENCY_IRR

# ─── Busy flag values ────────────────────────────────────────────
AJAX_START = "start"     # Sending
AJAX_STOP = "stop"       # Idle

# ─── Request headers ─────────────────────────────────────────────
HEADER_APP_ID = "X-Application-Id"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_PLATFORM = "MTX-Platform"
HEADER_SDK_VERSION = "MTX-SDK-Version"
CONTENT_TYPE_JSON = "application/json;charset=UTF-8"

# ─── Persisted slots (origin-scoped) ─────────────────────────────
KEY_MAIN_QUEUE = "METRIX_LOCAL_OBJECT_QUEUE"
KEY_SENDING_QUEUE = "METRIX_LOCAL_SENDING_QUEUE"
KEY_LAST_VISIT_TIME = "METRIX_LAST_VISIT_TIME"
KEY_SESSION_DURATION = "METRIX_SESSION_DURATION"
KEY_REFERRER_PATH = "METRIX_REFERRER_PATH"
KEY_SESSION_NUMBER = "METRIX_SESSION_NUMBER"
KEY_SESSION_ID = "METRIX_SESSION_ID"
KEY_SESSION_ID_LAST_READ_TIME = "METRIX_LAST_SESSION_ID_READ_TIME"
KEY_CLIENT_ID = "METRIX_CHART_CLIENT_ID"
KEY_LAST_DATA_SEND_TRY_TIME = "METRIX_LAST_DATA_SEND_TRY_TIME"
KEY_LAST_DATA_SEND_TIME = "METRIX_LAST_DATA_SEND_TIME"
KEY_AJAX_STATE = "METRIX_AJAX_STATE"
