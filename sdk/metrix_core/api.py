"""
Collector API call — one POST of one parcel.

Blocking; called from the ticker thread (or a test), never from the
public API. Raises requests.RequestException on transport errors and
timeouts; the coordinator decides what that means.
"""

from dataclasses import dataclass
from typing import Optional

from .constants import (
    HEADER_APP_ID, HEADER_CONTENT_TYPE, HEADER_PLATFORM, HEADER_SDK_VERSION,
    CONTENT_TYPE_JSON, PLATFORM_TAG, SDK_VERSION,
)
from .config import log


@dataclass(frozen=True)
class CollectorReply:
    status: int
    body: Optional[dict]       # None when the body is absent or not a JSON object
    parse_error: Optional[str] = None

    @property
    def user_id(self):
        if self.body is None:
            return None
        return self.body.get("userId")

    @property
    def has_user_id(self):
        return self.body is not None and "userId" in self.body


def request_headers(app_id):
    return {
        HEADER_APP_ID: app_id,
        HEADER_CONTENT_TYPE: CONTENT_TYPE_JSON,
        HEADER_PLATFORM: PLATFORM_TAG,
        HEADER_SDK_VERSION: SDK_VERSION,
    }


def _parse_body(resp):
    text = resp.text or ""
    if not text.strip():
        return None, "empty body"
    try:
        data = resp.json()
    except ValueError as e:
        return None, str(e)
    if not isinstance(data, dict):
        return None, f"unexpected JSON {type(data).__name__}"
    return data, None


def send_parcel(http, config, parcel):
    """POST the parcel. Returns a CollectorReply."""
    log.info("Attempting to send parcel (%d events)", len(parcel["events"]))
    log.debug("Parcel: %s", parcel)
    resp = http.post(
        config.endpoint,
        json=parcel,
        headers=request_headers(config.app_id),
        timeout=config.timeout_ms / 1000,
    )
    body, error = _parse_body(resp)
    return CollectorReply(status=resp.status_code, body=body, parse_error=error)
