"""
Paths, logging setup, client options, config load/save, safe_print.
"""

import os
import json
import sys
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from .constants import (
    EVENTS_URL, TIMEOUT_MS, QUEUE_UNLOAD_INTERVAL_MS, SESSION_EXPIRATION_MS,
)


# ─── Paths ───────────────────────────────────────────────────────
# One storage document per origin, shared by every process of the host.
_FOLDER_NAME = "metrix"

if sys.platform == "win32":
    BASE_DIR = Path(os.environ.get("LOCALAPPDATA", os.path.expanduser("~"))) / _FOLDER_NAME
else:
    BASE_DIR = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state")) / _FOLDER_NAME

CONFIG_FILE = BASE_DIR / "config.json"
LOG_FILE = BASE_DIR / "metrix.log"


# ─── Safe print (no crash without a console) ─────────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except Exception:
        pass


# ─── Logging ─────────────────────────────────────────────────────

log = logging.getLogger("metrix")

_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_file=None, level=logging.INFO):
    """
    Attach a file handler and a stdout handler to the "metrix" logger.
    Only the CLI calls this; library users configure logging themselves.
    """
    log_file = Path(log_file) if log_file else LOG_FILE
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        if log_file.exists() and log_file.stat().st_size > 1_000_000:
            log_file.write_text("")
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        log.addHandler(file_handler)
    except OSError:
        pass

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_FORMAT))
    log.addHandler(console_handler)
    log.setLevel(level)


# ─── Client options ──────────────────────────────────────────────

def _as_str(value):
    return value if isinstance(value, str) else None


@dataclass
class MetrixConfig:
    app_id: Optional[str] = None
    store_name: Optional[str] = None
    tracker_token: Optional[str] = None
    package_name: Optional[str] = None
    version_code: int = 1
    version_name: str = "1.0"
    unique_device_id: str = ""
    disable_logs: bool = False

    # ── Host page ─────────────────────────────────────────────
    page_url: str = ""
    referrer: str = ""
    user_agent: str = ""

    # ── Transport / storage ───────────────────────────────────
    endpoint: str = EVENTS_URL
    storage_dir: Path = field(default_factory=lambda: BASE_DIR)
    timeout_ms: int = TIMEOUT_MS
    queue_unload_interval_ms: int = QUEUE_UNLOAD_INTERVAL_MS
    session_expiration_ms: int = SESSION_EXPIRATION_MS

    @classmethod
    def from_options(cls, options):
        """Build a config from the camelCase options dict accepted by initialize()."""
        options = dict(options or {})
        page_url = options.get("pageUrl") or ""

        package_name = _as_str(options.get("packageName"))
        if not package_name:
            parsed = urlparse(page_url)
            package_name = parsed.hostname or parsed.path or ""

        return cls(
            app_id=_as_str(options.get("appId")),
            store_name=_as_str(options.get("storeName")),
            tracker_token=_as_str(options.get("trackerToken")),
            package_name=package_name,
            version_code=options.get("versionCode") or 1,
            version_name=options.get("versionName") or "1.0",
            unique_device_id=_as_str(options.get("uniqueDeviceId")) or "",
            disable_logs=bool(options.get("disableLogs")),
            page_url=page_url,
            referrer=options.get("referrer") or "",
            user_agent=options.get("userAgent") or "",
            endpoint=options.get("endpoint") or EVENTS_URL,
            storage_dir=Path(options.get("storageDir") or BASE_DIR),
            timeout_ms=int(options.get("timeoutMs") or TIMEOUT_MS),
            queue_unload_interval_ms=int(
                options.get("queueUnloadIntervalMs") or QUEUE_UNLOAD_INTERVAL_MS
            ),
            session_expiration_ms=int(
                options.get("sessionExpirationMs") or SESSION_EXPIRATION_MS
            ),
        )

    @property
    def page_host(self):
        return urlparse(self.page_url).hostname

    @property
    def page_origin(self):
        parsed = urlparse(self.page_url)
        return f"{parsed.scheme}://{parsed.netloc}" if parsed.netloc else "default"

    @property
    def page_query(self):
        """Query string of the page URL without the leading '?', or None."""
        query = urlparse(self.page_url).query
        return query or None

    def describe(self):
        return {
            "appInfo": {
                "package": self.package_name,
                "code": self.version_code,
                "version": self.version_name,
            },
            "uniqueDeviceId": self.unique_device_id,
            "trackerToken": self.tracker_token,
            "storeName": self.store_name,
            "referrer": self.page_query,
        }


# ─── Config file (CLI) ──────────────────────────────────────────

def load_config(path=None):
    """Load options from disk. Returns dict or None."""
    path = Path(path) if path else CONFIG_FILE
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return None
    return None


def save_config(options, path=None):
    """Save the options dict to disk."""
    path = Path(path) if path else CONFIG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(options, f, indent=2)
    log.info("Config saved to %s", path)
