"""
Origin-scoped key/value slots — the persisted state shared by every
context (process or in-process client) of the same host origin.

Values are strings, like the browser store the slots were modelled on.
Every read goes back to the backend, so two contexts sharing a backend
always see each other's writes. Each key is written atomically and
independently of the others. There is no compare-and-swap: a
read-modify-write of one key from two contexts can interleave.
"""

import json
import os
import re
import threading
import time
from pathlib import Path

from .config import log


class Storage:
    """Base class; subclasses implement get_item / set_item / remove_item."""

    def get_item(self, key):
        raise NotImplementedError

    def set_item(self, key, value):
        raise NotImplementedError

    def remove_item(self, key):
        raise NotImplementedError

    # ── Helpers shared by all backends ───────────────────────

    def persist_item(self, key, value):
        """Best-effort write. Failures (quota, disk, bad value) never reach the caller."""
        try:
            self.set_item(key, str(value))
        except (OSError, TypeError, ValueError) as e:
            log.debug("Failed to persist %s: %s", key, e)

    def discard_item(self, key):
        try:
            self.remove_item(key)
        except OSError as e:
            log.debug("Failed to remove %s: %s", key, e)

    def get_number(self, key):
        """Numeric slot value, or None when absent or unparsable."""
        value = self.get_item(key)
        if value is None:
            return None
        try:
            return float(value) if "." in value else int(value)
        except ValueError:
            return None

    def get_json(self, key):
        """
        Decoded JSON slot value. Raises ValueError on corrupted data so
        the caller can decide how to recover.
        """
        value = self.get_item(key)
        if value is None:
            return None
        return json.loads(value)

    def persist_json(self, key, value):
        try:
            encoded = json.dumps(value)
        except (TypeError, ValueError) as e:
            log.debug("Failed to encode %s: %s", key, e)
            return
        self.persist_item(key, encoded)


class MemoryStorage(Storage):
    """In-process backend. Several clients may share one instance."""

    def __init__(self, initial=None):
        self._data = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key):
        with self._lock:
            return self._data.get(key)

    def set_item(self, key, value):
        if not isinstance(value, str):
            raise TypeError("storage values must be strings")
        with self._lock:
            self._data[key] = value

    def remove_item(self, key):
        with self._lock:
            self._data.pop(key, None)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def origin_dir_name(origin):
    """Directory name for an origin: 'https://shop.example:8443' → 'shop.example_8443'."""
    name = origin.split("://", 1)[-1].strip("/") or "default"
    return _UNSAFE_CHARS.sub("_", name)


class FileStorage(Storage):
    """
    One directory per origin, one file per key. A write replaces only
    its own key's file (temp file + os.replace), so concurrent writers
    on different keys never clobber each other and a reader never sees
    a torn value.
    """

    def __init__(self, directory, origin="default"):
        self._dir = Path(directory) / origin_dir_name(origin)

    @property
    def path(self):
        return self._dir

    def _key_path(self, key):
        return self._dir / (_UNSAFE_CHARS.sub("_", key) + ".slot")

    def get_item(self, key):
        try:
            return self._key_path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Storage read failed (%s): %s", key, e)
            return None

    def set_item(self, key, value):
        if not isinstance(value, str):
            raise TypeError("storage values must be strings")
        target = self._key_path(key)
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(
            f"{target.name}.{os.getpid()}.{threading.get_ident()}.{time.monotonic_ns()}.tmp"
        )
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, target)
        finally:
            tmp.unlink(missing_ok=True)

    def remove_item(self, key):
        self._key_path(key).unlink(missing_ok=True)
