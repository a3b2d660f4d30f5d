"""
Default Environment Probe — a one-shot snapshot of browser / document /
screen / locale data. Read only when a parcel is built.

Hosts that know more about their runtime (a real browser bridge, a
kiosk shell) pass their own probe callable to initialize(); it must
return the same four sections.
"""

import locale
import os
import platform
import re
import time
from urllib.parse import urlparse, parse_qsl

# (substring, identity, version marker) — first match wins.
_BROWSERS = (
    ("Edg/", "Edge", "Edg"),
    ("OPR/", "Opera", "OPR"),
    ("Chrome", "Chrome", "Chrome"),
    ("OmniWeb", "OmniWeb", "OmniWeb/"),
    ("Firefox", "Firefox", "Firefox"),
    ("Safari", "Safari", "Version"),
    ("MSIE", "Explorer", "MSIE"),
    ("Trident/", "Explorer", "rv"),
    ("Gecko", "Mozilla", "rv"),
    ("Mozilla", "Netscape", "Mozilla"),
)

_PLATFORMS = (
    ("Windows", "Windows"),
    ("Macintosh", "Mac"),
    ("iPod", "iPod"),
    ("iPad", "iPad"),
    ("iPhone", "iPhone"),
    ("Android", "Android"),
    ("Linux", "Linux"),
)

_VERSION = re.compile(r"[\d.]+")


def _leading_float(text):
    match = _VERSION.match(text)
    if not match:
        return None
    try:
        return float(".".join(match.group(0).split(".")[:2]))
    except ValueError:
        return None


def detect_browser(user_agent):
    """Returns (name, version) for a user-agent string."""
    for needle, identity, marker in _BROWSERS:
        if needle in user_agent:
            index = user_agent.find(marker)
            version = None
            if index != -1:
                version = _leading_float(user_agent[index + len(marker) + 1:])
            return identity, version if version is not None else "an unknown version"
    return "An unknown browser", "an unknown version"


def detect_platform(user_agent):
    for needle, identity in _PLATFORMS:
        if needle in user_agent:
            return identity
    return "an unknown OS"


def _ua_system_parts(user_agent):
    start, end = user_agent.find("("), user_agent.find(")")
    if start == -1 or end <= start:
        return []
    return [part.strip() for part in user_agent[start + 1:end].split(";")]


def detect_mobile_os(user_agent):
    """Returns (os name, os version) for Android / iOS agents, else (None, None)."""
    name = version = None
    for part in _ua_system_parts(user_agent):
        words = part.split(" ")
        if part.startswith("Android"):
            name = words[0]
            version = words[1] if len(words) > 1 else None
        elif part.startswith("CPU"):
            name = words[1] if len(words) > 1 else None
            version = words[3] if len(words) > 3 else None
    return name, version


def detect_legacy_ie(user_agent):
    """Major version for MSIE / Trident / legacy Edge agents, else None."""
    for marker, prefix in (("MSIE ", "MSIE "), ("Trident/", "rv:"), ("Edge/", "Edge/")):
        if marker in user_agent:
            index = user_agent.find(prefix)
            if index == -1:
                return None
            digits = re.match(r"\d+", user_agent[index + len(prefix):])
            return int(digits.group(0)) if digits else None
    return None


def _browser_data(user_agent):
    if user_agent:
        name, version = detect_browser(user_agent)
        os_name = detect_platform(user_agent)
        mobile_os, mobile_os_version = detect_mobile_os(user_agent)
    else:
        name, version = platform.python_implementation(), platform.python_version()
        os_name = platform.system() or "an unknown OS"
        mobile_os, mobile_os_version = None, platform.release() or None
    return {
        "ua": user_agent,
        "name": name,
        "version": version,
        "platform": os_name,
        "mobileOs": mobile_os or os_name,
        "mobileOsVersion": mobile_os_version or "unknown version",
        "language": _language(),
    }


def _url_data(page_url, referrer):
    parsed = urlparse(page_url or "")
    return {
        "hash": f"#{parsed.fragment}" if parsed.fragment else "",
        "host": parsed.netloc,
        "hostname": parsed.hostname or "",
        "pathname": parsed.path,
        "protocol": f"{parsed.scheme}:" if parsed.scheme else "",
        "referrer": referrer,
        "query": dict(parse_qsl(parsed.query, keep_blank_values=True)),
    }


def _language():
    try:
        lang = locale.getlocale()[0]
    except ValueError:
        lang = None
    lang = lang or os.environ.get("LANG", "").split(".")[0]
    if lang in ("C", "POSIX"):
        lang = None
    return (lang or "en_US").replace("_", "-")


def _locale_data():
    offset_min = (time.altzone if time.daylight and time.localtime().tm_isdst else time.timezone) // 60
    hours, minutes = divmod(abs(offset_min), 60)
    sign = "-" if offset_min > 0 else "+"
    return {
        "language": _language(),
        "timezoneOffset": offset_min,
        "gmtOffset": f"GMT{sign}{hours:02d}{minutes:02d}",
        "timezone": time.tzname[time.localtime().tm_isdst > 0],
    }


def get_page_load_data(user_agent="", page_url="", referrer="", title=""):
    """The probe call: {browser, document, screen, locale}."""
    return {
        "browser": _browser_data(user_agent),
        "document": {
            "title": title,
            "referrer": referrer,
            "url": _url_data(page_url, referrer),
        },
        "screen": {
            "height": None,
            "width": None,
            "colorDepth": None,
            "cpuCore": os.cpu_count(),
            "gpu": "Unknown",
        },
        "locale": _locale_data(),
    }


def probe_for(config):
    """Bind the default probe to a client config."""
    def probe():
        return get_page_load_data(
            user_agent=config.user_agent,
            page_url=config.page_url,
            referrer=config.referrer,
        )
    return probe
