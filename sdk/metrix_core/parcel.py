"""
Parcel builder — events snapshot + metadata for one send attempt.

Pure read: nothing here touches the queue or the session.
"""

import copy

from .constants import SDK_VERSION, ENGINE_NAME
from .environment import detect_legacy_ie


def _device_info(page_data):
    if not page_data:
        return {}
    browser = page_data.get("browser", {})
    screen = page_data.get("screen", {})
    return {
        "os": browser.get("mobileOs"),
        "osVersionName": browser.get("mobileOsVersion"),
        "osVersion": 0,
        "deviceLang": page_data.get("locale", {}).get("language"),
        "screen": {
            "width": screen.get("width"),
            "height": screen.get("height"),
        },
    }


def _connection_info(page_data):
    connection = {}
    if page_data:
        browser = page_data.get("browser", {})
        connection["protocol"] = page_data.get("document", {}).get("url", {}).get("protocol")
        connection["browserName"] = browser.get("name")
        connection["browserVersion"] = browser.get("version")
        ie = detect_legacy_ie(browser.get("ua") or "")
        if ie:
            connection["browserVersion"] = ie
            connection["browserName"] = "MS Edge" if ie > 11 else "MSIE"
    return connection


def build_parcel(snapshot, config, page_data, user_id=None, user_attributes=None):
    """
    snapshot         — SendingSnapshot (tuple of events)
    page_data        — Environment Probe result, may be None
    user_id          — known client identity or None
    """
    if not snapshot:
        return None

    device = _device_info(page_data)
    device["androidAdId"] = config.unique_device_id

    system_attr = {}
    if config.tracker_token:
        system_attr["trackerToken"] = config.tracker_token
    if config.store_name:
        system_attr["store"] = config.store_name

    meta = {
        "acquisition": {},
        "app": {
            "versionCode": config.version_code,
            "versionName": config.version_name,
            "packageName": config.package_name,
            "sdkVersion": SDK_VERSION,
            "engineName": ENGINE_NAME,
        },
        "referrer": {
            "available": True,
            "referrer": config.page_query,
        },
        "location": {},
        "device": device,
        "sim": {},
        "user": {"userId": user_id} if user_id else {},
        "systemAttr": system_attr,
        "userAttr": dict(user_attributes or {}),
        "connection": _connection_info(page_data),
    }
    return {"events": [copy.deepcopy(e) for e in snapshot], "metaData": meta}
