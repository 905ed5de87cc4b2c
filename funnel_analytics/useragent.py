"""
Client classification from user-agent strings.

This is keyword matching, not a user-agent grammar. Each table is an
ordered rule list and the first matching rule wins, so order matters:
Edge and Opera user agents also contain "Chrome" and classify as Chrome,
iPhone agents contain "Mac OS X" and classify as macOS, and Android agents
contain "Linux".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

UNKNOWN = "Unknown"


class DeviceType(Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


@dataclass(frozen=True)
class ClientInfo:
    device_type: DeviceType
    browser: str
    os: str


# Tablet is checked first: iPad matches both patterns.
DEVICE_RULES: tuple[tuple[re.Pattern[str], DeviceType], ...] = (
    (re.compile(r"iPad|Tablet", re.IGNORECASE), DeviceType.TABLET),
    (re.compile(r"Mobile|Android|iPhone|iPad", re.IGNORECASE), DeviceType.MOBILE),
)

# (required substrings, excluded substrings, label)
BROWSER_RULES: tuple[tuple[tuple[str, ...], tuple[str, ...], str], ...] = (
    (("Chrome",), (), "Chrome"),
    (("Firefox",), (), "Firefox"),
    (("Safari",), ("Chrome",), "Safari"),
    (("Edge",), (), "Edge"),
    (("Opera",), (), "Opera"),
)

# (any-of substrings, label)
OS_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("Windows NT 10",), "Windows 10"),
    (("Windows NT 6.3",), "Windows 8.1"),
    (("Windows NT 6.1",), "Windows 7"),
    (("Windows",), "Windows"),
    (("Mac OS X",), "macOS"),
    (("Linux",), "Linux"),
    (("Android",), "Android"),
    (("iPhone OS", "iOS"), "iOS"),
)


def classify_device(user_agent: str) -> DeviceType:
    for pattern, device in DEVICE_RULES:
        if pattern.search(user_agent):
            return device
    return DeviceType.DESKTOP


def classify_browser(user_agent: str) -> str:
    for required, excluded, label in BROWSER_RULES:
        if all(s in user_agent for s in required) and not any(s in user_agent for s in excluded):
            return label
    return UNKNOWN


def classify_os(user_agent: str) -> str:
    for keywords, label in OS_RULES:
        if any(k in user_agent for k in keywords):
            return label
    return UNKNOWN


def classify_user_agent(user_agent: str) -> ClientInfo:
    """Classify device category, browser and operating system."""
    return ClientInfo(
        device_type=classify_device(user_agent),
        browser=classify_browser(user_agent),
        os=classify_os(user_agent),
    )
