"""Common utilities for authdeploy."""

import re
from datetime import timedelta


def parse_duration(duration_str: str) -> timedelta:
    """Parse duration string to timedelta.

    Supports formats like: 30s, 5m, 2h
    Also supports combinations: 1h30m, 2m15s
    A bare number is read as seconds.

    Raises:
        ValueError: If format is invalid
    """
    if not duration_str:
        raise ValueError("Duration string cannot be empty")

    text = duration_str.strip().lower()
    if text.isdigit():
        return timedelta(seconds=int(text))

    pattern = re.compile(r"(\d+)([smh])")
    matches = pattern.findall(text)

    if not matches or pattern.sub("", text):
        raise ValueError(f"Invalid duration format: {duration_str}")

    units = {"s": "seconds", "m": "minutes", "h": "hours"}
    total = timedelta()
    for value, unit in matches:
        total += timedelta(**{units[unit]: int(value)})
    return total


def parse_seconds(duration_str: str) -> int:
    """Parse a duration string to whole seconds."""
    return int(parse_duration(duration_str).total_seconds())


def mask_secret(value: str | None, visible: int = 4) -> str:
    """Mask a secret for display, keeping the first few characters."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)
