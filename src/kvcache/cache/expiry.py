"""
kvcache — Expiry Policy

Single source of truth for turning a relative TTL into an absolute expiry
timestamp and for deciding whether a stored record is still live.
Every backend that stores its own expiry goes through these two functions.

An expiry of 0 means the record never expires.
"""

import time

NEVER_EXPIRES = 0


def compute_expiry(ttl: int | None, now: float | None = None) -> int:
    """
    Compute the absolute expiry for a TTL.

    Args:
        ttl: TTL in seconds (None or <= 0 means no expiry)
        now: Current Unix time (defaults to time.time())

    Returns:
        Unix timestamp in whole seconds, or NEVER_EXPIRES
    """
    if ttl is None or ttl <= 0:
        return NEVER_EXPIRES
    if now is None:
        now = time.time()
    return int(now) + int(ttl)


def is_live(expiry: int | None, now: float | None = None) -> bool:
    """Return True if a record with this expiry is visible at `now`."""
    if not expiry:
        return True
    if now is None:
        now = time.time()
    return expiry >= int(now)
