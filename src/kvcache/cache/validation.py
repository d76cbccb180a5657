"""
kvcache — Cache Input Validation

Pure checks for keys, TTLs and values, shared by every backend.
The ensure_* helpers raise the typed errors from kvcache.errors and must run
before a backend touches its storage medium.

TTL policy (uniform across backends):
- None or 0 -> record never expires
- positive int or timedelta -> record expires after that many seconds
  (timedeltas round up to whole seconds; a positive one never becomes 0)
- anything else (negative, float, str, bool) -> InvalidTTLError
"""

import math
import re
from collections.abc import Iterable, Mapping
from datetime import timedelta
from typing import Any

from ..errors import InvalidBatchInputError, InvalidKeyError, InvalidTTLError, InvalidValueError

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_key(key: Any) -> bool:
    """Return True if key is a non-empty string of [A-Za-z0-9_-]."""
    return isinstance(key, str) and _KEY_PATTERN.fullmatch(key) is not None


def is_valid_ttl(ttl: Any) -> bool:
    """Return True if ttl is None, a non-negative int or a non-negative timedelta."""
    if ttl is None:
        return True
    if isinstance(ttl, timedelta):
        return ttl.total_seconds() >= 0
    # bool is an int subclass; True/False are not durations
    if isinstance(ttl, bool) or not isinstance(ttl, int):
        return False
    return ttl >= 0


def is_valid_value(value: Any) -> bool:
    """Return False for None and for sized values of length zero."""
    if value is None:
        return False
    try:
        return len(value) > 0
    except TypeError:
        return True


def ttl_to_seconds(ttl: int | timedelta | None) -> int | None:
    """Normalize a validated TTL to whole seconds (None stays None); timedeltas round up."""
    if isinstance(ttl, timedelta):
        return math.ceil(ttl.total_seconds())
    return ttl


def ensure_valid_key(key: Any) -> str:
    """Raise InvalidKeyError unless key is valid; return it unchanged."""
    if not is_valid_key(key):
        raise InvalidKeyError(key)
    return key


def ensure_valid_ttl(ttl: Any) -> int | None:
    """Raise InvalidTTLError unless ttl is valid; return it in seconds."""
    if not is_valid_ttl(ttl):
        raise InvalidTTLError(ttl)
    return ttl_to_seconds(ttl)


def ensure_valid_value(key: str, value: Any) -> Any:
    """Raise InvalidValueError if value is None or empty."""
    if not is_valid_value(value):
        raise InvalidValueError(key, value)
    return value


def ensure_valid_keys(keys: Any) -> list[str]:
    """
    Validate the key collection of a multi-key operation.

    Args:
        keys: Iterable of keys (a bare string is rejected)

    Returns:
        The keys as a list, in input order

    Raises:
        InvalidBatchInputError: If keys is not an iterable or is empty
        InvalidKeyError: If any key is invalid
    """
    if isinstance(keys, (str, bytes)) or not isinstance(keys, Iterable):
        raise InvalidBatchInputError(details={"keys_type": type(keys).__name__})

    key_list = list(keys)
    if not key_list:
        raise InvalidBatchInputError("Keys cannot be empty.")

    for key in key_list:
        ensure_valid_key(key)

    return key_list


def ensure_valid_items(values: Any) -> list[tuple[str, Any]]:
    """
    Validate the key/value input of set_multiple.

    Accepts a mapping or an iterable of (key, value) pairs. Every key is
    checked before anything is written.

    Raises:
        InvalidBatchInputError: If values is neither a mapping nor pairs
        InvalidKeyError: If any key is invalid
    """
    if isinstance(values, Mapping):
        items = list(values.items())
    elif isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
        raise InvalidBatchInputError(
            "Values must be a mapping of key to value.",
            details={"values_type": type(values).__name__},
        )
    else:
        try:
            items = [(k, v) for k, v in values]
        except (TypeError, ValueError) as e:
            raise InvalidBatchInputError(
                "Values must be a mapping or an iterable of (key, value) pairs.",
                details={"error": str(e)},
            ) from e

    for key, _ in items:
        ensure_valid_key(key)

    return items
