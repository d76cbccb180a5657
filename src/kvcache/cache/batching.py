"""
kvcache — Batch Chunking

Splits multi-key operations into provider-sized chunks. Chunks are always
dispatched one after another by the caller; nothing here runs concurrently.
"""

from collections.abc import Iterable, Iterator
from itertools import islice
from typing import TypeVar

T = TypeVar("T")


def chunked(items: Iterable[T], size: int) -> Iterator[list[T]]:
    """
    Yield consecutive lists of at most `size` items, preserving order.

    Args:
        items: Items to partition
        size: Maximum chunk length (must be >= 1)

    Raises:
        ValueError: If size is smaller than 1
    """
    if size < 1:
        raise ValueError(f"chunk size must be >= 1, got {size}")

    iterator = iter(items)
    while chunk := list(islice(iterator, size)):
        yield chunk


def unique_in_order(keys: Iterable[T]) -> list[T]:
    """Drop duplicate keys, keeping the first occurrence."""
    return list(dict.fromkeys(keys))
