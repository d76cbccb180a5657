"""
kvcache — Cache Backends

Exports the backends that need no optional client library.

The shared (redis) and DynamoDB (boto3) backends are imported from their
own modules, or lazy-loaded via factory.py.
"""

from .file import FileCacheBackend
from .memory import MemoryCacheBackend

__all__ = [
    "FileCacheBackend",
    "MemoryCacheBackend",
]
