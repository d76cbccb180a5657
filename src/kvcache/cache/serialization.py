"""
kvcache — Value Serialization

Values are opaque to the cache, so backends that store bytes (filesystem,
shared-memory store, DynamoDB) pickle them. Anything picklable round-trips,
including datetimes and plain class instances.

Unpickling executes code chosen by whoever wrote the bytes. Only point a
backend at storage that untrusted parties cannot write to: a private cache
directory, a Redis instance and DynamoDB table reserved for this application.
"""

import pickle
from typing import Any

PICKLE_PROTOCOL = pickle.HIGHEST_PROTOCOL


def dumps(value: Any) -> bytes:
    """Serialize a value to bytes."""
    return pickle.dumps(value, protocol=PICKLE_PROTOCOL)


def loads(data: bytes) -> Any:
    """Deserialize bytes produced by dumps()."""
    return pickle.loads(data)
