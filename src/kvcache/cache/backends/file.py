"""
kvcache — Filesystem Cache Backend

Stores each record as its own file, `<cache_dir>/<key>`, holding a pickled
{"value": ..., "expiry": ...} record.

Writes go to a temporary file in the same directory which is then renamed
over the destination, so readers never see a half-written record. Two
concurrent writers to one key still race; the last rename wins.

Records are unpickled on read, so anyone who can write into cache_dir can run
code in the reading process. The directory is created owner-only (0o700);
never point cache_dir at a location other users can write to.

Example:
    cache = FileCacheBackend("/var/cache/myapp")
    cache.set("greeting", {"msg": "hello"}, ttl=60)
    cache.get("greeting")
"""

import logging
import os
import tempfile
from datetime import timedelta
from pathlib import Path
from typing import Any

from .. import serialization
from ..expiry import compute_expiry, is_live
from ..interface import CacheInterface
from ..validation import ensure_valid_key, ensure_valid_ttl

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = "/tmp/kvcache"
DIR_MODE = 0o700


class FileCacheBackend(CacheInterface):
    """
    Filesystem cache backend with atomic writes and lazy expiry.

    Notes:
    - Keys map directly to file names; the key syntax check keeps them
      free of path separators.
    - Expired files are removed when read.
    - clear() removes the directory itself; the next set() recreates it.
    """

    backend_name = "file"
    storage_errors = (OSError,)

    def __init__(self, cache_dir: str | os.PathLike[str] = DEFAULT_CACHE_DIR) -> None:
        """
        Initialize filesystem cache backend.

        Args:
            cache_dir: Directory holding one file per key (created if missing)
        """
        super().__init__()
        self.cache_dir = Path(cache_dir)

        with self._storage_operation("init", path=str(self.cache_dir)):
            self._ensure_dir()

    def _ensure_dir(self) -> None:
        self.cache_dir.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.cache_dir / key

    def _read_record(self, path: Path) -> dict[str, Any] | None:
        """Load a record file; None if it is missing or unreadable as a record."""
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None

        try:
            record = serialization.loads(data)
        except Exception as e:  # unpickling malformed data can raise anything
            logger.warning(
                "Ignoring corrupt cache file %s: %s",
                path,
                e,
                extra={"path": str(path), "error": str(e)},
            )
            return None

        if not isinstance(record, dict) or "value" not in record:
            logger.warning("Ignoring malformed cache file %s", path, extra={"path": str(path)})
            return None

        return record

    def _load_live(self, key: str) -> tuple[bool, Any]:
        """Return (found, value); unlink the file if its record has expired."""
        path = self._path(key)
        record = self._read_record(path)
        if record is None:
            return False, None

        if not is_live(record.get("expiry", 0)):
            path.unlink(missing_ok=True)
            logger.debug("Removed expired cache file %s", path)
            return False, None

        return True, record["value"]

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve value from its file."""
        ensure_valid_key(key)

        with self._storage_operation("get", key=key):
            found, value = self._load_live(key)

        if not found:
            self._misses += 1
            return default

        self._hits += 1
        return value

    def set(self, key: str, value: Any, ttl: int | timedelta | None = None) -> bool:
        """Atomically write the record for key."""
        ensure_valid_key(key)
        seconds = ensure_valid_ttl(ttl)

        payload = serialization.dumps({"value": value, "expiry": compute_expiry(seconds)})

        with self._storage_operation("set", key=key):
            self._ensure_dir()
            fd, tmp_name = tempfile.mkstemp(prefix=f"{key}.", suffix=".tmp", dir=self.cache_dir)
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(payload)
                os.replace(tmp_name, self._path(key))
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        self._sets += 1
        return True

    def delete(self, key: str) -> bool:
        """Delete the file for key. Missing files are not an error."""
        ensure_valid_key(key)

        with self._storage_operation("delete", key=key):
            try:
                self._path(key).unlink()
            except FileNotFoundError:
                return True

        self._deletes += 1
        return True

    def has(self, key: str) -> bool:
        """Check if key has a live record."""
        ensure_valid_key(key)

        with self._storage_operation("has", key=key):
            found, _ = self._load_live(key)
        return found

    def clear(self) -> bool:
        """
        Remove every file in the cache directory, then the directory itself.

        Raises:
            CacheStorageError: If the directory is already gone, or a
                concurrent writer added a file before it could be removed
        """
        with self._storage_operation("clear", path=str(self.cache_dir)):
            removed = 0
            for entry in self.cache_dir.iterdir():
                entry.unlink()
                removed += 1
            self.cache_dir.rmdir()

        self._deletes += removed
        logger.info("Cleared %d files from file cache %s", removed, self.cache_dir)
        return True

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        stats = self._base_stats()
        stats["cache_dir"] = str(self.cache_dir)
        stats["size"] = sum(1 for _ in self.cache_dir.glob("*")) if self.cache_dir.is_dir() else 0
        return stats
