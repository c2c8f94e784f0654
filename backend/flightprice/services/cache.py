"""
JSON-file cache of resolved prices keyed by a query fingerprint.

The whole store is one JSON document. Every write goes straight to disk via a
temp file and ``os.replace`` so a crash never leaves a half-written store.
A single writer process is assumed; the last write wins.
"""
import hashlib
import json
import logging
import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, Optional

from flightprice.errors import CacheCorruptionError
from flightprice.models import CacheEntry, FlightQuery, FlightPriceResult

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=6)


def create_cache_key(query: FlightQuery, version_tag: str) -> str:
    """SHA-256 over the query fields plus a strategy version tag."""
    payload = json.dumps([
        query.origin,
        query.destination,
        query.outbound_date.isoformat(),
        query.return_date.isoformat() if query.return_date else "",
        version_tag,
    ])
    return hashlib.sha256(payload.encode()).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistentCache:
    def __init__(
        self,
        path: Path,
        ttl: timedelta = DEFAULT_TTL,
        training_mode: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.path = Path(path)
        self.ttl = ttl
        self.training_mode = training_mode
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = self._load()

    def _read_file(self) -> Dict[str, CacheEntry]:
        try:
            raw = json.loads(self.path.read_bytes().decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise CacheCorruptionError(f"{self.path}: {e}", stage="cache") from e
        if not isinstance(raw, dict):
            raise CacheCorruptionError(f"{self.path}: expected a JSON object", stage="cache")
        try:
            return {key: CacheEntry.from_dict(value) for key, value in raw.items()}
        except (KeyError, TypeError, ValueError, ArithmeticError) as e:
            raise CacheCorruptionError(f"{self.path}: bad entry ({e})", stage="cache") from e

    def _load(self) -> Dict[str, CacheEntry]:
        if not self.path.exists():
            logger.info(f"No cache file at {self.path}, starting empty")
            return {}
        try:
            entries = self._read_file()
        except CacheCorruptionError as e:
            logger.warning(f"Discarding unreadable cache: {e}")
            return {}
        logger.info(f"Loaded {len(entries)} cache entries from {self.path}")
        return entries

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {key: entry.to_dict() for key, entry in self._entries.items()}
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self.ttl

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return a fresh entry, or None. Training mode always misses."""
        if self.training_mode:
            return None
        entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry

    def should_fetch(self, key: str) -> bool:
        return self.get(key) is None

    def put(self, key: str, result: FlightPriceResult) -> CacheEntry:
        entry = CacheEntry(
            price=result.price,
            timestamp=self._clock(),
            source=result.source,
            url=result.search_url,
            echoed_destination=result.echoed_destination,
            lowest_price=result.lowest_price,
        )
        self._entries[key] = entry
        self._flush()
        return entry

    def lookup(self, query: FlightQuery, version_tag: str) -> Optional[FlightPriceResult]:
        key = create_cache_key(query, version_tag)
        entry = self.get(key)
        if entry is None:
            logger.info(f"Cache miss for {query.label} [{version_tag}]")
            return None
        logger.info(f"Cache hit for {query.label} [{version_tag}]: ${entry.price}")
        return entry.to_result()

    def store(self, query: FlightQuery, version_tag: str, result: FlightPriceResult) -> CacheEntry:
        return self.put(create_cache_key(query, version_tag), result)

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, object]:
        fresh = sum(1 for entry in self._entries.values() if self.is_fresh(entry))
        return {
            "path": str(self.path),
            "entries": len(self._entries),
            "fresh": fresh,
            "training_mode": self.training_mode,
        }
