import threading
import time
from collections.abc import Callable, Iterable

from bulk_editor.logging.logger import Log
from bulk_editor.metadata.base import BaseMetadataClient, normalize_identifiers
from bulk_editor.metadata.models import DocumentMetadata, LookupResult


class CachingMetadataClient(BaseMetadataClient):
    """Time-boxed cache in front of another metadata client.

    Only resolved records and missing markers are cached; errors are not.
    """

    _MISSING = object()

    def __init__(
        self,
        inner: BaseMetadataClient,
        *,
        ttl_seconds: float,
        log: Log,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._inner = inner
        self._ttl_seconds = ttl_seconds
        self._log = log
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, object]] = {}

    def lookup(self, identifiers: Iterable[str]) -> LookupResult:
        requested = normalize_identifiers(identifiers)
        if not requested:
            return LookupResult()

        cached: dict[str, object] = {}
        uncached: list[str] = []
        now = self._clock()
        with self._lock:
            for identifier in requested:
                entry = self._entries.get(identifier.upper())
                if entry is not None and entry[0] > now:
                    cached[identifier] = entry[1]
                else:
                    uncached.append(identifier)

        fresh = self._inner.lookup(uncached) if uncached else LookupResult()
        if uncached:
            self._store(uncached, fresh)
        self._log.debug(f"Metadata cache: {len(cached)} hits, {len(uncached)} misses")
        return self._merge(requested, cached, fresh)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _store(self, identifiers: list[str], result: LookupResult) -> None:
        expires_at = self._clock() + self._ttl_seconds
        with self._lock:
            for identifier in identifiers:
                record = result.match(identifier)
                value: object = record if record is not None else self._MISSING
                self._entries[identifier.upper()] = (expires_at, value)

    def _merge(
        self,
        requested: list[str],
        cached: dict[str, object],
        fresh: LookupResult,
    ) -> LookupResult:
        merged = LookupResult(version=fresh.version, changes=fresh.changes)
        seen: set[int] = set()
        for identifier in requested:
            value = cached[identifier] if identifier in cached else fresh.match(identifier)
            if not isinstance(value, DocumentMetadata):
                merged.missing.append(identifier)
                continue
            merged.matches[identifier.upper()] = value
            if id(value) in seen:
                continue
            seen.add(id(value))
            if value.is_expired:
                merged.expired.append(value)
            else:
                merged.found.append(value)
        return merged
