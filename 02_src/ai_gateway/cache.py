"""
Response cache for the AI gateway.

Maps a request fingerprint to a previously computed response with an
absolute expiry. Expired entries are purged lazily on lookup.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from .models import Response

logger = logging.getLogger(__name__)


class ResponseCache:
    """
    TTL cache for complete, non-streaming responses.

    TTL is fixed per deployment. Concurrent puts for the same fingerprint are
    last-write-wins.
    """

    def __init__(
        self,
        ttl_seconds: float = 600.0,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            ttl_seconds: Lifetime of every entry (default 10 minutes)
            max_entries: Optional bound; entry closest to expiry is evicted first
            clock: Monotonic clock, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._store: Dict[str, Tuple[Response, float]] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[Response]:
        """
        Look up a response.

        Args:
            fingerprint: Request fingerprint

        Returns:
            Cached Response, or None on miss or expiry
        """
        with self._lock:
            entry = self._store.get(fingerprint)
            if entry is None:
                return None

            response, expires_at = entry
            if self._clock() >= expires_at:
                del self._store[fingerprint]
                logger.debug(f"Cache entry expired: {fingerprint[:12]}")
                return None

            return response

    def put(self, fingerprint: str, response: Response):
        """
        Store a response under fingerprint.

        Args:
            fingerprint: Request fingerprint
            response: Response to cache
        """
        with self._lock:
            if (
                self.max_entries
                and fingerprint not in self._store
                and len(self._store) >= self.max_entries
            ):
                oldest = min(self._store.items(), key=lambda kv: kv[1][1])[0]
                self._store.pop(oldest, None)

            self._store[fingerprint] = (response, self._clock() + self.ttl_seconds)

    def purge_expired(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expires_at) in self._store.items() if expires_at <= now]
            for key in expired:
                del self._store[key]

        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def clear(self):
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
