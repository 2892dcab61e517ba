"""
Minimal in-memory cache for the most recent comparison result.
"""
import threading
import time
from typing import Any, Optional


class ComparisonCache:
    """
    Single-slot cache holding the latest comparison result (a list of
    ComparisonItem or a ComparisonFailure). Every set overwrites the previous
    value; the last writer wins.
    """

    def __init__(self):
        """Initialize cache with an empty slot."""
        self._lock = threading.Lock()
        self._value = None
        self._stored_at = None

    def get(self) -> Optional[Any]:
        """
        Retrieve the cached result.

        Returns:
            The most recently stored value, or None if nothing was stored.
        """
        with self._lock:
            return self._value

    def set(self, value: Any) -> None:
        """
        Store a result, replacing whatever was cached before.

        Args:
            value: Comparison result to cache.
        """
        with self._lock:
            self._value = value
            self._stored_at = time.time()

    def clear(self) -> None:
        """Empty the slot."""
        with self._lock:
            self._value = None
            self._stored_at = None

    @property
    def stored_at(self) -> Optional[float]:
        """Unix timestamp of the last set, or None."""
        return self._stored_at


# Module-level instance
comparison_cache = ComparisonCache()
