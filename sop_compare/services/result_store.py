"""
Storage for finished comparison results.

Results are kept per user so a reader can fetch a specific run by id or the
latest run for a user. This in-memory store backs the HTTP layer; anything
offering the same three methods can replace it.
"""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)


class InMemoryResultStore:
    """Thread-safe result store keyed by generated result id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = {}

    def save(self, user_id: str, sop_paths: Sequence[str], guideline_paths: Sequence[str],
             results: List[Dict[str, Any]]) -> str:
        """
        Save a comparison run.

        Returns:
            The id of the stored record.
        """
        if not user_id:
            raise ValueError("user_id is required")

        result_id = uuid.uuid4().hex
        record = {
            'id': result_id,
            'userId': user_id,
            'sopPaths': list(sop_paths),
            'guidelinePaths': list(guideline_paths),
            'results': list(results),
            'createdAt': datetime.now(timezone.utc),
        }
        with self._lock:
            self._records[result_id] = record

        logger.info(f"Saved comparison results with ID: {result_id} for user {user_id}")
        return result_id

    def load_by_id(self, result_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._records.get(result_id)

    def load_recent_by_user(self, user_id: str) -> List[Dict[str, Any]]:
        """All records for a user, newest first."""
        # Insertion order is save order
        with self._lock:
            return [r for r in reversed(list(self._records.values())) if r['userId'] == user_id]


# Module-level instance
result_store = InMemoryResultStore()
