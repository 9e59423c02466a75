"""In-memory persistence for generation records."""

import logging
from threading import Lock
from typing import Optional, List, Dict, Any

from thumbforge.core.errors import RecordImmutableError
from thumbforge.core.models import GenerationRecord, GenerationStatus

logger = logging.getLogger(__name__)


class GenerationStore:
    """Stores the latest version of each generation record.

    Saving is read-your-writes: ``get`` immediately returns what was saved.
    Once a record is stored with a terminal status, later saves for the same
    id are rejected. Records are copied on the way in and out; callers never
    hold the stored version.
    """

    def __init__(self):
        self._records: Dict[str, GenerationRecord] = {}
        self._history: Dict[str, List[GenerationStatus]] = {}
        self._lock = Lock()

    def save(self, record: GenerationRecord) -> GenerationRecord:
        """Persist a record version.

        Raises:
            RecordImmutableError: If the stored version is already terminal
        """
        with self._lock:
            existing = self._records.get(record.id)
            if existing is not None and existing.is_terminal:
                raise RecordImmutableError(record.id, existing.status.value)
            self._records[record.id] = record.model_copy(deep=True)
            self._history.setdefault(record.id, []).append(record.status)
        logger.debug(f"Saved generation {record.id} ({record.status.value})")
        return record

    def get(self, record_id: str) -> Optional[GenerationRecord]:
        with self._lock:
            record = self._records.get(record_id)
            return record.model_copy(deep=True) if record else None

    def get_status_history(self, record_id: str) -> List[GenerationStatus]:
        """Every status the record was saved with, in order."""
        with self._lock:
            return list(self._history.get(record_id, []))

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[GenerationRecord]:
        """A user's records, newest first."""
        with self._lock:
            records = [r.model_copy(deep=True) for r in self._records.values() if r.user_id == user_id]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit] if limit is not None else records

    def get_stats(self, user_id: str) -> Dict[str, Any]:
        """Generation statistics for a user.

        Returns:
            Dictionary with total, completed and failed counts, the average
            quality score of completed generations and credits used
        """
        records = self.list_for_user(user_id)
        completed = [r for r in records if r.status == GenerationStatus.COMPLETED]
        failed = [r for r in records if r.status == GenerationStatus.FAILED]
        scores = [r.quality.overall_score for r in completed if r.quality is not None]

        return {
            "total_generations": len(records),
            "completed": len(completed),
            "failed": len(failed),
            "average_quality": round(sum(scores) / len(scores), 1) if scores else 0.0,
            "credits_used": sum(r.credits_charged for r in completed),
        }
