"""Local view of the remote record table.

Two tiers are kept: the snapshot from the last full fetch, and optimistic
per-field patches applied after mutations the store accepted. The local
projection is the snapshot with the patches laid over it, last write winning
per field. A new fetch replaces the snapshot and drops the patches.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from .models import SubmissionRecord

logger = logging.getLogger(__name__)


class RecordCache:
    """Snapshot plus optimistic patches, ordered newest first."""

    def __init__(self, records: Optional[Iterable[SubmissionRecord]] = None) -> None:
        self._snapshot: List[SubmissionRecord] = []
        self._patches: Dict[str, Dict[str, Any]] = {}
        self._inserted: List[SubmissionRecord] = []
        if records is not None:
            self.replace(records)

    def replace(self, records: Iterable[SubmissionRecord]) -> None:
        """Install a freshly fetched snapshot."""
        self._snapshot = list(records)
        self._patches.clear()
        self._inserted.clear()
        logger.debug(f"Cache snapshot replaced with {len(self._snapshot)} record(s)")

    def prepend(self, record: SubmissionRecord) -> None:
        """Add a record the store just created."""
        self._inserted.insert(0, record)

    def apply(self, record_id: str, **fields: Any) -> SubmissionRecord:
        """Overlay fields on a record, keeping any fields not named."""
        current = self.get(record_id)
        if current is None:
            raise KeyError(record_id)
        patch = self._patches.setdefault(record_id, {})
        patch.update(fields)
        return current.with_changes(**fields)

    @property
    def snapshot(self) -> List[SubmissionRecord]:
        return list(self._snapshot)

    def records(self) -> List[SubmissionRecord]:
        """The local projection, newest first."""
        projected = []
        for record in self._inserted + self._snapshot:
            patch = self._patches.get(record.id)
            projected.append(record.with_changes(**patch) if patch else record)
        return projected

    def get(self, record_id: str) -> Optional[SubmissionRecord]:
        for record in self._inserted + self._snapshot:
            if record.id == record_id:
                patch = self._patches.get(record_id)
                return record.with_changes(**patch) if patch else record
        return None

    def visible_to(self, owner_id: Optional[str]) -> List[SubmissionRecord]:
        """Records owned by owner_id, or every record when owner_id is None."""
        records = self.records()
        if owner_id is None:
            return records
        return [record for record in records if record.student_id == owner_id]

    def __len__(self) -> int:
        return len(self._inserted) + len(self._snapshot)
