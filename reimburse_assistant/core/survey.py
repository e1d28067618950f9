"""FIFO of pending compliance questions for a single record."""
import logging
from collections import deque
from typing import Iterable, Optional

from .models import SurveyType

logger = logging.getLogger(__name__)


def submission_surveys(is_paid: bool) -> tuple[SurveyType, ...]:
    """Questions asked right after a new submission."""
    if is_paid:
        return (SurveyType.DOUBLE_SIGNATURE, SurveyType.PAYMENT_RECORD)
    return (SurveyType.DOUBLE_SIGNATURE,)


PAID_TOGGLE_SURVEYS = (SurveyType.PAYMENT_RECORD,)


class SurveyQueue:
    """Pending questions tied to one active record.

    Only one session exists at a time. Starting a new session replaces the
    queue wholesale, so questions still pending for another record are
    dropped rather than resumed later.
    """

    def __init__(self) -> None:
        self._queue: deque[SurveyType] = deque()
        self._active_record_id: Optional[str] = None

    def start(self, record_id: str, items: Iterable[SurveyType]) -> None:
        if self._queue and self._active_record_id != record_id:
            logger.warning(
                f"[SURVEY] Discarding {len(self._queue)} unanswered question(s) "
                f"for record {self._active_record_id} to start record {record_id}"
            )
        self._queue = deque(SurveyType(item) for item in items)
        self._active_record_id = record_id if self._queue else None
        logger.debug(f"[SURVEY] Session for {record_id}: {[item.value for item in self._queue]}")

    @property
    def active_record_id(self) -> Optional[str]:
        return self._active_record_id

    @property
    def current(self) -> Optional[SurveyType]:
        """Front of the queue, the only question that may be answered."""
        return self._queue[0] if self._queue else None

    @property
    def pending(self) -> tuple[SurveyType, ...]:
        return tuple(self._queue)

    @property
    def is_active(self) -> bool:
        return self._active_record_id is not None and bool(self._queue)

    def complete_current(self) -> Optional[SurveyType]:
        """Dequeue the front question; the session ends when none remain."""
        if not self._queue:
            return None
        answered = self._queue.popleft()
        if not self._queue:
            logger.debug(f"[SURVEY] Session for {self._active_record_id} complete")
            self._active_record_id = None
        return answered

    def clear(self) -> None:
        self._queue.clear()
        self._active_record_id = None
