"""Approval workflow: submissions, payment status, review stages, surveys.

Every mutation goes to the record store first. The local cache and the
survey queue change only after the store accepted the write, so a failed
call leaves the local view exactly as it was and the caller may simply try
again. Nothing here retries on its own.
"""
import logging
from typing import List, Optional

from reimburse_assistant.config import Settings
from reimburse_assistant.services.record_store import RecordStore

from .cache import RecordCache
from .exceptions import (
    AuthorizationFailure,
    NoActiveSurveyError,
    RecordNotFoundError,
    StatusTransitionError,
)
from .models import (
    InvoiceData,
    ReimbursementStatus,
    SubmissionRecord,
    SurveyType,
    UserProfile,
    new_submission_row,
    store_fields,
)
from .status import check_transition
from .survey import PAID_TOGGLE_SURVEYS, SurveyQueue, submission_surveys
from .validation import check_submission

logger = logging.getLogger(__name__)

MAX_PAID_EDITS = 1


class ApprovalWorkflow:
    """Coordinates record mutations with the cache and survey queue."""

    def __init__(
        self,
        store: RecordStore,
        settings: Settings,
        cache: Optional[RecordCache] = None,
        survey: Optional[SurveyQueue] = None
    ) -> None:
        self.store = store
        self.settings = settings
        self.cache = cache if cache is not None else RecordCache()
        self.survey = survey if survey is not None else SurveyQueue()

    def _get(self, record_id: str) -> SubmissionRecord:
        record = self.cache.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    async def refresh(self, owner_id: Optional[str] = None) -> List[SubmissionRecord]:
        """Refetch the record table, scoped to owner_id unless None."""
        records = await self.store.query(owner_id)
        self.cache.replace(records)
        return self.cache.records()

    async def create_submission(
        self,
        invoice: InvoiceData,
        owner: UserProfile,
        is_paid: bool
    ) -> SubmissionRecord:
        """Validate and persist a new record, then queue its compliance questions."""
        check_submission(invoice, self.cache.records(), self.settings.org_name, self.settings.org_tax_id)

        record = await self.store.insert(new_submission_row(invoice, owner, is_paid))
        self.cache.prepend(record)
        self.survey.start(record.id, submission_surveys(is_paid))
        logger.info(
            f"[WORKFLOW] Submitted invoice {record.invoice_number} as record {record.id} "
            f"(paid={is_paid}, owner={owner.student_id})"
        )
        return record

    async def toggle_paid_status(self, record_id: str, privileged: bool = False) -> SubmissionRecord:
        """Flip is_paid once for submitters, any number of times for privileged actors."""
        record = self._get(record_id)
        if record.paid_edit_count >= MAX_PAID_EDITS and not privileged:
            raise AuthorizationFailure(
                "change payment status",
                f"payment status of record {record_id} can only be changed once"
            )

        becoming_paid = not record.is_paid
        changes = {"is_paid": becoming_paid, "paid_edit_count": record.paid_edit_count + 1}
        match = None
        if self.settings.conditional_updates:
            match = {"paidEditCount": record.paid_edit_count}
        await self.store.update(record_id, store_fields(**changes), match=match)

        if becoming_paid:
            self.survey.start(record_id, PAID_TOGGLE_SURVEYS)
        updated = self.cache.apply(record_id, **changes)
        logger.info(
            f"[WORKFLOW] Record {record_id} marked {'paid' if becoming_paid else 'unpaid'} "
            f"(edit {updated.paid_edit_count}, privileged={privileged})"
        )
        return updated

    async def advance_status(
        self,
        record_id: str,
        new_status: ReimbursementStatus | str,
        reason: Optional[str] = None
    ) -> SubmissionRecord:
        """Move a record through the approval pipeline.

        A rejection needs a non-blank reason. Rejecting an already rejected
        record replaces its reason. Any other target clears the stored
        reason. Callers are expected to have checked privileges.
        """
        try:
            target = ReimbursementStatus(new_status)
        except ValueError as exc:
            raise StatusTransitionError("?", str(new_status), "unknown status") from exc

        record = self._get(record_id)
        if target == ReimbursementStatus.REJECTED:
            if reason is None or not reason.strip():
                raise StatusTransitionError(record.status.value, target.value, "a rejection reason is required")
            rejection_reason = reason.strip()
        else:
            rejection_reason = None
        re_rejection = target == ReimbursementStatus.REJECTED and record.status == ReimbursementStatus.REJECTED
        if not re_rejection:
            check_transition(record.status, target)

        changes = {"status": target, "rejection_reason": rejection_reason}
        await self.store.update(record_id, store_fields(**changes))
        updated = self.cache.apply(record_id, **changes)
        logger.info(f"[WORKFLOW] Record {record_id}: {record.status.value} -> {target.value}")
        return updated

    @property
    def current_question(self) -> Optional[SurveyType]:
        return self.survey.current

    async def answer_current(self, answer: bool) -> SubmissionRecord:
        """Record the answer to the front question and move to the next one."""
        question = self.survey.current
        record_id = self.survey.active_record_id
        if question is None or record_id is None:
            raise NoActiveSurveyError()

        record = self._get(record_id)
        answers = record.survey_answers.merged(question.answer_key, bool(answer))
        await self.store.update(record_id, store_fields(survey_answers=answers))

        updated = self.cache.apply(record_id, survey_answers=answers)
        self.survey.complete_current()
        logger.info(f"[SURVEY] Record {record_id}: {question.value} = {bool(answer)}")
        return updated
