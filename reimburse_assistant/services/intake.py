"""Upload queue: files waiting for recognition, review and submission."""
import asyncio
import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from reimburse_assistant.core.exceptions import OcrFailure, RecordNotFoundError, ValidationFailure
from reimburse_assistant.core.models import ProcessingFile, ProcessingStatus, SubmissionRecord, UserProfile
from reimburse_assistant.core.validation import is_duplicate, is_payee_valid
from reimburse_assistant.core.workflow import ApprovalWorkflow

from .ocr import OcrClient

logger = logging.getLogger(__name__)


class IntakeSession:
    """Tracks uploaded files until they are submitted or removed.

    Each file is recognized independently; a failure on one file is stored
    on that file and never stops the others.
    """

    def __init__(self, ocr: OcrClient, workflow: ApprovalWorkflow) -> None:
        self.ocr = ocr
        self.workflow = workflow
        self._files: Dict[str, ProcessingFile] = {}

    @property
    def files(self) -> List[ProcessingFile]:
        return list(self._files.values())

    def get(self, file_id: str) -> ProcessingFile:
        try:
            return self._files[file_id]
        except KeyError:
            raise RecordNotFoundError(file_id) from None

    def add(self, paths: Iterable[Path | str]) -> List[ProcessingFile]:
        added = []
        for path in paths:
            item = ProcessingFile(file_path=Path(path))
            self._files[item.id] = item
            added.append(item)
        logger.info(f"Queued {len(added)} file(s) for recognition")
        return added

    def remove(self, file_id: str) -> None:
        self._files.pop(file_id, None)

    def _update(self, item: ProcessingFile, **fields) -> ProcessingFile:
        """Store an updated copy of item, unless it was removed meanwhile."""
        current = self._files.get(item.id)
        updated = (current if current is not None else item).model_copy(update=fields)
        if current is None:
            logger.debug(f"{item.file_path.name} was removed while processing, result dropped")
        else:
            self._files[item.id] = updated
        return updated

    async def process(self, item: ProcessingFile) -> ProcessingFile:
        """Recognize one file and record the validation flags on it."""
        self._update(item, status=ProcessingStatus.PROCESSING, error=None)
        try:
            data = await self.ocr.extract(item.file_path)
        except OcrFailure as e:
            logger.warning(f"[OCR] {item.file_path.name} - {e.message}")
            return self._update(item, status=ProcessingStatus.ERROR, error=e.message or "识别失败")

        settings = self.workflow.settings
        return self._update(
            item,
            status=ProcessingStatus.COMPLETED,
            extracted_data=data,
            is_buyer_valid=is_payee_valid(data, settings.org_name, settings.org_tax_id),
            is_duplicate=is_duplicate(data, self.workflow.cache.records()),
        )

    async def process_all(
        self,
        items: Optional[Iterable[ProcessingFile]] = None,
        on_done: Optional[Callable[[ProcessingFile], None]] = None
    ) -> List[ProcessingFile]:
        """Recognize every pending file concurrently."""
        targets = list(items) if items is not None else [
            item for item in self._files.values() if item.status == ProcessingStatus.PENDING
        ]

        async def run(item: ProcessingFile) -> ProcessingFile:
            result = await self.process(item)
            if on_done is not None:
                on_done(result)
            return result

        return list(await asyncio.gather(*(run(item) for item in targets)))

    async def submit(self, file_id: str, owner: UserProfile, is_paid: bool) -> SubmissionRecord:
        """Turn a recognized file into a record; the file stays queued on failure."""
        item = self.get(file_id)
        if item.status != ProcessingStatus.COMPLETED or item.extracted_data is None:
            raise ValidationFailure("", "recognition", f"{item.file_path.name} has not been recognized")

        record = await self.workflow.create_submission(item.extracted_data, owner, is_paid)
        self.remove(file_id)
        return record
