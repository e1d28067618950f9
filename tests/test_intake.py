"""Tests for the upload queue: recognition, flags and submission."""
import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from factories import InMemoryRecordStore, make_invoice, make_row
from reimburse_assistant.core.exceptions import (
    DuplicateInvoiceError,
    OcrFailure,
    RecordNotFoundError,
    ValidationFailure,
)
from reimburse_assistant.core.models import ProcessingStatus
from reimburse_assistant.core.workflow import ApprovalWorkflow
from reimburse_assistant.services.intake import IntakeSession
from reimburse_assistant.services.ocr import OcrClient


class FakeOcr:
    """Returns a canned invoice or failure per file name."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    async def extract(self, file_path):
        file_path = Path(file_path)
        self.calls.append(file_path.name)
        result = self.results[file_path.name]
        if isinstance(result, Exception):
            raise result
        return result


@pytest_asyncio.fixture
async def workflow(settings):
    store = InMemoryRecordStore([make_row("1", invoiceNumber="DUP-001")])
    workflow = ApprovalWorkflow(store, settings)
    await workflow.refresh("6230000001")
    return workflow


@pytest.mark.asyncio
async def test_process_all_sets_flags_per_file(workflow):
    ocr = FakeOcr({
        "good.png": make_invoice(invoice_number="NEW-001"),
        "wrong_buyer.png": make_invoice(invoice_number="NEW-002", buyer_name="某公司"),
        "dup.png": make_invoice(invoice_number=" dup-001 "),
        "blurry.png": OcrFailure("blurry.png", "missing or invalid fields: amount"),
    })
    intake = IntakeSession(ocr, workflow)
    intake.add(["good.png", "wrong_buyer.png", "dup.png", "blurry.png"])
    done = []

    results = await intake.process_all(on_done=done.append)

    by_name = {item.file_path.name: item for item in results}
    assert len(done) == 4
    assert by_name["good.png"].is_submittable
    assert by_name["wrong_buyer.png"].is_buyer_valid is False
    assert by_name["dup.png"].is_duplicate is True
    assert by_name["blurry.png"].status == ProcessingStatus.ERROR
    assert "missing or invalid fields" in by_name["blurry.png"].error
    assert by_name["blurry.png"].extracted_data is None


@pytest.mark.asyncio
async def test_process_all_skips_files_already_processed(workflow):
    ocr = FakeOcr({"a.png": make_invoice(invoice_number="A"), "b.png": make_invoice(invoice_number="B")})
    intake = IntakeSession(ocr, workflow)
    first, = intake.add(["a.png"])
    await intake.process(first)

    intake.add(["b.png"])
    await intake.process_all()

    assert ocr.calls == ["a.png", "b.png"]


@pytest.mark.asyncio
async def test_submit_removes_file_and_starts_survey(workflow, owner):
    ocr = FakeOcr({"good.png": make_invoice(invoice_number="NEW-001")})
    intake = IntakeSession(ocr, workflow)
    item, = intake.add(["good.png"])
    await intake.process(item)

    record = await intake.submit(item.id, owner, is_paid=True)

    assert record.invoice_number == "NEW-001"
    assert intake.files == []
    assert workflow.cache.records()[0].id == record.id
    assert workflow.survey.active_record_id == record.id


@pytest.mark.asyncio
async def test_submit_duplicate_keeps_file(workflow, owner):
    ocr = FakeOcr({"dup.png": make_invoice(invoice_number="DUP-001")})
    intake = IntakeSession(ocr, workflow)
    item, = intake.add(["dup.png"])
    await intake.process(item)

    with pytest.raises(DuplicateInvoiceError):
        await intake.submit(item.id, owner, is_paid=False)

    assert [f.id for f in intake.files] == [item.id]
    assert workflow.store.mutations == []


@pytest.mark.asyncio
async def test_submit_unrecognized_file(workflow, owner):
    intake = IntakeSession(FakeOcr({}), workflow)
    item, = intake.add(["pending.png"])

    with pytest.raises(ValidationFailure, match="has not been recognized"):
        await intake.submit(item.id, owner, is_paid=False)


@pytest.mark.asyncio
async def test_unknown_file_id(workflow, owner):
    intake = IntakeSession(FakeOcr({}), workflow)
    with pytest.raises(RecordNotFoundError):
        await intake.submit("nope", owner, is_paid=False)
    intake.remove("nope")


@pytest.mark.asyncio
async def test_one_failing_file_does_not_affect_the_batch(workflow, settings, tmp_path):
    good = tmp_path / "good.png"
    good.write_bytes(b"\x89PNG good")
    offline = tmp_path / "offline.png"
    offline.write_bytes(b"\x89PNG offline")
    blurry = tmp_path / "blurry.png"
    blurry.write_bytes(b"\x89PNG blurry")

    async def generate_content(model, contents, config):
        data = contents[0].inline_data.data
        if data.endswith(b"offline"):
            raise httpx.ConnectError("connection refused")
        if data.endswith(b"blurry"):
            return MagicMock(text='{"invoiceNumber": "X"}')
        return MagicMock(text=json.dumps(make_invoice(invoice_number="NEW-9").model_dump(by_alias=True)))

    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(side_effect=generate_content)
    intake = IntakeSession(OcrClient(settings, client=client), workflow)
    intake.add([good, offline, blurry])

    results = await intake.process_all()

    by_name = {item.file_path.name: item for item in results}
    assert by_name["good.png"].status == ProcessingStatus.COMPLETED
    assert by_name["good.png"].extracted_data.invoice_number == "NEW-9"
    assert by_name["offline.png"].status == ProcessingStatus.ERROR
    assert "recognition service unreachable" in by_name["offline.png"].error
    assert by_name["blurry.png"].status == ProcessingStatus.ERROR
    assert "missing or invalid fields" in by_name["blurry.png"].error
    assert {item.id: item.status for item in intake.files} == {item.id: item.status for item in results}


@pytest.mark.asyncio
async def test_file_removed_during_recognition(workflow):
    started = asyncio.Event()
    release = asyncio.Event()

    class SlowOcr(FakeOcr):
        async def extract(self, file_path):
            if Path(file_path).name == "slow.png":
                started.set()
                await release.wait()
            return await super().extract(file_path)

    ocr = SlowOcr({"slow.png": make_invoice(invoice_number="S-1"), "fast.png": make_invoice(invoice_number="F-1")})
    intake = IntakeSession(ocr, workflow)
    slow, fast = intake.add(["slow.png", "fast.png"])

    batch = asyncio.create_task(intake.process_all())
    await started.wait()
    intake.remove(slow.id)
    release.set()
    results = await batch

    assert [item.status for item in results] == [ProcessingStatus.COMPLETED, ProcessingStatus.COMPLETED]
    assert [item.id for item in intake.files] == [fast.id]
    assert intake.get(fast.id).extracted_data.invoice_number == "F-1"
