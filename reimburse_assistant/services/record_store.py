"""Remote record table access through Supabase."""
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import AsyncClient, acreate_client

from reimburse_assistant.config import Settings
from reimburse_assistant.core.exceptions import StoreFailure
from reimburse_assistant.core.models import SubmissionRecord

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Create, read and update submission records in a shared table."""

    async def query(self, owner_id: Optional[str] = None) -> List[SubmissionRecord]:
        """Records newest first, limited to owner_id when given."""
        ...

    async def insert(self, row: Dict[str, Any]) -> SubmissionRecord:
        """Create a record and return it with its assigned id."""
        ...

    async def update(
        self,
        record_id: str,
        fields: Dict[str, Any],
        match: Optional[Dict[str, Any]] = None
    ) -> None:
        """Write fields to one record, optionally only if match still holds."""
        ...


def _error_message(exc: Exception) -> str:
    if isinstance(exc, APIError):
        return exc.message or str(exc)
    return str(exc)


class SupabaseRecordStore:
    """RecordStore backed by a Supabase (PostgREST) table."""

    def __init__(self, client: AsyncClient, table: str = "reimbursement_records") -> None:
        self._client = client
        self._table = table

    async def query(self, owner_id: Optional[str] = None) -> List[SubmissionRecord]:
        request = self._client.table(self._table).select("*")
        if owner_id is not None:
            request = request.eq("studentId", owner_id)
        try:
            response = await request.order("timestamp", desc=True).execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error(f"[STORE] Query on {self._table} failed: {_error_message(exc)}")
            raise StoreFailure("query", _error_message(exc), exc) from exc

        records = []
        for row in response.data or []:
            try:
                records.append(SubmissionRecord.model_validate(row))
            except ValidationError as exc:
                logger.warning(f"[STORE] Skipping malformed row {row.get('id')}: {exc.error_count()} error(s)")
        logger.info(f"[STORE] Fetched {len(records)} record(s) (owner={owner_id or 'all'})")
        return records

    async def insert(self, row: Dict[str, Any]) -> SubmissionRecord:
        try:
            response = await self._client.table(self._table).insert(row).execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error(f"[STORE] Insert into {self._table} failed: {_error_message(exc)}")
            raise StoreFailure("insert", _error_message(exc), exc) from exc

        if not response.data:
            logger.error(f"[STORE] Insert into {self._table} returned no row")
            raise StoreFailure("insert", "no record returned by the store")
        try:
            record = SubmissionRecord.model_validate(response.data[0])
        except ValidationError as exc:
            raise StoreFailure("insert", f"store returned an unreadable record: {exc}", exc) from exc
        logger.info(f"[STORE] Inserted record {record.id} (invoice {record.invoice_number})")
        return record

    async def update(
        self,
        record_id: str,
        fields: Dict[str, Any],
        match: Optional[Dict[str, Any]] = None
    ) -> None:
        request = self._client.table(self._table).update(fields).eq("id", record_id)
        for column, value in (match or {}).items():
            request = request.eq(column, value)
        try:
            response = await request.execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.error(f"[STORE] Update of {record_id} failed: {_error_message(exc)}")
            raise StoreFailure("update", _error_message(exc), exc) from exc

        if match and not response.data:
            logger.warning(f"[STORE] Conditional update of {record_id} matched no row: {match}")
            raise StoreFailure("update", "record was changed by someone else, refresh and retry")
        logger.info(f"[STORE] Updated record {record_id}: {sorted(fields)}")


async def create_record_store(settings: Settings) -> SupabaseRecordStore:
    """Connect to Supabase using the configured URL and key."""
    url = settings.require("supabase_url")
    key = settings.require("supabase_anon_key")
    client = await acreate_client(url, key)
    logger.debug(f"[STORE] Supabase client ready for {url}")
    return SupabaseRecordStore(client, settings.records_table)
