"""Invoice field recognition through the Gemini API."""
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import httpx
from google import genai
from google.genai import errors, types
from pydantic import ValidationError

from reimburse_assistant.config import Settings
from reimburse_assistant.core.exceptions import OcrFailure
from reimburse_assistant.core.models import InvoiceData
from reimburse_assistant.core.uploads import validate_upload
from utilities.json_utils import try_parse_or_repair_json

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    "Output JSON ONLY. Required fields: invoiceNumber, sellerName, buyerName, sellerTaxId, "
    "buyerTaxId, sellerBankAccount, category, amount. For Buyer Name/TaxID, look for '购买方' "
    "or '付款人'. For Seller Bank, look for '开户行及账号'. Amount is the '合计' or '价税合计'."
)

INVOICE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "invoiceNumber": types.Schema(type=types.Type.STRING),
        "sellerName": types.Schema(type=types.Type.STRING),
        "buyerName": types.Schema(type=types.Type.STRING),
        "sellerTaxId": types.Schema(type=types.Type.STRING),
        "buyerTaxId": types.Schema(type=types.Type.STRING),
        "sellerBankAccount": types.Schema(type=types.Type.STRING),
        "category": types.Schema(type=types.Type.STRING),
        "amount": types.Schema(type=types.Type.NUMBER),
    },
    required=["invoiceNumber", "sellerName", "buyerName", "sellerTaxId", "buyerTaxId", "category", "amount"],
)


def create_genai_client(settings: Settings) -> "genai.Client":
    """Build a Gemini client from settings (API key or Vertex AI)."""
    return genai.Client(**settings.genai_client_kwargs)


class OcrClient:
    """Sends one invoice file to Gemini and returns its structured fields."""

    def __init__(self, settings: Settings, client: Optional["genai.Client"] = None) -> None:
        self.settings = settings
        self._client = client

    @property
    def client(self) -> "genai.Client":
        if self._client is None:
            self._client = create_genai_client(self.settings)
        return self._client

    def _build_config(self) -> types.GenerateContentConfig:
        # Plain field lookup: thinking adds latency and no accuracy here
        return types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=INVOICE_SCHEMA,
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )

    async def extract(self, file_path: Path | str) -> InvoiceData:
        """Recognize invoice fields in an image or PDF.

        Raises:
            OcrFailure: If the file is unusable, the API call fails, or the
                response is not valid JSON with all required fields
        """
        file_path = Path(file_path)
        mime_type = await asyncio.to_thread(validate_upload, file_path, self.settings.max_upload_size_mb)
        try:
            file_bytes = await asyncio.to_thread(file_path.read_bytes)
        except OSError as e:
            raise OcrFailure(file_path, "unable to read file", e)

        contents = [
            types.Part.from_bytes(data=file_bytes, mime_type=mime_type),
            EXTRACTION_PROMPT,
        ]

        logger.info(f"[OCR] {file_path.name} - Sending {len(file_bytes)} bytes ({mime_type}) to {self.settings.ocr_model}")
        try:
            response = await self.client.aio.models.generate_content(
                model=self.settings.ocr_model,
                contents=contents,
                config=self._build_config()
            )
        except errors.APIError as e:
            logger.error(f"[OCR] {file_path.name} - API error: {str(e)[:200]}")
            raise OcrFailure(file_path, f"recognition service error ({e.code})", e)
        except httpx.HTTPError as e:
            logger.error(f"[OCR] {file_path.name} - Transport error: {e!r}")
            raise OcrFailure(file_path, "recognition service unreachable", e)

        response_text = response.text or "{}"
        try:
            data = try_parse_or_repair_json(response_text)
        except json.JSONDecodeError as e:
            logger.error(f"[OCR] {file_path.name} - Unparsable response: {response_text[:120]}")
            raise OcrFailure(file_path, "failed to parse invoice data", e)

        try:
            invoice = InvoiceData.model_validate(data)
        except ValidationError as e:
            missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            logger.error(f"[OCR] {file_path.name} - Response missing or invalid fields: {missing}")
            raise OcrFailure(file_path, f"missing or invalid fields: {', '.join(missing)}")

        logger.info(f"[OCR] {file_path.name} - Success: invoice {invoice.invoice_number}, amount {invoice.amount}")
        return invoice
