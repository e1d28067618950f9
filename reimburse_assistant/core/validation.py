"""Organizational rules an invoice must pass before submission."""
from typing import Iterable

from .exceptions import DuplicateInvoiceError, PayeeMismatchError
from .models import InvoiceData, SubmissionRecord


def normalize_invoice_number(value: str) -> str:
    return (value or "").strip().upper()


def is_payee_valid(invoice: InvoiceData, org_name: str, org_tax_id: str) -> bool:
    """Check that the invoice names the organization as buyer.

    The buyer name must contain the organization name, and the buyer tax id
    must contain the organization tax id, both trimmed and case-insensitive.
    """
    name_matches = org_name in (invoice.buyer_name or "")
    tax_id_matches = org_tax_id.strip().upper() in (invoice.buyer_tax_id or "").strip().upper()
    return name_matches and tax_id_matches


def is_duplicate(invoice: InvoiceData, existing_records: Iterable[SubmissionRecord]) -> bool:
    """Check the invoice number against the records currently known locally.

    This is not a uniqueness constraint in the store: two clients submitting
    the same number at once can both pass.
    """
    candidate = normalize_invoice_number(invoice.invoice_number)
    return any(
        normalize_invoice_number(record.invoice_number) == candidate
        for record in existing_records
    )


def check_submission(
    invoice: InvoiceData,
    existing_records: Iterable[SubmissionRecord],
    org_name: str,
    org_tax_id: str
) -> None:
    """Raise a ValidationFailure if the invoice may not be submitted."""
    if not is_payee_valid(invoice, org_name, org_tax_id):
        raise PayeeMismatchError(invoice.invoice_number, org_name, org_tax_id)
    if is_duplicate(invoice, existing_records):
        raise DuplicateInvoiceError(invoice.invoice_number)
