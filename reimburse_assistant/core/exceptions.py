"""Exception hierarchy for the reimbursement assistant."""

from pathlib import Path
from typing import Any, Optional


class ReimbursementError(Exception):
    """Base exception for all reimbursement assistant errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationFailure(ReimbursementError):
    """Raised when an invoice breaks an organizational rule and cannot be submitted."""

    def __init__(self, invoice_number: str, rule: str, message: str) -> None:
        self.invoice_number = invoice_number
        self.rule = rule
        super().__init__(message, {"invoice_number": invoice_number, "rule": rule})


class PayeeMismatchError(ValidationFailure):
    """Raised when the invoice buyer is not the registered organization."""

    def __init__(self, invoice_number: str, expected_name: str, expected_tax_id: str) -> None:
        self.expected_name = expected_name
        self.expected_tax_id = expected_tax_id
        message = (
            f"Invoice {invoice_number} has the wrong buyer: "
            f"expected '{expected_name}' with tax id {expected_tax_id}"
        )
        super().__init__(invoice_number, "payee", message)


class DuplicateInvoiceError(ValidationFailure):
    """Raised when the invoice number was already submitted."""

    def __init__(self, invoice_number: str) -> None:
        message = f"Invoice number {invoice_number} already exists"
        super().__init__(invoice_number, "duplicate", message)


class OcrFailure(ReimbursementError):
    """Raised when invoice recognition fails for a single file."""

    def __init__(
        self,
        file_path: Path | str,
        message: str,
        original_error: Optional[Exception] = None
    ) -> None:
        self.file_path = Path(file_path)
        self.original_error = original_error

        full_message = f"Recognition failed for {self.file_path.name}: {message}"
        if original_error:
            full_message += f" (Original error: {original_error})"

        super().__init__(full_message, {"file_path": str(self.file_path)})


class UploadRejectedError(OcrFailure):
    """Raised when an uploaded file cannot be sent for recognition."""

    def __init__(self, file_path: Path | str, reason: str) -> None:
        self.reason = reason
        super().__init__(file_path, reason)


class StoreFailure(ReimbursementError):
    """Raised when the remote record store rejects or fails a call."""

    def __init__(
        self,
        operation: str,
        message: str,
        original_error: Optional[Exception] = None
    ) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"{operation} failed: {message}", {"operation": operation})


class AuthorizationFailure(ReimbursementError):
    """Raised when the acting user is not allowed to perform an action."""

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(f"Not allowed to {action}: {reason}", {"action": action})


class WorkflowError(ReimbursementError):
    """Base class for approval workflow errors."""


class StatusTransitionError(WorkflowError):
    """Raised when a status change is not permitted or is missing required input."""

    def __init__(self, source: str, target: str, reason: str) -> None:
        self.source = source
        self.target = target
        super().__init__(
            f"Cannot move record from '{source}' to '{target}': {reason}",
            {"source": source, "target": target}
        )


class RecordNotFoundError(WorkflowError):
    """Raised when a record id is not in the local view."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record {record_id} not found", {"record_id": record_id})


class NoActiveSurveyError(WorkflowError):
    """Raised when a survey answer arrives with no question pending."""

    def __init__(self) -> None:
        super().__init__("No compliance question is pending")


class ConfigurationError(ReimbursementError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, setting_name: str, issue: str) -> None:
        message = f"Configuration error for '{setting_name}': {issue}"
        super().__init__(message, {"setting_name": setting_name, "issue": issue})
        self.setting_name = setting_name
        self.issue = issue


__all__ = [
    "ReimbursementError",
    "ValidationFailure",
    "PayeeMismatchError",
    "DuplicateInvoiceError",
    "OcrFailure",
    "UploadRejectedError",
    "StoreFailure",
    "AuthorizationFailure",
    "WorkflowError",
    "StatusTransitionError",
    "RecordNotFoundError",
    "NoActiveSurveyError",
    "ConfigurationError",
]
