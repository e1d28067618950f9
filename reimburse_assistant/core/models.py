"""Canonical data models for reimbursement records."""
import time
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ReimbursementStatus(str, Enum):
    """Approval pipeline statuses."""
    BOX = "box"
    HAN = "han"
    ASSISTANT = "assistant"
    OFFICE = "office"
    SUCCESS = "success"
    REJECTED = "rejected"


class SurveyType(str, Enum):
    """Compliance questions asked after submission or payment."""
    DOUBLE_SIGNATURE = "double_signature"
    PAYMENT_RECORD = "payment_record"

    @property
    def answer_key(self) -> str:
        """Field of SurveyAnswers this question fills."""
        return _SURVEY_ANSWER_KEYS[self]

    @property
    def question(self) -> str:
        return _SURVEY_QUESTIONS[self]


_SURVEY_ANSWER_KEYS = {
    SurveyType.DOUBLE_SIGNATURE: "has_double_signature",
    SurveyType.PAYMENT_RECORD: "has_payment_record",
}

_SURVEY_QUESTIONS = {
    SurveyType.DOUBLE_SIGNATURE: "发票是否由2名以上的老师签字？",
    SurveyType.PAYMENT_RECORD: "已付发票是否附上支付记录？",
}


class ProcessingStatus(str, Enum):
    """Lifecycle of an uploaded file before it becomes a record."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys at the store and OCR boundaries."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserProfile(CamelModel):
    """Identity of the person submitting invoices."""
    name: str = Field(..., description="Submitter name")
    student_id: str = Field(..., description="Student or staff number, the ownership key")
    supervisor: str = Field(default="", description="Supervisor name")
    phone: str = Field(default="", description="Contact phone number")

    @field_validator("name", "student_id")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        """Name and student id are required to log in."""
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class InvoiceData(CamelModel):
    """Structured invoice fields returned by recognition."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    invoice_number: str = Field(..., description="Invoice number")
    seller_name: str = Field(..., description="Seller name")
    buyer_name: str = Field(..., description="Buyer (payee) name, 购买方")
    seller_tax_id: str = Field(..., description="Seller taxpayer id")
    buyer_tax_id: str = Field(..., description="Buyer taxpayer id")
    seller_bank_account: str = Field(default="", description="Seller bank and account, 开户行及账号")
    category: str = Field(..., description="Goods or service category")
    amount: float = Field(..., ge=0, description="Total amount including tax, 价税合计")

    @field_validator("seller_bank_account", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class SurveyAnswers(CamelModel):
    """Answers to the compliance questions, keys absent until answered."""
    has_double_signature: Optional[bool] = None
    has_payment_record: Optional[bool] = None

    def merged(self, key: str, value: bool) -> "SurveyAnswers":
        """Return a copy with one answer overwritten and the others kept."""
        return self.model_copy(update={key: value})

    def to_dict(self) -> Dict[str, bool]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SubmissionRecord(CamelModel):
    """A reimbursement request as stored in the remote table."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    id: str = Field(..., description="Identifier assigned by the record store")

    # Invoice fields
    invoice_number: str
    seller_name: str
    buyer_name: str
    seller_tax_id: str
    buyer_tax_id: str
    seller_bank_account: str = ""
    category: str
    amount: float = Field(..., ge=0)

    # Submitter fields
    name: str
    student_id: str
    supervisor: str = ""
    phone: str = ""

    # Workflow fields
    is_paid: bool = False
    paid_edit_count: int = Field(default=0, ge=0)
    timestamp: int = Field(..., description="Creation instant in epoch milliseconds")
    status: ReimbursementStatus = ReimbursementStatus.BOX
    rejection_reason: Optional[str] = None
    survey_answers: SurveyAnswers = Field(default_factory=SurveyAnswers)

    @field_validator("survey_answers", mode="before")
    @classmethod
    def null_answers_to_empty(cls, v):
        return {} if v is None else v

    @field_validator("seller_bank_account", "supervisor", "phone", mode="before")
    @classmethod
    def null_text_to_empty(cls, v):
        return "" if v is None else v

    @property
    def invoice(self) -> InvoiceData:
        return InvoiceData.model_validate(self.model_dump(include=set(InvoiceData.model_fields)))

    @property
    def owner(self) -> UserProfile:
        return UserProfile.model_validate(self.model_dump(include=set(UserProfile.model_fields)))

    def with_changes(self, **fields: Any) -> "SubmissionRecord":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(fields)
        return SubmissionRecord.model_validate(data)

    def to_row(self) -> Dict[str, Any]:
        """Convert to the camelCase row sent to the record store (without id)."""
        row = self.model_dump(by_alias=True, mode="json", exclude={"id", "survey_answers"})
        row["surveyAnswers"] = self.survey_answers.to_dict()
        return row


def new_submission_row(invoice: InvoiceData, owner: UserProfile, is_paid: bool, timestamp: Optional[int] = None) -> Dict[str, Any]:
    """Build the row for a fresh submission awaiting its store-assigned id."""
    row = invoice.model_dump(by_alias=True)
    row.update(owner.model_dump(by_alias=True))
    row.update({
        "isPaid": is_paid,
        "timestamp": timestamp if timestamp is not None else now_ms(),
        "paidEditCount": 0,
        "status": ReimbursementStatus.BOX.value,
        "surveyAnswers": {},
    })
    return row


def store_fields(**fields: Any) -> Dict[str, Any]:
    """Translate snake_case record updates into store column values."""
    columns = {}
    for key, value in fields.items():
        if isinstance(value, SurveyAnswers):
            value = value.to_dict()
        elif isinstance(value, Enum):
            value = value.value
        columns[to_camel(key)] = value
    return columns


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class ProcessingFile(BaseModel):
    """An uploaded invoice file on its way to becoming a record."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:9])
    file_path: Path
    mime_type: str = ""
    status: ProcessingStatus = ProcessingStatus.PENDING
    extracted_data: Optional[InvoiceData] = None
    is_buyer_valid: Optional[bool] = None
    is_duplicate: Optional[bool] = None
    error: Optional[str] = None

    @property
    def preview_uri(self) -> str:
        return self.file_path.resolve().as_uri()

    @property
    def is_submittable(self) -> bool:
        return (
            self.status == ProcessingStatus.COMPLETED
            and self.extracted_data is not None
            and bool(self.is_buyer_valid)
            and not self.is_duplicate
        )
