import math
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from cashflow.expenses.models import ExpenseStatus, BillingType


# =========================
# Create
# =========================
class ExpenseCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    amount: float = Field(..., gt=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    category_id: int
    billing_type: BillingType = BillingType.INTERNAL
    attachment_urls: List[str] = []

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper()


# =========================
# Invoice submit
# =========================
class ConfidentialField(BaseModel):
    value: str
    confidentiality: float = Field(..., ge=0, le=1)


class AmountField(ConfidentialField):
    @field_validator("value")
    @classmethod
    def numeric_value(cls, v: str) -> str:
        try:
            amount = float(v.replace(",", "").strip())
        except ValueError:
            raise ValueError("total_amount must be numeric")
        if not math.isfinite(amount) or amount <= 0:
            raise ValueError("total_amount must be a positive number")
        return v

    @property
    def amount(self) -> float:
        return float(self.value.replace(",", "").strip())


class SubmittedInvoice(BaseModel):
    invoice_id: ConfidentialField
    company_name: ConfidentialField
    total_amount: AmountField
    total_amount_curr: ConfidentialField = Field(
        ...,
        validation_alias=AliasChoices("total_amount_curr", "total_amount_currency")
    )


class SubmitInvoiceSchema(BaseModel):
    invoice_data: SubmittedInvoice = Field(..., validation_alias=AliasChoices("invoice_data", "invoiceData"))
    file_url: str = Field(..., validation_alias=AliasChoices("file_url", "fileUrl"))

    @field_validator("file_url")
    @classmethod
    def relative_or_absolute(cls, v: str) -> str:
        if not (v.startswith("/") or v.startswith("http://") or v.startswith("https://")):
            raise ValueError("File URL must be a relative path starting with / or an absolute URL")
        return v


# =========================
# Upload tokens
# =========================
class VerifyTokenSchema(BaseModel):
    token: Optional[str] = None


# =========================
# Output
# =========================
class AttachmentOut(BaseModel):
    id: int
    filename: str
    url: str
    file_size: Optional[int] = None
    file_type: Optional[str] = None

    class Config:
        from_attributes = True


class ExpenseOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    amount: float
    currency: str
    status: ExpenseStatus
    billing_type: BillingType
    category_id: int
    category_name: Optional[str] = None
    submitted_by_id: int
    submitted_by_name: Optional[str] = None
    reviewed_by_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    submitted_at: datetime
    attachments: List[AttachmentOut] = []
