"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import PaymentMethod


class PaymentLineInput(BaseModel):
    fee_line_id: str = Field(..., description="id of the StudentFee line on the enrollment")
    amount: Decimal


class PaymentCreate(BaseModel):
    """Money received against named fee lines. Amounts are never spread to other lines."""

    lines: List[PaymentLineInput]
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[datetime] = Field(None, description="Defaults to now (UTC)")
    remarks: Optional[str] = Field(None, max_length=500)
    receipt_no: Optional[str] = Field(
        None,
        max_length=50,
        description="Caller-assigned receipt number; generated from the yearly counter when omitted",
    )


class PaymentReverse(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# --- Legacy import ---
class LegacyPaymentItem(BaseModel):
    """One fee of a historical receipt, matched to the enrollment by template id or name."""

    fee_template_id: Optional[UUID] = None
    fee_template_name: Optional[str] = None
    amount: Decimal


class LegacyPaymentRow(BaseModel):
    receipt_no: str = Field(..., min_length=1, max_length=50)
    admission_number: str
    academic_year: str = Field(..., description="Academic year label, e.g. 2023-2024")
    payment_date: datetime
    payment_method: PaymentMethod = PaymentMethod.CASH
    remarks: Optional[str] = None
    created_by: Optional[str] = None
    items: List[LegacyPaymentItem]


class LegacyPaymentImport(BaseModel):
    rows: List[LegacyPaymentRow]
