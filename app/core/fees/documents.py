"""
Fee engine documents.

These are the in-memory shapes the engine computes on. They mirror the persisted
documents (structure, enrollment, payment) including their embedded snapshots and
line items, and carry no database state. Money is always ``Decimal``.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.core.enums import (
    FeeCategory,
    FeeStatusType,
    PaymentMethod,
    PaymentStatus,
    ScholarshipType,
    StudentStatus,
)


def new_id() -> str:
    return str(uuid.uuid4())


ZERO = Decimal("0")


# --- Snapshots: copied once at creation time, never refreshed from the live record ---
class AcademicYearSnapshot(BaseModel):
    year: str
    start_date: date
    end_date: date
    is_active: bool

    class Config:
        frozen = True


class ClassSnapshot(BaseModel):
    class_name: str
    is_active: bool

    class Config:
        frozen = True


class StudentSnapshot(BaseModel):
    admission_number: str
    name: str
    father_name: str
    mobile_no: str = ""
    status: StudentStatus = StudentStatus.ACTIVE

    class Config:
        frozen = True


# --- Catalog ---
class FeeTemplateDoc(BaseModel):
    id: str
    name: str
    category: FeeCategory
    order: int = 0
    is_active: bool = True


class ScholarshipTemplateDoc(BaseModel):
    id: str
    name: str
    type: ScholarshipType
    order: int = 0
    is_active: bool = True


# --- Fee structure ---
class FeeItem(BaseModel):
    id: str = Field(default_factory=new_id)
    template_id: str
    template_name: str
    template_category: FeeCategory
    amount: Decimal = ZERO
    is_compulsory: bool = True
    is_editable_during_enrollment: bool = False
    order: int = 0


class ScholarshipItem(BaseModel):
    id: str = Field(default_factory=new_id)
    template_id: str
    template_name: str
    template_type: ScholarshipType
    amount: Decimal = ZERO
    is_auto_applied: bool = False
    is_editable_during_enrollment: bool = False
    order: int = 0


class FeeTotals(BaseModel):
    compulsory: Decimal = ZERO
    optional: Decimal = ZERO
    total: Decimal = ZERO


class ScholarshipTotals(BaseModel):
    auto_applied: Decimal = ZERO
    manual: Decimal = ZERO
    total: Decimal = ZERO


class FeeStructureDoc(BaseModel):
    id: str = Field(default_factory=new_id)
    academic_year_id: str
    class_id: str
    name: str
    description: Optional[str] = None
    is_active: bool = True
    academic_year: AcademicYearSnapshot
    school_class: ClassSnapshot
    fee_items: List[FeeItem] = Field(default_factory=list)
    scholarship_items: List[ScholarshipItem] = Field(default_factory=list)
    total_fees: FeeTotals = Field(default_factory=FeeTotals)
    total_scholarships: ScholarshipTotals = Field(default_factory=ScholarshipTotals)


# --- Enrollment ---
class StudentFee(BaseModel):
    id: str = Field(default_factory=new_id)
    fee_item_id: str
    template_id: str
    template_name: str
    template_category: FeeCategory
    amount: Decimal
    original_amount: Decimal
    amount_paid: Decimal = ZERO
    amount_due: Decimal = ZERO
    is_compulsory: bool = True

    @property
    def is_customized(self) -> bool:
        return self.amount != self.original_amount


class StudentScholarship(BaseModel):
    id: str = Field(default_factory=new_id)
    scholarship_item_id: str
    template_id: str
    template_name: str
    template_type: ScholarshipType
    amount: Decimal
    original_amount: Decimal
    is_auto_applied: bool = False
    applied_date: datetime
    applied_by: str
    is_active: bool = True
    remarks: Optional[str] = None

    @property
    def is_customized(self) -> bool:
        return self.amount != self.original_amount


class FeeAmounts(BaseModel):
    total: Decimal = ZERO
    paid: Decimal = ZERO
    due: Decimal = ZERO


class ScholarshipAmounts(BaseModel):
    applied: Decimal = ZERO


class NetAmounts(BaseModel):
    total: Decimal = ZERO
    paid: Decimal = ZERO
    due: Decimal = ZERO


class EnrollmentTotals(BaseModel):
    fees: FeeAmounts = Field(default_factory=FeeAmounts)
    scholarships: ScholarshipAmounts = Field(default_factory=ScholarshipAmounts)
    net_amount: NetAmounts = Field(default_factory=NetAmounts)


class FeeStatus(BaseModel):
    status: FeeStatusType = FeeStatusType.OVERDUE
    last_payment_date: Optional[datetime] = None
    next_due_date: Optional[date] = None
    overdue_amount: Decimal = ZERO
    waived_by: Optional[str] = None
    waived_reason: Optional[str] = None


class StudentEnrollmentDoc(BaseModel):
    id: str = Field(default_factory=new_id)
    student_id: str
    academic_year_id: str
    class_id: str
    section: str
    enrollment_date: date
    is_active: bool = True
    student: StudentSnapshot
    academic_year: AcademicYearSnapshot
    school_class: ClassSnapshot
    fees: List[StudentFee] = Field(default_factory=list)
    scholarships: List[StudentScholarship] = Field(default_factory=list)
    totals: EnrollmentTotals = Field(default_factory=EnrollmentTotals)
    fee_status: FeeStatus = Field(default_factory=FeeStatus)
    version: int = 0


# --- Ledger ---
class PaymentItem(BaseModel):
    fee_id: str
    fee_template_id: str
    fee_template_name: str
    amount: Decimal
    # Balance left on the fee line right after this payment was applied
    fee_balance: Decimal


class PaymentDoc(BaseModel):
    id: str = Field(default_factory=new_id)
    receipt_no: str
    student_enrollment_id: str
    academic_year_id: str
    total_amount: Decimal
    payment_date: datetime
    payment_method: PaymentMethod = PaymentMethod.CASH
    remarks: Optional[str] = None
    created_by: str
    status: PaymentStatus = PaymentStatus.COMPLETED
    reversal_of: Optional[str] = None
    student: StudentSnapshot
    academic_year: AcademicYearSnapshot
    payment_items: List[PaymentItem] = Field(default_factory=list)


# --- Requests handled by the engine ---
class PaymentLine(BaseModel):
    fee_line_id: str
    amount: Decimal


class PaymentRequest(BaseModel):
    lines: List[PaymentLine]
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: datetime
    remarks: Optional[str] = None
    created_by: str
    receipt_no: Optional[str] = None


class BatchFailure(BaseModel):
    id: str
    error: str


class BatchResult(BaseModel):
    succeeded: List[str] = Field(default_factory=list)
    failed: List[BatchFailure] = Field(default_factory=list)
