"""Report schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel

from app.core.enums import FeeStatusType
from app.core.fees import PaymentDoc


# --- Fee collection ---
class CollectionGroup(BaseModel):
    key: str
    count: int
    amount: Decimal


class FeeCollectionSummary(BaseModel):
    date_from: date
    date_to: date
    total_transactions: int
    total_amount: Decimal
    average_transaction: Decimal
    reversal_count: int
    by_payment_method: List[CollectionGroup]
    by_collector: List[CollectionGroup]
    by_class: List[CollectionGroup]
    by_day: List[CollectionGroup]
    by_fee: List[CollectionGroup]


class FeeCollectionReport(BaseModel):
    payments: List[PaymentDoc]
    summary: FeeCollectionSummary


# --- Outstanding fees ---
class OutstandingFeeLine(BaseModel):
    template_name: str
    amount: Decimal
    paid: Decimal
    outstanding: Decimal


class OutstandingStudent(BaseModel):
    enrollment_id: str
    admission_number: str
    name: str
    father_name: str
    mobile_no: str
    class_name: str
    section: str
    total_fees: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    fee_status: FeeStatusType
    enrollment_date: date
    fees: List[OutstandingFeeLine]


class ClassOutstanding(BaseModel):
    class_name: str
    students_count: int
    outstanding_amount: Decimal


class OutstandingFeesReport(BaseModel):
    students: List[OutstandingStudent]
    total_students: int
    total_outstanding_amount: Decimal
    class_totals: List[ClassOutstanding]
    generated_at: datetime
