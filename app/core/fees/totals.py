"""Pure aggregation shared by the materializer, allocator and recalculator."""

from decimal import Decimal
from typing import Iterable, List

from app.core.enums import FeeStatusType

from .documents import (
    ZERO,
    EnrollmentTotals,
    FeeAmounts,
    NetAmounts,
    ScholarshipAmounts,
    StudentFee,
    StudentScholarship,
)


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def money_sum(values: Iterable[Decimal]) -> Decimal:
    return sum((to_decimal(v) for v in values), ZERO)


def amount_due(amount: Decimal, amount_paid: Decimal) -> Decimal:
    return max(ZERO, to_decimal(amount) - to_decimal(amount_paid))


def compute_enrollment_totals(
    fees: List[StudentFee],
    scholarships: List[StudentScholarship],
) -> EnrollmentTotals:
    fees_total = money_sum(f.amount for f in fees)
    fees_paid = money_sum(f.amount_paid for f in fees)
    fees_due = money_sum(f.amount_due for f in fees)
    applied = money_sum(s.amount for s in scholarships if s.is_active)
    net_total = fees_total - applied
    return EnrollmentTotals(
        fees=FeeAmounts(total=fees_total, paid=fees_paid, due=fees_due),
        scholarships=ScholarshipAmounts(applied=applied),
        net_amount=NetAmounts(
            total=net_total,
            paid=fees_paid,
            due=max(ZERO, net_total - fees_paid),
        ),
    )


def derive_status(totals: EnrollmentTotals) -> FeeStatusType:
    """PAID / PARTIAL / OVERDUE from net due and fees paid. WAIVED is never derived."""
    if totals.net_amount.due == ZERO:
        return FeeStatusType.PAID
    if totals.fees.paid > ZERO:
        return FeeStatusType.PARTIAL
    return FeeStatusType.OVERDUE
