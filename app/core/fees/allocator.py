"""
Payment allocator.

Applies a collection request to the named fee lines of an enrollment. There is no
waterfall across lines: the caller states exactly how much goes to which line, and
every amount is checked against that line's current due.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from app.core.enums import FeeStatusType, PaymentStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError

from .documents import (
    PaymentDoc,
    PaymentItem,
    PaymentRequest,
    StudentEnrollmentDoc,
    StudentFee,
)
from .totals import amount_due, compute_enrollment_totals, derive_status, money_sum, to_decimal


@dataclass
class Allocation:
    items: List[PaymentItem]
    fees: List[StudentFee]
    total_amount: Decimal


def allocate(fees: List[StudentFee], request: PaymentRequest) -> Allocation:
    """Validate ``request`` against ``fees`` and compute the payment items and updated lines."""
    if not request.lines:
        raise ValidationError("At least one payment item is required")

    by_id = {f.id: f for f in fees}
    seen = set()
    applied = {}
    for line in request.lines:
        amount = to_decimal(line.amount)
        if line.fee_line_id in seen:
            raise ValidationError("Each fee line can appear only once in a payment")
        seen.add(line.fee_line_id)
        fee = by_id.get(line.fee_line_id)
        if fee is None:
            raise NotFoundError(f"Fee line {line.fee_line_id} not found on this enrollment")
        if amount <= 0:
            raise ValidationError(f"Payment amount for {fee.template_name} must be greater than 0")
        if amount > fee.amount_due:
            raise ValidationError(
                f"Payment amount for {fee.template_name} exceeds due amount of {fee.amount_due}"
            )
        applied[fee.id] = amount

    total = money_sum(applied.values())
    if total <= 0:
        raise ValidationError("Total payment amount must be greater than 0")

    updated: List[StudentFee] = []
    items: List[PaymentItem] = []
    for fee in fees:
        amount = applied.get(fee.id)
        if amount is None:
            updated.append(fee)
            continue
        new_paid = fee.amount_paid + amount
        new_fee = fee.model_copy(update={"amount_paid": new_paid, "amount_due": amount_due(fee.amount, new_paid)})
        updated.append(new_fee)

    # items follow the caller's order, balances are post-payment
    new_by_id = {f.id: f for f in updated}
    for line in request.lines:
        fee = new_by_id[line.fee_line_id]
        items.append(
            PaymentItem(
                fee_id=fee.id,
                fee_template_id=fee.template_id,
                fee_template_name=fee.template_name,
                amount=applied[fee.id],
                fee_balance=fee.amount_due,
            )
        )

    return Allocation(items=items, fees=updated, total_amount=money_sum(i.amount for i in items))


def apply_allocation(
    enrollment: StudentEnrollmentDoc,
    allocation: Allocation,
    payment_date: datetime,
) -> StudentEnrollmentDoc:
    """Enrollment with the allocation's lines, refreshed totals and fee status."""
    totals = compute_enrollment_totals(allocation.fees, enrollment.scholarships)
    previous = enrollment.fee_status
    last = previous.last_payment_date
    if last is None or payment_date > last:
        last = payment_date
    status = FeeStatusType.WAIVED if previous.status == FeeStatusType.WAIVED else derive_status(totals)
    fee_status = previous.model_copy(
        update={"status": status, "last_payment_date": last, "overdue_amount": totals.net_amount.due}
    )
    return enrollment.model_copy(update={"fees": allocation.fees, "totals": totals, "fee_status": fee_status})


def build_payment(
    enrollment: StudentEnrollmentDoc,
    allocation: Allocation,
    request: PaymentRequest,
    receipt_no: str,
) -> PaymentDoc:
    return PaymentDoc(
        receipt_no=receipt_no,
        student_enrollment_id=enrollment.id,
        academic_year_id=enrollment.academic_year_id,
        total_amount=allocation.total_amount,
        payment_date=request.payment_date,
        payment_method=request.payment_method,
        remarks=(request.remarks or "").strip() or None,
        created_by=request.created_by,
        status=PaymentStatus.COMPLETED,
        student=enrollment.student,
        academic_year=enrollment.academic_year,
        payment_items=allocation.items,
    )


def build_reversal(
    original: PaymentDoc,
    ledger: List[PaymentDoc],
    enrollment: StudentEnrollmentDoc,
    receipt_no: str,
    created_by: str,
    reversed_at: datetime,
    reason: Optional[str] = None,
) -> PaymentDoc:
    """
    A new ledger entry that cancels ``original``: same lines, negated amounts.
    The original payment document is left untouched.
    """
    if original.status == PaymentStatus.REVERSAL:
        raise ConflictError("A reversal entry cannot itself be reversed")
    if any(p.reversal_of == original.id for p in ledger):
        raise ConflictError(f"Payment {original.receipt_no} has already been reversed")

    lines = {f.template_id: f for f in enrollment.fees}
    items = []
    for item in original.payment_items:
        fee = lines.get(item.fee_template_id)
        balance = item.amount if fee is None else min(fee.amount, fee.amount_due + item.amount)
        items.append(
            PaymentItem(
                fee_id=item.fee_id,
                fee_template_id=item.fee_template_id,
                fee_template_name=item.fee_template_name,
                amount=-item.amount,
                fee_balance=balance,
            )
        )
    remarks = f"Reversal of {original.receipt_no}"
    if reason and reason.strip():
        remarks = f"{remarks}: {reason.strip()}"
    return PaymentDoc(
        receipt_no=receipt_no,
        student_enrollment_id=original.student_enrollment_id,
        academic_year_id=original.academic_year_id,
        total_amount=money_sum(i.amount for i in items),
        payment_date=reversed_at,
        payment_method=original.payment_method,
        remarks=remarks,
        created_by=created_by,
        status=PaymentStatus.REVERSAL,
        reversal_of=original.id,
        student=original.student,
        academic_year=original.academic_year,
        payment_items=items,
    )
