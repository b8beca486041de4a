"""
Balance recalculator.

Re-derives every balance field of an enrollment from its payment ledger alone.
Cached ``amount_paid`` values are ignored, so running it repairs any drift and
running it twice gives the same document.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from app.core.enums import FeeStatusType, PaymentStatus
from app.core.exceptions import ServiceError

from .documents import (
    BatchFailure,
    BatchResult,
    FeeStatus,
    PaymentDoc,
    StudentEnrollmentDoc,
)
from .totals import amount_due, compute_enrollment_totals, derive_status

logger = logging.getLogger(__name__)


def ledger_paid_by_template(payments: Iterable[PaymentDoc]) -> Dict[str, Decimal]:
    """Sum of ledger item amounts per fee template id. Reversal entries carry negative amounts."""
    paid: Dict[str, Decimal] = {}
    for payment in payments:
        for item in payment.payment_items:
            paid[item.fee_template_id] = paid.get(item.fee_template_id, Decimal("0")) + item.amount
    return paid


def last_payment_date(payments: Iterable[PaymentDoc]) -> Optional[datetime]:
    payments = list(payments)
    reversed_ids = {p.reversal_of for p in payments if p.reversal_of}
    dates = [
        p.payment_date
        for p in payments
        if p.status == PaymentStatus.COMPLETED and p.id not in reversed_ids
    ]
    return max(dates) if dates else None


def recalculate(enrollment: StudentEnrollmentDoc, payments: List[PaymentDoc]) -> StudentEnrollmentDoc:
    """Return a copy of ``enrollment`` with lines, totals and fee status derived from ``payments``."""
    paid = ledger_paid_by_template(payments)

    fees = []
    for fee in enrollment.fees:
        fee_paid = paid.get(fee.template_id, Decimal("0"))
        fees.append(
            fee.model_copy(update={"amount_paid": fee_paid, "amount_due": amount_due(fee.amount, fee_paid)})
        )

    totals = compute_enrollment_totals(fees, enrollment.scholarships)
    previous = enrollment.fee_status
    if previous.status == FeeStatusType.WAIVED:
        status = FeeStatusType.WAIVED
    else:
        status = derive_status(totals)
    fee_status = FeeStatus(
        status=status,
        last_payment_date=last_payment_date(payments),
        next_due_date=previous.next_due_date,
        overdue_amount=totals.net_amount.due,
        waived_by=previous.waived_by if status == FeeStatusType.WAIVED else None,
        waived_reason=previous.waived_reason if status == FeeStatusType.WAIVED else None,
    )
    return enrollment.model_copy(update={"fees": fees, "totals": totals, "fee_status": fee_status})


def has_drifted(before: StudentEnrollmentDoc, after: StudentEnrollmentDoc) -> bool:
    return (
        before.fees != after.fees
        or before.totals != after.totals
        or before.fee_status != after.fee_status
    )


async def recalculate_many(
    enrollment_ids: Iterable[str],
    recalc_one: Callable[[str], Awaitable[object]],
) -> BatchResult:
    """
    Run ``recalc_one`` for every enrollment id independently.

    Service errors are collected per id; one failure never stops the rest of the batch.
    """
    result = BatchResult()
    for enrollment_id in enrollment_ids:
        try:
            await recalc_one(enrollment_id)
        except ServiceError as e:
            logger.warning("Recalculation failed for enrollment %s: %s", enrollment_id, e.message)
            result.failed.append(BatchFailure(id=enrollment_id, error=e.message))
        else:
            result.succeeded.append(enrollment_id)
    return result
