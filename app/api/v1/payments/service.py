"""
Payments service: collection against fee lines, reversals, ledger reads, legacy import
and balance recalculation.

Every write on an enrollment runs as one read -> compute -> write cycle with the
payment row, the updated enrollment and the audit entry committed together.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ServiceError, ValidationError
from app.core.fees import (
    BatchFailure,
    BatchResult,
    PaymentDoc,
    PaymentLine,
    PaymentRequest,
    StudentEnrollmentDoc,
    allocate,
    apply_allocation,
    build_payment,
    build_reversal,
    format_receipt_no,
    has_drifted,
    recalculate,
    recalculate_many,
)
from app.db.repository import FeeRepository, log_fee_audit, to_id, write_with_retry

from .schemas import LegacyPaymentImport, LegacyPaymentRow, PaymentCreate, PaymentReverse

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> datetime:
    """Naive UTC, the form every stored timestamp uses."""
    if value is None:
        return datetime.utcnow()
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _payment_audit_value(payment: PaymentDoc) -> dict:
    return {
        "receipt_no": payment.receipt_no,
        "total_amount": str(payment.total_amount),
        "status": payment.status.value,
        "items": [
            {"fee_template_id": i.fee_template_id, "amount": str(i.amount)}
            for i in payment.payment_items
        ],
    }


async def _get_enrollment_or_404(repo: FeeRepository, enrollment_id) -> StudentEnrollmentDoc:
    enrollment = await repo.get_enrollment_by_id(to_id(enrollment_id))
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    return enrollment


async def _next_receipt_no(repo: FeeRepository, enrollment: StudentEnrollmentDoc) -> str:
    # imported or caller-supplied receipts may already hold a number in the generated format
    while True:
        sequence = await repo.increment_receipt_sequence(enrollment.academic_year_id)
        receipt_no = format_receipt_no(
            settings.receipt_prefix,
            enrollment.academic_year.year,
            sequence,
            settings.receipt_sequence_width,
        )
        if not await repo.get_payment_by_receipt(receipt_no):
            return receipt_no
        logger.warning("Receipt number %s already taken, skipping", receipt_no)


async def _record_payment(
    db: AsyncSession,
    repo: FeeRepository,
    enrollment_id: str,
    request: PaymentRequest,
) -> PaymentDoc:
    enrollment = await _get_enrollment_or_404(repo, enrollment_id)
    if not enrollment.is_active:
        raise ValidationError("Cannot collect payment for an inactive enrollment")
    allocation = allocate(enrollment.fees, request)
    if request.receipt_no and request.receipt_no.strip():
        receipt_no = request.receipt_no.strip()
    else:
        receipt_no = await _next_receipt_no(repo, enrollment)
    payment = build_payment(enrollment, allocation, request, receipt_no)
    await repo.save_enrollment(apply_allocation(enrollment, allocation, request.payment_date))
    await repo.append_payment(payment, class_id=enrollment.class_id)
    await log_fee_audit(
        db, "payments", payment.id, "CREATE", None, _payment_audit_value(payment), request.created_by,
    )
    return payment


async def collect_payment(
    db: AsyncSession,
    enrollment_id,
    payload: PaymentCreate,
    actor: str,
) -> PaymentDoc:
    """Record a payment against the named fee lines of one enrollment and issue its receipt."""
    repo = FeeRepository(db)
    request = PaymentRequest(
        lines=[PaymentLine(fee_line_id=line.fee_line_id, amount=line.amount) for line in payload.lines],
        payment_method=payload.payment_method,
        payment_date=_as_utc(payload.payment_date),
        remarks=payload.remarks,
        created_by=actor,
        receipt_no=payload.receipt_no,
    )
    enrollment_id = to_id(enrollment_id)
    payment = await write_with_retry(
        db,
        f"enrollment {enrollment_id}",
        lambda: _record_payment(db, repo, enrollment_id, request),
    )
    logger.info(
        "Payment %s recorded for enrollment %s: %s (%s)",
        payment.receipt_no, enrollment_id, payment.total_amount, payment.payment_method.value,
    )
    return payment


async def reverse_payment(db: AsyncSession, payment_id, payload: PaymentReverse, actor: str) -> PaymentDoc:
    """
    Cancel a payment by appending a REVERSAL entry with negated items. The original
    entry is left as it was; the enrollment balances are re-derived from the ledger.
    """
    repo = FeeRepository(db)

    async def work() -> PaymentDoc:
        original = await repo.get_payment(to_id(payment_id))
        if not original:
            raise NotFoundError("Payment not found")
        enrollment = await _get_enrollment_or_404(repo, original.student_enrollment_id)
        ledger = await repo.list_payments(enrollment.id)
        receipt_no = await _next_receipt_no(repo, enrollment)
        reversal = build_reversal(
            original, ledger, enrollment, receipt_no, actor, datetime.utcnow(), payload.reason,
        )
        await repo.save_enrollment(recalculate(enrollment, ledger + [reversal]))
        await repo.append_payment(reversal, class_id=enrollment.class_id)
        await log_fee_audit(
            db, "payments", original.id, "REVERSE",
            _payment_audit_value(original), _payment_audit_value(reversal), actor,
        )
        return reversal

    reversal = await write_with_retry(db, f"payment {payment_id}", work)
    logger.info("Payment %s reversed by %s (%s)", reversal.reversal_of, reversal.receipt_no, actor)
    return reversal


async def list_payments(db: AsyncSession, enrollment_id) -> List[PaymentDoc]:
    """Ledger of one enrollment ordered by payment date, reversals included."""
    repo = FeeRepository(db)
    enrollment = await _get_enrollment_or_404(repo, enrollment_id)
    return await repo.list_payments(enrollment.id)


async def get_payment_by_receipt(db: AsyncSession, receipt_no: str) -> PaymentDoc:
    payment = await FeeRepository(db).get_payment_by_receipt(receipt_no.strip())
    if not payment:
        raise NotFoundError(f"Receipt {receipt_no} not found")
    return payment


# --- Legacy import ---
async def _legacy_request(repo: FeeRepository, row: LegacyPaymentRow, actor: str):
    student = await repo.get_student_by_admission_number(row.admission_number.strip())
    if not student:
        raise NotFoundError(f"Student with admission number {row.admission_number} not found")
    ay = await repo.get_academic_year_by_label(row.academic_year.strip())
    if not ay:
        raise NotFoundError(f"Academic year {row.academic_year} not found")
    enrollment = await repo.get_enrollment(student.id, ay.id)
    if not enrollment:
        raise NotFoundError(f"No enrollment for {row.admission_number} in {row.academic_year}")

    by_template = {f.template_id: f for f in enrollment.fees}
    by_name = {f.template_name.strip().lower(): f for f in enrollment.fees}
    lines = []
    for item in row.items:
        fee = None
        if item.fee_template_id is not None:
            fee = by_template.get(str(item.fee_template_id))
        elif item.fee_template_name:
            fee = by_name.get(item.fee_template_name.strip().lower())
        if fee is None:
            label = item.fee_template_name or item.fee_template_id
            raise NotFoundError(f"Fee {label} is not a line of this enrollment")
        lines.append(PaymentLine(fee_line_id=fee.id, amount=item.amount))

    request = PaymentRequest(
        lines=lines,
        payment_method=row.payment_method,
        payment_date=_as_utc(row.payment_date),
        remarks=row.remarks,
        created_by=(row.created_by or "").strip() or actor,
        receipt_no=row.receipt_no.strip(),
    )
    return enrollment.id, request


async def import_legacy_payments(db: AsyncSession, payload: LegacyPaymentImport, actor: str) -> BatchResult:
    """
    Record historical receipts with their original numbers. Each row is its own
    transaction; rows that cannot be matched or fail validation are reported in
    ``failed`` with the reason, never skipped.
    """
    repo = FeeRepository(db)
    result = BatchResult()
    for row in payload.rows:
        try:
            enrollment_id, request = await _legacy_request(repo, row, actor)
            await write_with_retry(
                db,
                f"enrollment {enrollment_id}",
                lambda: _record_payment(db, repo, enrollment_id, request),
            )
        except ServiceError as e:
            await db.rollback()
            logger.warning("Legacy receipt %s not imported: %s", row.receipt_no, e.message)
            result.failed.append(BatchFailure(id=row.receipt_no, error=e.message))
        else:
            result.succeeded.append(row.receipt_no)
    logger.info("Legacy import finished: %d imported, %d failed", len(result.succeeded), len(result.failed))
    return result


# --- Recalculation ---
async def recalculate_enrollment(db: AsyncSession, enrollment_id, actor: str) -> StudentEnrollmentDoc:
    """Re-derive lines, totals and fee status from the ledger; writes only when something drifted."""
    repo = FeeRepository(db)

    async def work() -> StudentEnrollmentDoc:
        enrollment = await _get_enrollment_or_404(repo, enrollment_id)
        payments = await repo.list_payments(enrollment.id)
        updated = recalculate(enrollment, payments)
        if not has_drifted(enrollment, updated):
            return enrollment
        saved = await repo.save_enrollment(updated)
        await log_fee_audit(
            db, "student_enrollments", saved.id, "RECALCULATE",
            {"fees_paid": str(enrollment.totals.fees.paid), "status": enrollment.fee_status.status.value},
            {"fees_paid": str(saved.totals.fees.paid), "status": saved.fee_status.status.value},
            actor,
        )
        logger.info("Enrollment %s balances corrected from ledger", saved.id)
        return saved

    return await write_with_retry(db, f"enrollment {enrollment_id}", work)


async def recalculate_academic_year(db: AsyncSession, academic_year_id, actor: str) -> BatchResult:
    """Recalculate every enrollment of the year independently; failures are reported per enrollment."""
    repo = FeeRepository(db)
    ay = await repo.get_academic_year(to_id(academic_year_id))
    if not ay:
        raise NotFoundError("Academic year not found")
    year = ay.year
    enrollment_ids = await repo.list_enrollment_ids(ay.id)
    result = await recalculate_many(enrollment_ids, lambda eid: recalculate_enrollment(db, eid, actor))
    logger.info(
        "Recalculated %s: %d succeeded, %d failed",
        year, len(result.succeeded), len(result.failed),
    )
    return result
