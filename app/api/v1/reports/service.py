"""Read-only fee reports computed from the ledger and the enrollment balances."""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PaymentMethod, PaymentStatus
from app.core.exceptions import NotFoundError, ValidationError
from app.core.fees import PaymentDoc
from app.core.models import Payment, StudentEnrollment
from app.db.repository import FeeRepository, payment_doc, to_id

from .schemas import (
    ClassOutstanding,
    CollectionGroup,
    FeeCollectionReport,
    FeeCollectionSummary,
    OutstandingFeeLine,
    OutstandingFeesReport,
    OutstandingStudent,
)


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _group(
    entries: Iterable[Tuple[PaymentDoc, str]],
    key_fn: Callable[[PaymentDoc, str], str],
) -> List[CollectionGroup]:
    groups: Dict[str, CollectionGroup] = {}
    for payment, class_name in entries:
        key = key_fn(payment, class_name)
        group = groups.setdefault(key, CollectionGroup(key=key, count=0, amount=Decimal("0")))
        group.count += 1
        group.amount += payment.total_amount
    return [groups[k] for k in sorted(groups)]


def _by_fee(payments: Iterable[PaymentDoc]) -> List[CollectionGroup]:
    groups: Dict[str, CollectionGroup] = {}
    for payment in payments:
        for item in payment.payment_items:
            group = groups.setdefault(
                item.fee_template_name,
                CollectionGroup(key=item.fee_template_name, count=0, amount=Decimal("0")),
            )
            group.count += 1
            group.amount += item.amount
    return [groups[k] for k in sorted(groups)]


async def get_fee_collection_report(
    db: AsyncSession,
    date_from: date,
    date_to: date,
    academic_year_id=None,
    class_id=None,
    payment_method: Optional[PaymentMethod] = None,
    created_by: Optional[str] = None,
) -> FeeCollectionReport:
    """
    Ledger entries dated within [date_from, date_to] (whole days), newest first, with
    counts and net amounts grouped by method, collector, class, day and fee.
    Reversal entries are included with their negative amounts.
    """
    if date_to < date_from:
        raise ValidationError("date_to must not be before date_from")
    start = datetime.combine(date_from, time.min)
    end = datetime.combine(date_to + timedelta(days=1), time.min)
    stmt = (
        select(Payment, StudentEnrollment.school_class)
        .join(StudentEnrollment, Payment.student_enrollment_id == StudentEnrollment.id)
        .where(Payment.payment_date >= start, Payment.payment_date < end)
    )
    if academic_year_id is not None:
        stmt = stmt.where(Payment.academic_year_id == to_id(academic_year_id))
    if class_id is not None:
        stmt = stmt.where(StudentEnrollment.class_id == to_id(class_id))
    if payment_method is not None:
        stmt = stmt.where(Payment.payment_method == payment_method.value)
    if created_by:
        stmt = stmt.where(Payment.created_by == created_by)
    stmt = stmt.order_by(Payment.payment_date.desc())
    result = await db.execute(stmt)

    entries = [(payment_doc(row), (school_class or {}).get("class_name", "")) for row, school_class in result.all()]
    payments = [p for p, _ in entries]
    total = sum((p.total_amount for p in payments), Decimal("0"))
    count = len(payments)
    summary = FeeCollectionSummary(
        date_from=date_from,
        date_to=date_to,
        total_transactions=count,
        total_amount=total,
        average_transaction=(total / count).quantize(Decimal("0.01")) if count else Decimal("0"),
        reversal_count=sum(1 for p in payments if p.status == PaymentStatus.REVERSAL),
        by_payment_method=_group(entries, lambda p, _: p.payment_method.value),
        by_collector=_group(entries, lambda p, _: p.created_by),
        by_class=_group(entries, lambda _, class_name: class_name),
        by_day=_group(entries, lambda p, _: p.payment_date.date().isoformat()),
        by_fee=_by_fee(payments),
    )
    return FeeCollectionReport(payments=payments, summary=summary)


async def get_outstanding_fees_report(
    db: AsyncSession,
    academic_year_id=None,
    class_id=None,
    section: Optional[str] = None,
    min_outstanding: Decimal = Decimal("1"),
) -> OutstandingFeesReport:
    """Active enrollments whose net due is at least ``min_outstanding``, with per-class totals."""
    repo = FeeRepository(db)
    if academic_year_id is None:
        current = await repo.get_current_academic_year()
        if not current:
            raise NotFoundError("No current academic year is set")
        academic_year_id = current.id
    enrollments = await repo.list_enrollments(to_id(academic_year_id), class_id=to_id(class_id))
    if section:
        enrollments = [e for e in enrollments if e.section == section]

    students: List[OutstandingStudent] = []
    for e in enrollments:
        outstanding = e.totals.net_amount.due
        if outstanding < min_outstanding:
            continue
        students.append(
            OutstandingStudent(
                enrollment_id=e.id,
                admission_number=e.student.admission_number,
                name=e.student.name,
                father_name=e.student.father_name,
                mobile_no=e.student.mobile_no,
                class_name=e.school_class.class_name,
                section=e.section,
                total_fees=e.totals.net_amount.total,
                paid_amount=e.totals.net_amount.paid,
                outstanding_amount=outstanding,
                fee_status=e.fee_status.status,
                enrollment_date=e.enrollment_date,
                fees=[
                    OutstandingFeeLine(
                        template_name=f.template_name,
                        amount=f.amount,
                        paid=f.amount_paid,
                        outstanding=f.amount_due,
                    )
                    for f in e.fees
                ],
            )
        )
    students.sort(key=lambda s: (s.class_name, s.section, s.name))

    class_totals: Dict[str, ClassOutstanding] = {}
    for s in students:
        ct = class_totals.setdefault(
            s.class_name,
            ClassOutstanding(class_name=s.class_name, students_count=0, outstanding_amount=Decimal("0")),
        )
        ct.students_count += 1
        ct.outstanding_amount += s.outstanding_amount

    return OutstandingFeesReport(
        students=students,
        total_students=len(students),
        total_outstanding_amount=sum((s.outstanding_amount for s in students), Decimal("0")),
        class_totals=[class_totals[k] for k in sorted(class_totals)],
        generated_at=datetime.utcnow(),
    )
