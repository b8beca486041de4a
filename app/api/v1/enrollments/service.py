"""Enrollment service: materialize a student's fees for a year, edit them, waive, deactivate."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import FeeStatusType
from app.core.exceptions import DuplicateError, NotFoundError, ValidationError
from app.core.fees import StudentEnrollmentDoc, current_overrides, materialize, recalculate, rematerialize
from app.core.fees.documents import FeeStatus
from app.db.repository import (
    FeeRepository,
    academic_year_snapshot,
    class_snapshot,
    log_fee_audit,
    student_snapshot,
    to_id,
    write_with_retry,
)

from .schemas import EnrollmentCreate, EnrollmentFeesUpdate, FeeWaiverRequest

logger = logging.getLogger(__name__)


def _keyed(values: Dict) -> Dict[str, Decimal]:
    return {str(k): v for k, v in values.items()}


def _audit_value(doc: StudentEnrollmentDoc) -> dict:
    return {
        "fees_total": str(doc.totals.fees.total),
        "scholarships_applied": str(doc.totals.scholarships.applied),
        "net_due": str(doc.totals.net_amount.due),
        "status": doc.fee_status.status.value,
        "is_active": doc.is_active,
    }


async def _get_or_404(repo: FeeRepository, enrollment_id) -> StudentEnrollmentDoc:
    enrollment = await repo.get_enrollment_by_id(to_id(enrollment_id))
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    return enrollment


async def enroll_student(db: AsyncSession, payload: EnrollmentCreate, actor: str) -> StudentEnrollmentDoc:
    """
    Create the student's enrollment for the academic year, materializing fee and
    scholarship lines from the active fee structure of the class.
    """
    repo = FeeRepository(db)
    student = await repo.get_student(to_id(payload.student_id))
    if not student:
        raise NotFoundError("Student not found")
    ay = await repo.get_academic_year(to_id(payload.academic_year_id))
    if not ay:
        raise NotFoundError("Academic year not found")
    cl = await repo.get_class(to_id(payload.class_id))
    if not cl:
        raise NotFoundError("Class not found")
    if await repo.get_enrollment(student.id, ay.id):
        raise DuplicateError(f"Student {student.admission_number} is already enrolled for {ay.year}")
    structure = await repo.get_fee_structure(ay.id, cl.id)
    if not structure or not structure.is_active:
        raise NotFoundError(f"No active fee structure for {cl.class_name} in {ay.year}")

    materialized = materialize(
        structure,
        applied_by=actor,
        applied_at=datetime.utcnow(),
        fee_overrides=_keyed(payload.fee_overrides),
        scholarship_overrides=_keyed(payload.scholarship_overrides),
        selected_scholarships=[str(s) for s in payload.selected_scholarships],
        ceiling=settings.fee_override_ceiling,
    )
    doc = StudentEnrollmentDoc(
        student_id=student.id,
        academic_year_id=ay.id,
        class_id=cl.id,
        section=payload.section.strip(),
        enrollment_date=payload.enrollment_date or date.today(),
        student=student_snapshot(student),
        academic_year=academic_year_snapshot(ay),
        school_class=class_snapshot(cl),
        fees=materialized.fees,
        scholarships=materialized.scholarships,
        totals=materialized.totals,
        fee_status=FeeStatus(next_due_date=payload.next_due_date),
    )
    doc = recalculate(doc, [])
    try:
        doc = await repo.save_enrollment(doc)
        await log_fee_audit(db, "student_enrollments", doc.id, "CREATE", None, _audit_value(doc), actor)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(
            f"Student {doc.student.admission_number} is already enrolled for {doc.academic_year.year}"
        )
    logger.info(
        "Enrollment %s materialized for %s in %s/%s: net %s",
        doc.id, student.admission_number, ay.year, cl.class_name, doc.totals.net_amount.total,
    )
    return doc


async def update_enrollment_fees(
    db: AsyncSession,
    enrollment_id,
    payload: EnrollmentFeesUpdate,
    actor: str,
) -> StudentEnrollmentDoc:
    """Re-materialize the lines with new overrides/selections, then re-derive balances from the ledger."""
    repo = FeeRepository(db)

    async def work() -> StudentEnrollmentDoc:
        enrollment = await _get_or_404(repo, enrollment_id)
        if not enrollment.is_active:
            raise ValidationError("Cannot change fees of an inactive enrollment")
        structure = await repo.get_fee_structure(enrollment.academic_year_id, enrollment.class_id)
        if not structure:
            raise NotFoundError("Fee structure for this enrollment no longer exists")
        fee_overrides, scholarship_overrides, selected = current_overrides(enrollment)
        if payload.fee_overrides is not None:
            fee_overrides = _keyed(payload.fee_overrides)
        if payload.scholarship_overrides is not None:
            scholarship_overrides = _keyed(payload.scholarship_overrides)
        if payload.selected_scholarships is not None:
            selected = {str(s) for s in payload.selected_scholarships}
        payments = await repo.list_payments(enrollment.id)
        updated = rematerialize(
            enrollment,
            structure,
            payments,
            applied_by=actor,
            applied_at=datetime.utcnow(),
            fee_overrides=fee_overrides,
            scholarship_overrides=scholarship_overrides,
            selected_scholarships=selected,
            ceiling=settings.fee_override_ceiling,
        )
        saved = await repo.save_enrollment(updated)
        await log_fee_audit(
            db, "student_enrollments", saved.id, "UPDATE",
            _audit_value(enrollment), _audit_value(saved), actor,
        )
        return saved

    saved = await write_with_retry(db, f"enrollment {enrollment_id}", work)
    logger.info("Enrollment %s fees updated: net %s", saved.id, saved.totals.net_amount.total)
    return saved


async def deactivate_enrollment(db: AsyncSession, enrollment_id, actor: str) -> StudentEnrollmentDoc:
    """Soft delete. Lines and ledger stay untouched; new payments are refused."""
    repo = FeeRepository(db)

    async def work() -> StudentEnrollmentDoc:
        enrollment = await _get_or_404(repo, enrollment_id)
        if not enrollment.is_active:
            return enrollment
        saved = await repo.save_enrollment(enrollment.model_copy(update={"is_active": False}))
        await log_fee_audit(
            db, "student_enrollments", saved.id, "DEACTIVATE",
            {"is_active": True}, {"is_active": False}, actor,
        )
        return saved

    saved = await write_with_retry(db, f"enrollment {enrollment_id}", work)
    logger.info("Enrollment %s deactivated", saved.id)
    return saved


async def set_fee_waiver(
    db: AsyncSession,
    enrollment_id,
    payload: FeeWaiverRequest,
    actor: str,
) -> StudentEnrollmentDoc:
    """Put the enrollment into (or take it out of) the manual WAIVED state."""
    repo = FeeRepository(db)

    async def work() -> StudentEnrollmentDoc:
        enrollment = await _get_or_404(repo, enrollment_id)
        previous = enrollment.fee_status
        if payload.waived:
            fee_status = previous.model_copy(
                update={
                    "status": FeeStatusType.WAIVED,
                    "waived_by": actor,
                    "waived_reason": (payload.reason or "").strip() or None,
                }
            )
            updated = enrollment.model_copy(update={"fee_status": fee_status})
        else:
            cleared = previous.model_copy(
                update={"status": FeeStatusType.OVERDUE, "waived_by": None, "waived_reason": None}
            )
            payments = await repo.list_payments(enrollment.id)
            updated = recalculate(enrollment.model_copy(update={"fee_status": cleared}), payments)
        saved = await repo.save_enrollment(updated)
        await log_fee_audit(
            db, "student_enrollments", saved.id, "WAIVE" if payload.waived else "UNWAIVE",
            {"status": previous.status.value},
            {"status": saved.fee_status.status.value, "reason": saved.fee_status.waived_reason},
            actor,
        )
        return saved

    saved = await write_with_retry(db, f"enrollment {enrollment_id}", work)
    logger.info("Enrollment %s fee status set to %s by %s", saved.id, saved.fee_status.status.value, actor)
    return saved


async def get_enrollment(db: AsyncSession, enrollment_id) -> StudentEnrollmentDoc:
    return await _get_or_404(FeeRepository(db), enrollment_id)


async def get_student_enrollment(db: AsyncSession, student_id, academic_year_id) -> StudentEnrollmentDoc:
    enrollment = await FeeRepository(db).get_enrollment(to_id(student_id), to_id(academic_year_id))
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    return enrollment


async def list_enrollments(
    db: AsyncSession,
    academic_year_id,
    class_id=None,
    active_only: bool = True,
) -> List[StudentEnrollmentDoc]:
    return await FeeRepository(db).list_enrollments(
        to_id(academic_year_id), class_id=to_id(class_id), active_only=active_only
    )
