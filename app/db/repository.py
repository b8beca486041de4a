"""
Repository: loads and stores fee engine documents.

Rows keep scalar keys as columns and embedded snapshots / line items as JSON;
this module is the only place that converts between the two shapes.
"""

import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from pydantic import ValidationError as DocumentError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import ConflictError, ServiceError
from app.core.fees.documents import (
    AcademicYearSnapshot,
    ClassSnapshot,
    FeeStructureDoc,
    FeeTemplateDoc,
    PaymentDoc,
    ScholarshipTemplateDoc,
    StudentEnrollmentDoc,
    StudentSnapshot,
)
from app.core.models import (
    AcademicYear,
    FeeAuditLog,
    FeeStructure,
    FeeTemplate,
    Payment,
    ReceiptSequence,
    ScholarshipTemplate,
    SchoolClass,
    Student,
    StudentEnrollment,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def to_id(val) -> Optional[str]:
    if val is None:
        return None
    return str(val)


def _dump(doc) -> dict:
    return doc.model_dump(mode="json")


def _dump_list(docs) -> list:
    return [d.model_dump(mode="json") for d in docs]


# --- Snapshots from directory records ---
def academic_year_snapshot(ay: AcademicYear) -> AcademicYearSnapshot:
    return AcademicYearSnapshot(
        year=ay.year,
        start_date=ay.start_date,
        end_date=ay.end_date,
        is_active=ay.is_active,
    )


def class_snapshot(cl: SchoolClass) -> ClassSnapshot:
    return ClassSnapshot(class_name=cl.class_name, is_active=cl.is_active)


def student_snapshot(st: Student) -> StudentSnapshot:
    return StudentSnapshot(
        admission_number=st.admission_number,
        name=st.name,
        father_name=st.father_name,
        mobile_no=st.mobile_no or "",
        status=st.status,
    )


# --- Row -> document ---
def fee_structure_doc(row: FeeStructure) -> FeeStructureDoc:
    return FeeStructureDoc(
        id=row.id,
        academic_year_id=row.academic_year_id,
        class_id=row.class_id,
        name=row.name,
        description=row.description,
        is_active=row.is_active,
        academic_year=row.academic_year,
        school_class=row.school_class,
        fee_items=row.fee_items or [],
        scholarship_items=row.scholarship_items or [],
        total_fees=row.total_fees,
        total_scholarships=row.total_scholarships,
    )


def enrollment_doc(row: StudentEnrollment) -> StudentEnrollmentDoc:
    try:
        return _enrollment_doc(row)
    except DocumentError as e:
        logger.error("Enrollment %s has unreadable stored data: %s", row.id, e)
        raise ServiceError(f"Enrollment {row.id} has unreadable stored data") from e


def _enrollment_doc(row: StudentEnrollment) -> StudentEnrollmentDoc:
    return StudentEnrollmentDoc(
        id=row.id,
        student_id=row.student_id,
        academic_year_id=row.academic_year_id,
        class_id=row.class_id,
        section=row.section,
        enrollment_date=row.enrollment_date,
        is_active=row.is_active,
        student=row.student,
        academic_year=row.academic_year,
        school_class=row.school_class,
        fees=row.fees or [],
        scholarships=row.scholarships or [],
        totals=row.totals,
        fee_status=row.fee_status,
        version=row.version,
    )


def payment_doc(row: Payment) -> PaymentDoc:
    return PaymentDoc(
        id=row.id,
        receipt_no=row.receipt_no,
        student_enrollment_id=row.student_enrollment_id,
        academic_year_id=row.academic_year_id,
        total_amount=row.total_amount,
        payment_date=row.payment_date,
        payment_method=row.payment_method,
        remarks=row.remarks,
        created_by=row.created_by,
        status=row.status,
        reversal_of=row.reversal_of,
        student=row.student,
        academic_year=row.academic_year,
        payment_items=row.payment_items or [],
    )


class FeeRepository:
    """Document-level access to fee structures, enrollments, the payment ledger and receipt counters."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # --- Directory / catalog ---
    async def get_academic_year(self, academic_year_id: str) -> Optional[AcademicYear]:
        return await self.db.get(AcademicYear, academic_year_id)

    async def get_academic_year_by_label(self, year: str) -> Optional[AcademicYear]:
        result = await self.db.execute(select(AcademicYear).where(AcademicYear.year == year))
        return result.scalar_one_or_none()

    async def get_current_academic_year(self) -> Optional[AcademicYear]:
        result = await self.db.execute(
            select(AcademicYear).where(AcademicYear.is_active.is_(True)).order_by(AcademicYear.start_date.desc())
        )
        return result.scalars().first()

    async def get_class(self, class_id: str) -> Optional[SchoolClass]:
        return await self.db.get(SchoolClass, class_id)

    async def get_student(self, student_id: str) -> Optional[Student]:
        return await self.db.get(Student, student_id)

    async def get_student_by_admission_number(self, admission_number: str) -> Optional[Student]:
        result = await self.db.execute(select(Student).where(Student.admission_number == admission_number))
        return result.scalar_one_or_none()

    async def list_fee_templates(self, active_only: bool = True) -> List[FeeTemplateDoc]:
        stmt = select(FeeTemplate).order_by(FeeTemplate.order, FeeTemplate.name)
        if active_only:
            stmt = stmt.where(FeeTemplate.is_active.is_(True))
        result = await self.db.execute(stmt)
        return [
            FeeTemplateDoc(id=t.id, name=t.name, category=t.category, order=t.order, is_active=t.is_active)
            for t in result.scalars().all()
        ]

    async def list_scholarship_templates(self, active_only: bool = True) -> List[ScholarshipTemplateDoc]:
        stmt = select(ScholarshipTemplate).order_by(ScholarshipTemplate.order, ScholarshipTemplate.name)
        if active_only:
            stmt = stmt.where(ScholarshipTemplate.is_active.is_(True))
        result = await self.db.execute(stmt)
        return [
            ScholarshipTemplateDoc(id=t.id, name=t.name, type=t.type, order=t.order, is_active=t.is_active)
            for t in result.scalars().all()
        ]

    # --- Fee structures ---
    async def _fee_structure_row(self, academic_year_id: str, class_id: str) -> Optional[FeeStructure]:
        result = await self.db.execute(
            select(FeeStructure).where(
                FeeStructure.academic_year_id == academic_year_id,
                FeeStructure.class_id == class_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_fee_structure(self, academic_year_id: str, class_id: str) -> Optional[FeeStructureDoc]:
        row = await self._fee_structure_row(academic_year_id, class_id)
        return fee_structure_doc(row) if row else None

    async def get_fee_structure_by_id(self, structure_id: str) -> Optional[FeeStructureDoc]:
        row = await self.db.get(FeeStructure, structure_id)
        return fee_structure_doc(row) if row else None

    async def list_fee_structures(self, academic_year_id: str) -> List[FeeStructureDoc]:
        result = await self.db.execute(
            select(FeeStructure).where(FeeStructure.academic_year_id == academic_year_id).order_by(FeeStructure.name)
        )
        return [fee_structure_doc(r) for r in result.scalars().all()]

    async def save_fee_structure(self, doc: FeeStructureDoc) -> FeeStructureDoc:
        """Insert or overwrite the structure row identified by ``doc.id``."""
        row = await self.db.get(FeeStructure, doc.id)
        if row is None:
            row = FeeStructure(id=doc.id, academic_year_id=doc.academic_year_id, class_id=doc.class_id)
            self.db.add(row)
        row.name = doc.name
        row.description = doc.description
        row.is_active = doc.is_active
        row.academic_year = _dump(doc.academic_year)
        row.school_class = _dump(doc.school_class)
        row.fee_items = _dump_list(doc.fee_items)
        row.scholarship_items = _dump_list(doc.scholarship_items)
        row.total_fees = _dump(doc.total_fees)
        row.total_scholarships = _dump(doc.total_scholarships)
        await self.db.flush()
        return doc

    # --- Enrollments ---
    async def get_enrollment(self, student_id: str, academic_year_id: str) -> Optional[StudentEnrollmentDoc]:
        result = await self.db.execute(
            select(StudentEnrollment).where(
                StudentEnrollment.student_id == student_id,
                StudentEnrollment.academic_year_id == academic_year_id,
            )
        )
        row = result.scalar_one_or_none()
        return enrollment_doc(row) if row else None

    async def get_enrollment_by_id(self, enrollment_id: str) -> Optional[StudentEnrollmentDoc]:
        row = await self.db.get(StudentEnrollment, enrollment_id, populate_existing=True)
        return enrollment_doc(row) if row else None

    async def list_enrollments(
        self,
        academic_year_id: str,
        class_id: Optional[str] = None,
        active_only: bool = True,
    ) -> List[StudentEnrollmentDoc]:
        stmt = select(StudentEnrollment).where(StudentEnrollment.academic_year_id == academic_year_id)
        if class_id:
            stmt = stmt.where(StudentEnrollment.class_id == class_id)
        if active_only:
            stmt = stmt.where(StudentEnrollment.is_active.is_(True))
        result = await self.db.execute(stmt.order_by(StudentEnrollment.created_at))
        return [enrollment_doc(r) for r in result.scalars().all()]

    async def list_enrollment_ids(self, academic_year_id: str) -> List[str]:
        result = await self.db.execute(
            select(StudentEnrollment.id)
            .where(StudentEnrollment.academic_year_id == academic_year_id)
            .order_by(StudentEnrollment.created_at)
        )
        return list(result.scalars().all())

    async def save_enrollment(self, doc: StudentEnrollmentDoc) -> StudentEnrollmentDoc:
        """
        Write ``doc`` back. The stored version must still be the one ``doc`` was read at;
        otherwise ``StaleDataError`` is raised and nothing is written.
        """
        row = await self.db.get(StudentEnrollment, doc.id)
        if row is None:
            row = StudentEnrollment(
                id=doc.id,
                student_id=doc.student_id,
                academic_year_id=doc.academic_year_id,
                enrollment_date=doc.enrollment_date,
                student=_dump(doc.student),
                academic_year=_dump(doc.academic_year),
                school_class=_dump(doc.school_class),
            )
            self.db.add(row)
        elif row.version != doc.version:
            raise StaleDataError(
                f"Enrollment {doc.id} changed from version {doc.version} to {row.version}"
            )
        row.class_id = doc.class_id
        row.section = doc.section
        row.is_active = doc.is_active
        row.fees = _dump_list(doc.fees)
        row.scholarships = _dump_list(doc.scholarships)
        row.totals = _dump(doc.totals)
        row.fee_status = _dump(doc.fee_status)
        row.fee_status_type = doc.fee_status.status.value
        await self.db.flush()
        return doc.model_copy(update={"version": row.version})

    # --- Payment ledger ---
    async def list_payments(self, enrollment_id: str) -> List[PaymentDoc]:
        result = await self.db.execute(
            select(Payment)
            .where(Payment.student_enrollment_id == enrollment_id)
            .order_by(Payment.payment_date, Payment.created_at)
        )
        return [payment_doc(r) for r in result.scalars().all()]

    async def get_payment(self, payment_id: str) -> Optional[PaymentDoc]:
        row = await self.db.get(Payment, payment_id)
        return payment_doc(row) if row else None

    async def get_payment_by_receipt(self, receipt_no: str) -> Optional[PaymentDoc]:
        result = await self.db.execute(select(Payment).where(Payment.receipt_no == receipt_no))
        row = result.scalar_one_or_none()
        return payment_doc(row) if row else None

    async def append_payment(self, doc: PaymentDoc, class_id: Optional[str] = None) -> PaymentDoc:
        if await self.get_payment_by_receipt(doc.receipt_no):
            raise ConflictError(f"Receipt number {doc.receipt_no} already exists")
        self.db.add(
            Payment(
                id=doc.id,
                receipt_no=doc.receipt_no,
                student_enrollment_id=doc.student_enrollment_id,
                academic_year_id=doc.academic_year_id,
                class_id=class_id,
                total_amount=doc.total_amount,
                payment_date=doc.payment_date,
                payment_method=doc.payment_method.value,
                remarks=doc.remarks,
                created_by=doc.created_by,
                status=doc.status.value,
                reversal_of=doc.reversal_of,
                student=_dump(doc.student),
                academic_year=_dump(doc.academic_year),
                payment_items=_dump_list(doc.payment_items),
            )
        )
        await self.db.flush()
        return doc

    # --- Receipt counter ---
    async def increment_receipt_sequence(self, academic_year_id: str) -> int:
        """Atomically bump and return the receipt counter of one academic year."""
        result = await self.db.execute(
            update(ReceiptSequence)
            .where(ReceiptSequence.academic_year_id == academic_year_id)
            .values(last_sequence=ReceiptSequence.last_sequence + 1)
            .returning(ReceiptSequence.last_sequence)
            .execution_options(synchronize_session=False)
        )
        sequence = result.scalar_one_or_none()
        if sequence is not None:
            return sequence
        # first receipt of a year created without a counter row
        self.db.add(ReceiptSequence(academic_year_id=academic_year_id, last_sequence=1))
        await self.db.flush()
        return 1


# --- Audit helper ---
async def log_fee_audit(
    db: AsyncSession,
    reference_table: str,
    reference_id: str,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[str],
) -> None:
    log = FeeAuditLog(
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(log)


async def write_with_retry(db: AsyncSession, label: str, work: Callable[[], Awaitable[T]]) -> T:
    """
    Run one read -> compute -> write cycle on an enrollment and commit it.

    A stale version rolls the transaction back and re-runs ``work`` from a fresh read,
    up to ``settings.enrollment_write_retries`` attempts; after that a ``ConflictError``
    is raised. Service errors roll back and propagate unchanged; any other database
    error rolls back and surfaces as a ``ServiceError``.
    """
    attempts = max(1, settings.enrollment_write_retries)
    for attempt in range(1, attempts + 1):
        try:
            result = await work()
            await db.commit()
            return result
        except StaleDataError:
            await db.rollback()
            logger.warning("Concurrent update on %s (attempt %d/%d)", label, attempt, attempts)
        except IntegrityError:
            await db.rollback()
            raise ConflictError(f"Concurrent write rejected for {label}")
        except ServiceError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Database error on %s: %s", label, e)
            raise ServiceError(f"Database error on {label}") from e
    raise ConflictError(f"{label} was modified concurrently, please retry")
