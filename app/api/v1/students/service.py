from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import StudentStatus
from app.core.exceptions import DuplicateError, NotFoundError
from app.core.models import Student
from app.db.repository import to_id

from .schemas import StudentCreate, StudentResponse, StudentUpdate


def _to_response(st: Student) -> StudentResponse:
    return StudentResponse(
        id=st.id,
        admission_number=st.admission_number,
        name=st.name,
        father_name=st.father_name,
        mobile_no=st.mobile_no,
        status=st.status,
        created_at=st.created_at,
        updated_at=st.updated_at,
    )


async def _get_or_404(db: AsyncSession, student_id) -> Student:
    st = await db.get(Student, to_id(student_id))
    if not st:
        raise NotFoundError("Student not found")
    return st


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    try:
        st = Student(
            admission_number=payload.admission_number.strip(),
            name=payload.name.strip(),
            father_name=payload.father_name.strip(),
            mobile_no=(payload.mobile_no or "").strip() or None,
            status=StudentStatus.ACTIVE.value,
        )
        db.add(st)
        await db.commit()
        await db.refresh(st)
        return _to_response(st)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(f"Admission number {payload.admission_number} already exists")


async def list_students(db: AsyncSession, status_filter: Optional[StudentStatus] = None) -> List[StudentResponse]:
    stmt = select(Student)
    if status_filter:
        stmt = stmt.where(Student.status == status_filter.value)
    result = await db.execute(stmt.order_by(Student.admission_number))
    return [_to_response(st) for st in result.scalars().all()]


async def get_student(db: AsyncSession, student_id) -> StudentResponse:
    return _to_response(await _get_or_404(db, student_id))


async def update_student(db: AsyncSession, student_id, payload: StudentUpdate) -> StudentResponse:
    """Update the master record. Snapshots already taken by enrollments and receipts stay as they were."""
    st = await _get_or_404(db, student_id)
    if payload.name is not None:
        st.name = payload.name.strip()
    if payload.father_name is not None:
        st.father_name = payload.father_name.strip()
    if payload.mobile_no is not None:
        st.mobile_no = payload.mobile_no.strip() or None
    if payload.status is not None:
        st.status = payload.status.value
    await db.commit()
    await db.refresh(st)
    return _to_response(st)
