import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, NotFoundError, ValidationError
from app.core.models import AcademicYear, ReceiptSequence
from app.db.repository import to_id

from .schemas import AcademicYearCreate, AcademicYearResponse, AcademicYearUpdate

logger = logging.getLogger(__name__)


def _to_response(ay: AcademicYear) -> AcademicYearResponse:
    return AcademicYearResponse(
        id=ay.id,
        year=ay.year,
        start_date=ay.start_date,
        end_date=ay.end_date,
        is_active=ay.is_active,
        created_at=ay.created_at,
        updated_at=ay.updated_at,
    )


def _validate_dates(start_date: date, end_date: date) -> None:
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date")


async def _get_or_404(db: AsyncSession, academic_year_id) -> AcademicYear:
    ay = await db.get(AcademicYear, to_id(academic_year_id))
    if not ay:
        raise NotFoundError("Academic year not found")
    return ay


async def create_academic_year(db: AsyncSession, payload: AcademicYearCreate) -> AcademicYearResponse:
    """Create academic year with its receipt counter. If set_as_current, every other year becomes inactive."""
    _validate_dates(payload.start_date, payload.end_date)
    year = payload.year.strip()
    existing = await db.execute(select(AcademicYear).where(AcademicYear.year == year))
    if existing.scalar_one_or_none():
        raise DuplicateError(f"Academic year '{year}' already exists")
    if payload.set_as_current:
        await db.execute(update(AcademicYear).values(is_active=False))
    ay = AcademicYear(
        year=year,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=payload.set_as_current,
    )
    db.add(ay)
    try:
        await db.flush()
        db.add(ReceiptSequence(academic_year_id=ay.id, last_sequence=0))
        await db.commit()
        await db.refresh(ay)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(f"Academic year '{year}' already exists")
    logger.info("Academic year %s created (current=%s)", ay.year, ay.is_active)
    return _to_response(ay)


async def list_academic_years(db: AsyncSession) -> List[AcademicYearResponse]:
    result = await db.execute(select(AcademicYear).order_by(AcademicYear.start_date.desc()))
    return [_to_response(ay) for ay in result.scalars().all()]


async def get_academic_year(db: AsyncSession, academic_year_id) -> AcademicYearResponse:
    return _to_response(await _get_or_404(db, academic_year_id))


async def get_current_academic_year(db: AsyncSession) -> Optional[AcademicYearResponse]:
    """The active academic year; default context when a caller does not name one."""
    result = await db.execute(
        select(AcademicYear).where(AcademicYear.is_active.is_(True)).order_by(AcademicYear.start_date.desc())
    )
    ay = result.scalars().first()
    return _to_response(ay) if ay else None


async def update_academic_year(
    db: AsyncSession,
    academic_year_id,
    payload: AcademicYearUpdate,
) -> AcademicYearResponse:
    """Update the year record. Existing structure/enrollment snapshots are not refreshed."""
    ay = await _get_or_404(db, academic_year_id)
    if payload.year is not None:
        other = await db.execute(
            select(AcademicYear).where(
                AcademicYear.year == payload.year.strip(),
                AcademicYear.id != ay.id,
            )
        )
        if other.scalar_one_or_none():
            raise DuplicateError(f"Academic year '{payload.year}' already exists")
        ay.year = payload.year.strip()
    if payload.start_date is not None:
        ay.start_date = payload.start_date
    if payload.end_date is not None:
        ay.end_date = payload.end_date
    _validate_dates(ay.start_date, ay.end_date)
    await db.commit()
    await db.refresh(ay)
    return _to_response(ay)


async def set_academic_year_current(db: AsyncSession, academic_year_id) -> AcademicYearResponse:
    """Set this academic year as current. All others become is_active=false (one transaction)."""
    ay = await _get_or_404(db, academic_year_id)
    await db.execute(update(AcademicYear).where(AcademicYear.id != ay.id).values(is_active=False))
    ay.is_active = True
    await db.commit()
    await db.refresh(ay)
    logger.info("Academic year %s set as current", ay.year)
    return _to_response(ay)
