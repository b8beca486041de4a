"""Enrollments router: enroll, fee edits, waiver, deactivation, reads."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_actor
from app.core.exceptions import ServiceError
from app.core.fees import StudentEnrollmentDoc
from app.db.session import get_db

from .schemas import EnrollmentCreate, EnrollmentFeesUpdate, FeeWaiverRequest
from . import service

router = APIRouter(prefix="/api/v1/enrollments", tags=["enrollments"])


@router.post(
    "",
    response_model=StudentEnrollmentDoc,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    payload: EnrollmentCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> StudentEnrollmentDoc:
    try:
        return await service.enroll_student(db, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[StudentEnrollmentDoc])
async def list_enrollments(
    academic_year_id: UUID,
    class_id: Optional[UUID] = None,
    active_only: bool = Query(True, description="Return only active enrollments by default"),
    db: AsyncSession = Depends(get_db),
) -> List[StudentEnrollmentDoc]:
    return await service.list_enrollments(db, academic_year_id, class_id=class_id, active_only=active_only)


@router.get("/student/{student_id}", response_model=StudentEnrollmentDoc)
async def get_student_enrollment(
    student_id: UUID,
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentEnrollmentDoc:
    try:
        return await service.get_student_enrollment(db, student_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{enrollment_id}", response_model=StudentEnrollmentDoc)
async def get_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentEnrollmentDoc:
    try:
        return await service.get_enrollment(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{enrollment_id}/fees", response_model=StudentEnrollmentDoc)
async def update_enrollment_fees(
    enrollment_id: UUID,
    payload: EnrollmentFeesUpdate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> StudentEnrollmentDoc:
    """Change custom amounts or scholarship selection; balances are re-derived from recorded payments."""
    try:
        return await service.update_enrollment_fees(db, enrollment_id, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{enrollment_id}/waiver", response_model=StudentEnrollmentDoc)
async def set_fee_waiver(
    enrollment_id: UUID,
    payload: FeeWaiverRequest,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> StudentEnrollmentDoc:
    try:
        return await service.set_fee_waiver(db, enrollment_id, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{enrollment_id}/deactivate", response_model=StudentEnrollmentDoc)
async def deactivate_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> StudentEnrollmentDoc:
    try:
        return await service.deactivate_enrollment(db, enrollment_id, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
