"""Payments router: collection, reversal, ledger, receipts, legacy import, recalculation."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_actor
from app.core.exceptions import ServiceError
from app.core.fees import BatchResult, PaymentDoc, StudentEnrollmentDoc
from app.db.session import get_db

from .schemas import LegacyPaymentImport, PaymentCreate, PaymentReverse
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "/enrollment/{enrollment_id}",
    response_model=PaymentDoc,
    status_code=status.HTTP_201_CREATED,
)
async def collect_payment(
    enrollment_id: UUID,
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> PaymentDoc:
    """Record a payment against specific fee lines. Returns the payment with its receipt number."""
    try:
        return await service.collect_payment(db, enrollment_id, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/enrollment/{enrollment_id}", response_model=List[PaymentDoc])
async def list_payments(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[PaymentDoc]:
    try:
        return await service.list_payments(db, enrollment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/receipt/{receipt_no}", response_model=PaymentDoc)
async def get_payment_by_receipt(
    receipt_no: str,
    db: AsyncSession = Depends(get_db),
) -> PaymentDoc:
    try:
        return await service.get_payment_by_receipt(db, receipt_no)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{payment_id}/reverse",
    response_model=PaymentDoc,
    status_code=status.HTTP_201_CREATED,
)
async def reverse_payment(
    payment_id: UUID,
    payload: PaymentReverse,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> PaymentDoc:
    """Cancel a payment. A reversal entry is appended; the original receipt stays in the ledger."""
    try:
        return await service.reverse_payment(db, payment_id, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/import", response_model=BatchResult)
async def import_legacy_payments(
    payload: LegacyPaymentImport,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> BatchResult:
    """Import historical receipts. Each row is reported as imported or failed with a reason."""
    return await service.import_legacy_payments(db, payload, actor)


@router.post("/recalculate/enrollment/{enrollment_id}", response_model=StudentEnrollmentDoc)
async def recalculate_enrollment(
    enrollment_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> StudentEnrollmentDoc:
    try:
        return await service.recalculate_enrollment(db, enrollment_id, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/recalculate/academic-year/{academic_year_id}", response_model=BatchResult)
async def recalculate_academic_year(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> BatchResult:
    try:
        return await service.recalculate_academic_year(db, academic_year_id, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
