"""Reports router: fee collection summary and outstanding fees."""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PaymentMethod
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import FeeCollectionReport, OutstandingFeesReport
from . import service

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("/fee-collection", response_model=FeeCollectionReport)
async def fee_collection_report(
    date_from: date,
    date_to: date,
    academic_year_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    payment_method: Optional[PaymentMethod] = None,
    created_by: Optional[str] = Query(None, description="Collector (X-Actor of the payment)"),
    db: AsyncSession = Depends(get_db),
) -> FeeCollectionReport:
    try:
        return await service.get_fee_collection_report(
            db,
            date_from,
            date_to,
            academic_year_id=academic_year_id,
            class_id=class_id,
            payment_method=payment_method,
            created_by=created_by,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/outstanding-fees", response_model=OutstandingFeesReport)
async def outstanding_fees_report(
    academic_year_id: Optional[UUID] = Query(None, description="Defaults to the current academic year"),
    class_id: Optional[UUID] = None,
    section: Optional[str] = None,
    min_outstanding: Decimal = Query(Decimal("1"), ge=0),
    db: AsyncSession = Depends(get_db),
) -> OutstandingFeesReport:
    try:
        return await service.get_outstanding_fees_report(
            db,
            academic_year_id=academic_year_id,
            class_id=class_id,
            section=section,
            min_outstanding=min_outstanding,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
