"""Fee structures router: create, replace, copy, read."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_actor
from app.core.exceptions import ServiceError
from app.core.fees import FeeStructureDoc
from app.db.session import get_db

from .schemas import FeeStructureCopy, FeeStructureCreate
from . import service

router = APIRouter(prefix="/api/v1/fee-structures", tags=["fee-structures"])


@router.post(
    "",
    response_model=FeeStructureDoc,
    status_code=status.HTTP_201_CREATED,
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> FeeStructureDoc:
    """Create the structure of one class for one academic year. 409 if it already exists."""
    try:
        return await service.create_fee_structure(db, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("", response_model=FeeStructureDoc)
async def create_or_replace_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> FeeStructureDoc:
    try:
        return await service.create_or_replace_fee_structure(db, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/copy",
    response_model=FeeStructureDoc,
    status_code=status.HTTP_201_CREATED,
)
async def copy_fee_structure(
    payload: FeeStructureCopy,
    db: AsyncSession = Depends(get_db),
    actor: str = Depends(get_actor),
) -> FeeStructureDoc:
    try:
        return await service.copy_fee_structure(db, payload, actor)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=FeeStructureDoc)
async def get_fee_structure(
    class_id: UUID,
    academic_year_id: Optional[UUID] = Query(None, description="Defaults to the current academic year"),
    db: AsyncSession = Depends(get_db),
) -> FeeStructureDoc:
    try:
        return await service.get_fee_structure(db, class_id, academic_year_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/academic-year/{academic_year_id}", response_model=List[FeeStructureDoc])
async def list_fee_structures(
    academic_year_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[FeeStructureDoc]:
    return await service.list_fee_structures(db, academic_year_id)
