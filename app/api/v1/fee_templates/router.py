"""Fee templates router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_actor
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import FeeTemplateCreate, FeeTemplateResponse, FeeTemplateUpdate
from . import service

router = APIRouter(prefix="/api/v1/fee-templates", tags=["fee-templates"])


@router.post(
    "",
    response_model=FeeTemplateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(get_actor)],
)
async def create_fee_template(
    payload: FeeTemplateCreate,
    db: AsyncSession = Depends(get_db),
) -> FeeTemplateResponse:
    try:
        return await service.create_fee_template(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[FeeTemplateResponse])
async def list_fee_templates(
    active_only: bool = Query(True, description="Return only active templates by default"),
    db: AsyncSession = Depends(get_db),
) -> List[FeeTemplateResponse]:
    return await service.list_fee_templates(db, active_only=active_only)


@router.get("/{template_id}", response_model=FeeTemplateResponse)
async def get_fee_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeTemplateResponse:
    try:
        return await service.get_fee_template(db, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{template_id}",
    response_model=FeeTemplateResponse,
    dependencies=[Depends(get_actor)],
)
async def update_fee_template(
    template_id: UUID,
    payload: FeeTemplateUpdate,
    db: AsyncSession = Depends(get_db),
) -> FeeTemplateResponse:
    try:
        return await service.update_fee_template(db, template_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{template_id}",
    response_model=FeeTemplateResponse,
    dependencies=[Depends(get_actor)],
)
async def deactivate_fee_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeeTemplateResponse:
    """Soft delete: the template is marked inactive."""
    try:
        return await service.deactivate_fee_template(db, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
