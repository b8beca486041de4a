"""Scholarship templates router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_actor
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import ScholarshipTemplateCreate, ScholarshipTemplateResponse, ScholarshipTemplateUpdate
from . import service

router = APIRouter(prefix="/api/v1/scholarship-templates", tags=["scholarship-templates"])


@router.post(
    "",
    response_model=ScholarshipTemplateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(get_actor)],
)
async def create_scholarship_template(
    payload: ScholarshipTemplateCreate,
    db: AsyncSession = Depends(get_db),
) -> ScholarshipTemplateResponse:
    try:
        return await service.create_scholarship_template(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ScholarshipTemplateResponse])
async def list_scholarship_templates(
    active_only: bool = Query(True, description="Return only active templates by default"),
    db: AsyncSession = Depends(get_db),
) -> List[ScholarshipTemplateResponse]:
    return await service.list_scholarship_templates(db, active_only=active_only)


@router.get("/{template_id}", response_model=ScholarshipTemplateResponse)
async def get_scholarship_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ScholarshipTemplateResponse:
    try:
        return await service.get_scholarship_template(db, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{template_id}",
    response_model=ScholarshipTemplateResponse,
    dependencies=[Depends(get_actor)],
)
async def update_scholarship_template(
    template_id: UUID,
    payload: ScholarshipTemplateUpdate,
    db: AsyncSession = Depends(get_db),
) -> ScholarshipTemplateResponse:
    try:
        return await service.update_scholarship_template(db, template_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{template_id}",
    response_model=ScholarshipTemplateResponse,
    dependencies=[Depends(get_actor)],
)
async def deactivate_scholarship_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ScholarshipTemplateResponse:
    """Soft delete: the template is marked inactive."""
    try:
        return await service.deactivate_scholarship_template(db, template_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
