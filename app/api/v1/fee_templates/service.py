"""Fee template service layer."""

from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, NotFoundError
from app.core.models import FeeTemplate
from app.db.repository import to_id

from .schemas import FeeTemplateCreate, FeeTemplateResponse, FeeTemplateUpdate


def _to_response(ft: FeeTemplate) -> FeeTemplateResponse:
    return FeeTemplateResponse(
        id=ft.id,
        name=ft.name,
        description=ft.description,
        category=ft.category,
        order=ft.order,
        is_active=ft.is_active,
        created_at=ft.created_at,
        updated_at=ft.updated_at,
    )


async def _get_or_404(db: AsyncSession, template_id) -> FeeTemplate:
    ft = await db.get(FeeTemplate, to_id(template_id))
    if not ft:
        raise NotFoundError("Fee template not found")
    return ft


async def create_fee_template(db: AsyncSession, payload: FeeTemplateCreate) -> FeeTemplateResponse:
    name = payload.name.strip()
    try:
        ft = FeeTemplate(
            name=name,
            description=(payload.description or "").strip() or None,
            category=payload.category.value,
            order=payload.order,
            is_active=True,
        )
        db.add(ft)
        await db.commit()
        await db.refresh(ft)
        return _to_response(ft)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(f"Fee template '{name}' already exists")


async def list_fee_templates(db: AsyncSession, active_only: bool = True) -> List[FeeTemplateResponse]:
    stmt = select(FeeTemplate)
    if active_only:
        stmt = stmt.where(FeeTemplate.is_active.is_(True))
    stmt = stmt.order_by(FeeTemplate.order, FeeTemplate.name)
    result = await db.execute(stmt)
    return [_to_response(ft) for ft in result.scalars().all()]


async def get_fee_template(db: AsyncSession, template_id) -> FeeTemplateResponse:
    return _to_response(await _get_or_404(db, template_id))


async def update_fee_template(db: AsyncSession, template_id, payload: FeeTemplateUpdate) -> FeeTemplateResponse:
    """Catalog edits only affect structures built afterwards; existing items keep their copied name/category."""
    ft = await _get_or_404(db, template_id)
    if payload.name is not None:
        ft.name = payload.name.strip()
    if payload.description is not None:
        ft.description = payload.description.strip() or None
    if payload.category is not None:
        ft.category = payload.category.value
    if payload.order is not None:
        ft.order = payload.order
    if payload.is_active is not None:
        ft.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(ft)
        return _to_response(ft)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(f"Fee template '{payload.name}' already exists")


async def deactivate_fee_template(db: AsyncSession, template_id) -> FeeTemplateResponse:
    """Templates are never deleted; inactive ones are skipped when building new structures."""
    ft = await _get_or_404(db, template_id)
    ft.is_active = False
    await db.commit()
    await db.refresh(ft)
    return _to_response(ft)
