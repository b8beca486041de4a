from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, NotFoundError
from app.core.models import ScholarshipTemplate
from app.db.repository import to_id

from .schemas import ScholarshipTemplateCreate, ScholarshipTemplateResponse, ScholarshipTemplateUpdate


def _to_response(st: ScholarshipTemplate) -> ScholarshipTemplateResponse:
    return ScholarshipTemplateResponse(
        id=st.id,
        name=st.name,
        description=st.description,
        type=st.type,
        order=st.order,
        is_active=st.is_active,
        created_at=st.created_at,
        updated_at=st.updated_at,
    )


async def _get_or_404(db: AsyncSession, template_id) -> ScholarshipTemplate:
    st = await db.get(ScholarshipTemplate, to_id(template_id))
    if not st:
        raise NotFoundError("Scholarship template not found")
    return st


async def create_scholarship_template(
    db: AsyncSession,
    payload: ScholarshipTemplateCreate,
) -> ScholarshipTemplateResponse:
    name = payload.name.strip()
    try:
        st = ScholarshipTemplate(
            name=name,
            description=(payload.description or "").strip() or None,
            type=payload.type.value,
            order=payload.order,
            is_active=True,
        )
        db.add(st)
        await db.commit()
        await db.refresh(st)
        return _to_response(st)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(f"Scholarship template '{name}' already exists")


async def list_scholarship_templates(
    db: AsyncSession,
    active_only: bool = True,
) -> List[ScholarshipTemplateResponse]:
    stmt = select(ScholarshipTemplate)
    if active_only:
        stmt = stmt.where(ScholarshipTemplate.is_active.is_(True))
    stmt = stmt.order_by(ScholarshipTemplate.order, ScholarshipTemplate.name)
    result = await db.execute(stmt)
    return [_to_response(st) for st in result.scalars().all()]


async def get_scholarship_template(db: AsyncSession, template_id) -> ScholarshipTemplateResponse:
    return _to_response(await _get_or_404(db, template_id))


async def update_scholarship_template(
    db: AsyncSession,
    template_id,
    payload: ScholarshipTemplateUpdate,
) -> ScholarshipTemplateResponse:
    st = await _get_or_404(db, template_id)
    if payload.name is not None:
        st.name = payload.name.strip()
    if payload.description is not None:
        st.description = payload.description.strip() or None
    if payload.type is not None:
        st.type = payload.type.value
    if payload.order is not None:
        st.order = payload.order
    if payload.is_active is not None:
        st.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(st)
        return _to_response(st)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(f"Scholarship template '{payload.name}' already exists")


async def deactivate_scholarship_template(db: AsyncSession, template_id) -> ScholarshipTemplateResponse:
    st = await _get_or_404(db, template_id)
    st.is_active = False
    await db.commit()
    await db.refresh(st)
    return _to_response(st)
