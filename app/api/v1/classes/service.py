from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, NotFoundError
from app.core.models import SchoolClass
from app.db.repository import to_id

from .schemas import ClassBulkItem, ClassCreate, ClassResponse, ClassUpdate


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        class_name=c.class_name,
        display_order=c.display_order,
        is_active=c.is_active,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def _get_or_404(db: AsyncSession, class_id) -> SchoolClass:
    obj = await db.get(SchoolClass, to_id(class_id))
    if not obj:
        raise NotFoundError("Class not found")
    return obj


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    try:
        obj = SchoolClass(
            class_name=payload.class_name.strip(),
            display_order=payload.display_order,
            is_active=True,
        )
        db.add(obj)
        await db.commit()
        await db.refresh(obj)
        return _class_to_response(obj)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError("Class name already exists")


async def create_classes_bulk(db: AsyncSession, payload: List[ClassBulkItem]) -> List[ClassResponse]:
    """Create multiple classes in one request. All-or-nothing: rollback on first duplicate name."""
    if not payload:
        return []
    try:
        created = []
        for item in payload:
            obj = SchoolClass(class_name=item.class_name.strip(), display_order=item.order, is_active=True)
            db.add(obj)
            await db.flush()
            created.append(obj)
        await db.commit()
        for obj in created:
            await db.refresh(obj)
        return [_class_to_response(c) for c in created]
    except IntegrityError:
        await db.rollback()
        raise DuplicateError("One or more class names already exist")


async def list_classes(db: AsyncSession, active_only: bool = True) -> List[ClassResponse]:
    stmt = select(SchoolClass)
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = stmt.order_by(SchoolClass.display_order.nullslast(), SchoolClass.class_name)
    result = await db.execute(stmt)
    return [_class_to_response(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, class_id) -> ClassResponse:
    return _class_to_response(await _get_or_404(db, class_id))


async def update_class(db: AsyncSession, class_id, payload: ClassUpdate) -> ClassResponse:
    obj = await _get_or_404(db, class_id)
    if payload.class_name is not None:
        obj.class_name = payload.class_name.strip()
    if payload.display_order is not None:
        obj.display_order = payload.display_order
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(obj)
        return _class_to_response(obj)
    except IntegrityError:
        await db.rollback()
        raise DuplicateError("Class name already exists")


async def deactivate_class(db: AsyncSession, class_id) -> None:
    """Soft delete. Fee structures and enrollments keep their class snapshot."""
    obj = await _get_or_404(db, class_id)
    obj.is_active = False
    await db.commit()
