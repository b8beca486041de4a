"""Fee structure service: build, replace, copy and look up the plan of one (academic year, class)."""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateError, NotFoundError
from app.core.fees import (
    FeeItemOptions,
    FeeStructureDoc,
    ScholarshipItemOptions,
    build_fee_structure,
    copy_fee_structure as copy_structure_doc,
)
from app.core.models import AcademicYear, SchoolClass
from app.db.repository import (
    FeeRepository,
    academic_year_snapshot,
    class_snapshot,
    log_fee_audit,
    to_id,
)

from .schemas import FeeStructureCopy, FeeStructureCreate

logger = logging.getLogger(__name__)


def _audit_value(doc: FeeStructureDoc) -> dict:
    return {
        "name": doc.name,
        "total_fees": str(doc.total_fees.total),
        "total_scholarships": str(doc.total_scholarships.total),
        "fee_items": len(doc.fee_items),
        "scholarship_items": len(doc.scholarship_items),
    }


async def _load_year_and_class(repo: FeeRepository, academic_year_id, class_id) -> Tuple[AcademicYear, SchoolClass]:
    ay = await repo.get_academic_year(to_id(academic_year_id))
    if not ay:
        raise NotFoundError("Academic year not found")
    cl = await repo.get_class(to_id(class_id))
    if not cl:
        raise NotFoundError("Class not found")
    return ay, cl


def _overlay(options, given: dict):
    """Payload fields that were sent replace the carried-over ones."""
    return replace(options, **{k: v for k, v in given.items() if v is not None})


async def _build(
    repo: FeeRepository,
    payload: FeeStructureCreate,
    ay: AcademicYear,
    cl: SchoolClass,
    previous: Optional[FeeStructureDoc] = None,
) -> FeeStructureDoc:
    fee_templates = await repo.list_fee_templates(active_only=True)
    scholarship_templates = await repo.list_scholarship_templates(active_only=True)
    default_amounts = {}
    scholarship_amounts = {}
    fee_options = {}
    scholarship_options = {}
    if previous is not None:
        # replacing keeps amounts and flags of still-active templates unless restated
        active_fee_ids = {t.id for t in fee_templates}
        active_sch_ids = {t.id for t in scholarship_templates}
        for i in previous.fee_items:
            if i.template_id in active_fee_ids:
                default_amounts[i.template_id] = i.amount
                fee_options[i.template_id] = FeeItemOptions(
                    is_compulsory=i.is_compulsory,
                    is_editable_during_enrollment=i.is_editable_during_enrollment,
                )
        for i in previous.scholarship_items:
            if i.template_id in active_sch_ids:
                scholarship_amounts[i.template_id] = i.amount
                scholarship_options[i.template_id] = ScholarshipItemOptions(
                    is_auto_applied=i.is_auto_applied,
                    is_editable_during_enrollment=i.is_editable_during_enrollment,
                )
    default_amounts.update({str(k): v for k, v in payload.default_amounts.items()})
    scholarship_amounts.update({str(k): v for k, v in payload.scholarship_amounts.items()})
    for i in payload.fee_items:
        tid = str(i.template_id)
        fee_options[tid] = _overlay(
            fee_options.get(tid, FeeItemOptions()),
            i.model_dump(exclude={"template_id"}),
        )
    for i in payload.scholarship_items:
        tid = str(i.template_id)
        scholarship_options[tid] = _overlay(
            scholarship_options.get(tid, ScholarshipItemOptions()),
            i.model_dump(exclude={"template_id"}),
        )

    return build_fee_structure(
        academic_year_id=ay.id,
        class_id=cl.id,
        academic_year=academic_year_snapshot(ay),
        school_class=class_snapshot(cl),
        fee_templates=fee_templates,
        scholarship_templates=scholarship_templates,
        default_amounts=default_amounts,
        scholarship_amounts=scholarship_amounts,
        fee_options=fee_options,
        scholarship_options=scholarship_options,
        name=(payload.name or "").strip() or None,
        description=(payload.description or "").strip() or None,
    )


async def create_fee_structure(db: AsyncSession, payload: FeeStructureCreate, actor: str) -> FeeStructureDoc:
    """Create the structure for (academic year, class). Fails with DuplicateError if one already exists."""
    repo = FeeRepository(db)
    ay, cl = await _load_year_and_class(repo, payload.academic_year_id, payload.class_id)
    if await repo.get_fee_structure(ay.id, cl.id):
        raise DuplicateError(f"Fee structure already exists for {cl.class_name} in {ay.year}")
    doc = await _build(repo, payload, ay, cl)
    try:
        await repo.save_fee_structure(doc)
        await log_fee_audit(db, "fee_structures", doc.id, "CREATE", None, _audit_value(doc), actor)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(
            f"Fee structure already exists for {doc.school_class.class_name} in {doc.academic_year.year}"
        )
    logger.info(
        "Fee structure %s created for %s/%s: total fees %s",
        doc.id, ay.year, cl.class_name, doc.total_fees.total,
    )
    return doc


async def create_or_replace_fee_structure(
    db: AsyncSession,
    payload: FeeStructureCreate,
    actor: str,
) -> FeeStructureDoc:
    """Upsert on (academic year, class). Existing enrollments keep the lines they were materialized with."""
    repo = FeeRepository(db)
    ay, cl = await _load_year_and_class(repo, payload.academic_year_id, payload.class_id)
    previous = await repo.get_fee_structure(ay.id, cl.id)
    doc = await _build(repo, payload, ay, cl, previous)
    if previous is not None:
        doc = doc.model_copy(update={"id": previous.id})
    try:
        await repo.save_fee_structure(doc)
        await log_fee_audit(
            db, "fee_structures", doc.id,
            "REPLACE" if previous else "CREATE",
            _audit_value(previous) if previous else None,
            _audit_value(doc),
            actor,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(
            f"Fee structure for {doc.school_class.class_name} in {doc.academic_year.year} was created concurrently"
        )
    logger.info("Fee structure %s %s for %s/%s", doc.id, "replaced" if previous else "created", ay.year, cl.class_name)
    return doc


async def copy_fee_structure(db: AsyncSession, payload: FeeStructureCopy, actor: str) -> FeeStructureDoc:
    """Clone the source (year, class) structure onto an unoccupied target (year, class)."""
    repo = FeeRepository(db)
    source = await repo.get_fee_structure(to_id(payload.source_academic_year_id), to_id(payload.source_class_id))
    if not source:
        raise NotFoundError("Source fee structure not found")
    ay, cl = await _load_year_and_class(repo, payload.target_academic_year_id, payload.target_class_id)
    if await repo.get_fee_structure(ay.id, cl.id):
        raise DuplicateError(f"Fee structure already exists for {cl.class_name} in {ay.year}")
    doc = copy_structure_doc(
        source,
        academic_year_id=ay.id,
        class_id=cl.id,
        academic_year=academic_year_snapshot(ay),
        school_class=class_snapshot(cl),
        name=(payload.name or "").strip() or None,
    )
    try:
        await repo.save_fee_structure(doc)
        await log_fee_audit(
            db, "fee_structures", doc.id, "COPY",
            {"source_id": source.id}, _audit_value(doc), actor,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateError(
            f"Fee structure already exists for {doc.school_class.class_name} in {doc.academic_year.year}"
        )
    logger.info("Fee structure %s copied to %s/%s as %s", source.id, ay.year, cl.class_name, doc.id)
    return doc


async def get_fee_structure(db: AsyncSession, class_id, academic_year_id=None) -> FeeStructureDoc:
    """
    Structure of one class. Without ``academic_year_id`` the current (active) academic
    year is used; NotFoundError if there is none.
    """
    repo = FeeRepository(db)
    if academic_year_id is None:
        current = await repo.get_current_academic_year()
        if not current:
            raise NotFoundError("No current academic year is set")
        academic_year_id = current.id
    doc = await repo.get_fee_structure(to_id(academic_year_id), to_id(class_id))
    if not doc:
        raise NotFoundError("Fee structure not found")
    return doc


async def list_fee_structures(db: AsyncSession, academic_year_id) -> List[FeeStructureDoc]:
    return await FeeRepository(db).list_fee_structures(to_id(academic_year_id))
