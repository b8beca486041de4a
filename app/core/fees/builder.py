"""
Fee structure builder.

Composes the fee/scholarship plan of one (academic year, class) pair from the active
catalog templates plus class-specific default amounts, and keeps the structure totals
as a pure aggregation of its items.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Mapping, Optional

from app.core.enums import FeeCategory
from app.core.exceptions import NotFoundError, ValidationError

from .documents import (
    AcademicYearSnapshot,
    ClassSnapshot,
    FeeItem,
    FeeStructureDoc,
    FeeTemplateDoc,
    FeeTotals,
    ScholarshipItem,
    ScholarshipTemplateDoc,
    ScholarshipTotals,
    new_id,
)
from .totals import money_sum, to_decimal


@dataclass
class FeeItemOptions:
    """Admin choices for one fee item; None keeps the derived default."""

    amount: Optional[Decimal] = None
    is_compulsory: Optional[bool] = None
    is_editable_during_enrollment: Optional[bool] = None
    order: Optional[int] = None


@dataclass
class ScholarshipItemOptions:
    amount: Optional[Decimal] = None
    is_auto_applied: Optional[bool] = None
    is_editable_during_enrollment: Optional[bool] = None
    order: Optional[int] = None


def compute_fee_totals(items: List[FeeItem]) -> FeeTotals:
    compulsory = money_sum(i.amount for i in items if i.is_compulsory)
    optional = money_sum(i.amount for i in items if not i.is_compulsory)
    return FeeTotals(compulsory=compulsory, optional=optional, total=compulsory + optional)


def compute_scholarship_totals(items: List[ScholarshipItem]) -> ScholarshipTotals:
    auto = money_sum(i.amount for i in items if i.is_auto_applied)
    manual = money_sum(i.amount for i in items if not i.is_auto_applied)
    return ScholarshipTotals(auto_applied=auto, manual=manual, total=auto + manual)


def _check_amount(amount: Decimal, label: str) -> Decimal:
    amount = to_decimal(amount)
    if amount < 0:
        raise ValidationError(f"Amount for {label} cannot be negative")
    return amount


def _check_option_targets(options: Mapping[str, object], known: Dict[str, str], kind: str) -> None:
    missing = sorted(tid for tid in options if tid not in known)
    if missing:
        raise NotFoundError(f"No active {kind} template for id(s): {', '.join(missing)}")


def build_fee_items(
    templates: List[FeeTemplateDoc],
    default_amounts: Optional[Mapping[str, Decimal]] = None,
    options: Optional[Mapping[str, FeeItemOptions]] = None,
) -> List[FeeItem]:
    default_amounts = default_amounts or {}
    options = options or {}
    active = [t for t in templates if t.is_active]
    _check_option_targets(options, {t.id: t.name for t in active}, "fee")
    _check_option_targets(default_amounts, {t.id: t.name for t in active}, "fee")

    items: List[FeeItem] = []
    for tpl in active:
        opt = options.get(tpl.id) or FeeItemOptions()
        if opt.amount is not None:
            amount = opt.amount
        else:
            amount = default_amounts.get(tpl.id, Decimal("0"))
        items.append(
            FeeItem(
                template_id=tpl.id,
                template_name=tpl.name,
                template_category=tpl.category,
                amount=_check_amount(amount, tpl.name),
                is_compulsory=(
                    opt.is_compulsory if opt.is_compulsory is not None else tpl.category == FeeCategory.REGULAR
                ),
                is_editable_during_enrollment=bool(opt.is_editable_during_enrollment),
                order=opt.order if opt.order is not None else tpl.order,
            )
        )
    # template order (or admin override), ties broken by case-sensitive name
    items.sort(key=lambda i: (i.order, i.template_name))
    return items


def build_scholarship_items(
    templates: List[ScholarshipTemplateDoc],
    default_amounts: Optional[Mapping[str, Decimal]] = None,
    options: Optional[Mapping[str, ScholarshipItemOptions]] = None,
) -> List[ScholarshipItem]:
    default_amounts = default_amounts or {}
    options = options or {}
    active = [t for t in templates if t.is_active]
    _check_option_targets(options, {t.id: t.name for t in active}, "scholarship")
    _check_option_targets(default_amounts, {t.id: t.name for t in active}, "scholarship")

    items: List[ScholarshipItem] = []
    for tpl in active:
        opt = options.get(tpl.id) or ScholarshipItemOptions()
        amount = opt.amount if opt.amount is not None else default_amounts.get(tpl.id, Decimal("0"))
        items.append(
            ScholarshipItem(
                template_id=tpl.id,
                template_name=tpl.name,
                template_type=tpl.type,
                amount=_check_amount(amount, tpl.name),
                is_auto_applied=bool(opt.is_auto_applied),
                is_editable_during_enrollment=bool(opt.is_editable_during_enrollment),
                order=opt.order if opt.order is not None else tpl.order,
            )
        )
    items.sort(key=lambda i: (i.order, i.template_name))
    return items


def build_fee_structure(
    academic_year_id: str,
    class_id: str,
    academic_year: AcademicYearSnapshot,
    school_class: ClassSnapshot,
    fee_templates: List[FeeTemplateDoc],
    scholarship_templates: List[ScholarshipTemplateDoc],
    default_amounts: Optional[Mapping[str, Decimal]] = None,
    scholarship_amounts: Optional[Mapping[str, Decimal]] = None,
    fee_options: Optional[Mapping[str, FeeItemOptions]] = None,
    scholarship_options: Optional[Mapping[str, ScholarshipItemOptions]] = None,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> FeeStructureDoc:
    fee_items = build_fee_items(fee_templates, default_amounts, fee_options)
    scholarship_items = build_scholarship_items(scholarship_templates, scholarship_amounts, scholarship_options)
    return FeeStructureDoc(
        academic_year_id=academic_year_id,
        class_id=class_id,
        name=name or f"{school_class.class_name} - {academic_year.year}",
        description=description,
        academic_year=academic_year,
        school_class=school_class,
        fee_items=fee_items,
        scholarship_items=scholarship_items,
        total_fees=compute_fee_totals(fee_items),
        total_scholarships=compute_scholarship_totals(scholarship_items),
    )


def refresh_totals(structure: FeeStructureDoc) -> FeeStructureDoc:
    """Return the structure with totals re-derived from its items."""
    return structure.model_copy(
        update={
            "total_fees": compute_fee_totals(structure.fee_items),
            "total_scholarships": compute_scholarship_totals(structure.scholarship_items),
        }
    )


def copy_fee_structure(
    source: FeeStructureDoc,
    academic_year_id: str,
    class_id: str,
    academic_year: AcademicYearSnapshot,
    school_class: ClassSnapshot,
    name: Optional[str] = None,
) -> FeeStructureDoc:
    """Clone a structure onto another (year, class) pair with fresh item ids and the target's snapshots."""
    clone = FeeStructureDoc(
        academic_year_id=academic_year_id,
        class_id=class_id,
        name=name or f"{school_class.class_name} - {academic_year.year}",
        description=source.description,
        academic_year=academic_year,
        school_class=school_class,
        fee_items=[i.model_copy(update={"id": new_id()}) for i in source.fee_items],
        scholarship_items=[i.model_copy(update={"id": new_id()}) for i in source.scholarship_items],
    )
    return refresh_totals(clone)
