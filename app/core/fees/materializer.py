"""
Enrollment fee materializer.

Instantiates a student's fee and scholarship lines for one academic year from the
class fee structure plus per-student overrides. ``original_amount`` always keeps the
structure default so the UI can tell (and reset) customized lines; an override that
equals the default is stored exactly like no override at all.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from app.core.exceptions import NotFoundError, ValidationError

from .documents import (
    EnrollmentTotals,
    FeeItem,
    FeeStructureDoc,
    PaymentDoc,
    ScholarshipItem,
    StudentEnrollmentDoc,
    StudentFee,
    StudentScholarship,
)
from .recalculator import ledger_paid_by_template, recalculate
from .totals import compute_enrollment_totals, to_decimal


@dataclass
class MaterializedFees:
    fees: List[StudentFee]
    scholarships: List[StudentScholarship]
    totals: EnrollmentTotals


def _resolve_amount(
    item_amount: Decimal,
    override: Optional[Decimal],
    editable: bool,
    label: str,
    ceiling: Optional[Decimal],
) -> Decimal:
    if override is None:
        return item_amount
    override = to_decimal(override)
    if override == item_amount:
        return item_amount
    if override < 0:
        raise ValidationError(f"Custom amount for {label} cannot be negative")
    if ceiling is not None and override > ceiling:
        raise ValidationError(f"Custom amount for {label} exceeds the allowed maximum of {ceiling}")
    if not editable:
        raise ValidationError(f"{label} cannot be changed during enrollment")
    return override


def _index_by_template(items: Iterable, kind: str, wanted: Iterable[str]) -> Dict[str, object]:
    index = {i.template_id: i for i in items}
    missing = sorted(tid for tid in wanted if tid not in index)
    if missing:
        raise NotFoundError(f"No {kind} item in this fee structure for template id(s): {', '.join(missing)}")
    return index


def fee_sort_key(fee: StudentFee, orders: Mapping[str, int]) -> Tuple[bool, int, str]:
    return (not fee.is_compulsory, orders.get(fee.template_id, 0), fee.template_name.lower())


def scholarship_sort_key(s: StudentScholarship, orders: Mapping[str, int]) -> Tuple[bool, int, str]:
    return (not s.is_auto_applied, orders.get(s.template_id, 0), s.template_name.lower())


def _materialize_fee(item: FeeItem, amount: Decimal) -> StudentFee:
    return StudentFee(
        fee_item_id=item.id,
        template_id=item.template_id,
        template_name=item.template_name,
        template_category=item.template_category,
        amount=amount,
        original_amount=item.amount,
        amount_paid=Decimal("0"),
        amount_due=amount,
        is_compulsory=item.is_compulsory,
    )


def _materialize_scholarship(
    item: ScholarshipItem,
    amount: Decimal,
    applied_by: str,
    applied_at: datetime,
) -> StudentScholarship:
    return StudentScholarship(
        scholarship_item_id=item.id,
        template_id=item.template_id,
        template_name=item.template_name,
        template_type=item.template_type,
        amount=amount,
        original_amount=item.amount,
        is_auto_applied=item.is_auto_applied,
        applied_date=applied_at,
        applied_by=applied_by,
        is_active=True,
    )


def materialize(
    structure: FeeStructureDoc,
    applied_by: str,
    applied_at: datetime,
    fee_overrides: Optional[Mapping[str, Decimal]] = None,
    scholarship_overrides: Optional[Mapping[str, Decimal]] = None,
    selected_scholarships: Optional[Iterable[str]] = None,
    ceiling: Optional[Decimal] = None,
) -> MaterializedFees:
    """
    Build the fee/scholarship lines of one enrollment.

    Override maps and the selection set are keyed by template id. Auto-applied
    scholarships are always included; manual ones only when selected.
    """
    fee_overrides = dict(fee_overrides or {})
    scholarship_overrides = dict(scholarship_overrides or {})
    selected: Set[str] = set(selected_scholarships or [])

    fee_index = _index_by_template(structure.fee_items, "fee", fee_overrides)
    sch_index = _index_by_template(
        structure.scholarship_items, "scholarship", set(scholarship_overrides) | selected
    )

    fees: List[StudentFee] = []
    for item in structure.fee_items:
        amount = _resolve_amount(
            item.amount,
            fee_overrides.get(item.template_id),
            item.is_editable_during_enrollment,
            item.template_name,
            ceiling,
        )
        fees.append(_materialize_fee(item, amount))

    scholarships: List[StudentScholarship] = []
    for item in structure.scholarship_items:
        included = item.is_auto_applied or item.template_id in selected
        if not included:
            if item.template_id in scholarship_overrides:
                raise ValidationError(
                    f"Custom amount given for scholarship {item.template_name} which is not selected"
                )
            continue
        amount = _resolve_amount(
            item.amount,
            scholarship_overrides.get(item.template_id),
            item.is_editable_during_enrollment,
            item.template_name,
            ceiling,
        )
        scholarships.append(_materialize_scholarship(item, amount, applied_by, applied_at))

    fee_orders = {i.template_id: i.order for i in fee_index.values()}
    sch_orders = {i.template_id: i.order for i in sch_index.values()}
    fees.sort(key=lambda f: fee_sort_key(f, fee_orders))
    scholarships.sort(key=lambda s: scholarship_sort_key(s, sch_orders))
    return MaterializedFees(
        fees=fees,
        scholarships=scholarships,
        totals=compute_enrollment_totals(fees, scholarships),
    )


def current_overrides(
    enrollment: StudentEnrollmentDoc,
) -> Tuple[Dict[str, Decimal], Dict[str, Decimal], Set[str]]:
    """The (fee overrides, scholarship overrides, manual selections) an enrollment currently reflects."""
    fee_overrides = {f.template_id: f.amount for f in enrollment.fees if f.is_customized}
    sch_overrides = {
        s.template_id: s.amount for s in enrollment.scholarships if s.is_active and s.is_customized
    }
    selected = {s.template_id for s in enrollment.scholarships if s.is_active and not s.is_auto_applied}
    return fee_overrides, sch_overrides, selected


def rematerialize(
    enrollment: StudentEnrollmentDoc,
    structure: FeeStructureDoc,
    payments: List[PaymentDoc],
    applied_by: str,
    applied_at: datetime,
    fee_overrides: Optional[Mapping[str, Decimal]] = None,
    scholarship_overrides: Optional[Mapping[str, Decimal]] = None,
    selected_scholarships: Optional[Iterable[str]] = None,
    ceiling: Optional[Decimal] = None,
) -> StudentEnrollmentDoc:
    """
    Rebuild an existing enrollment's lines with new overrides, then re-derive its
    balances from the payment ledger.

    Existing line ids are kept per template so earlier payment items still point at
    the same line. A fee cannot be lowered below what the ledger already holds for it.
    """
    fresh = materialize(
        structure,
        applied_by,
        applied_at,
        fee_overrides=fee_overrides,
        scholarship_overrides=scholarship_overrides,
        selected_scholarships=selected_scholarships,
        ceiling=ceiling,
    )

    paid = ledger_paid_by_template(payments)
    new_templates = {f.template_id for f in fresh.fees}
    orphaned = sorted(
        f.template_name for f in enrollment.fees if f.template_id not in new_templates and paid.get(f.template_id)
    )
    if orphaned:
        raise ValidationError(f"Fee lines with recorded payments cannot be removed: {', '.join(orphaned)}")

    old_fees = {f.template_id: f for f in enrollment.fees}
    fees: List[StudentFee] = []
    for fee in fresh.fees:
        already_paid = paid.get(fee.template_id, Decimal("0"))
        if fee.amount < already_paid:
            raise ValidationError(
                f"{fee.template_name} cannot be set below the {already_paid} already paid"
            )
        previous = old_fees.get(fee.template_id)
        fees.append(fee.model_copy(update={"id": previous.id}) if previous else fee)

    old_scholarships = {s.template_id: s for s in enrollment.scholarships if s.is_active}
    scholarships: List[StudentScholarship] = []
    for sch in fresh.scholarships:
        previous = old_scholarships.get(sch.template_id)
        if previous and previous.amount == sch.amount:
            # unchanged: keep who applied it and when
            scholarships.append(previous)
        elif previous:
            scholarships.append(sch.model_copy(update={"id": previous.id}))
        else:
            scholarships.append(sch)

    rebuilt = enrollment.model_copy(update={"fees": fees, "scholarships": scholarships})
    return recalculate(rebuilt, payments)
