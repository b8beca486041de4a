"""Fee structure builder: items from active templates, defaults, ordering, totals, copy."""

from decimal import Decimal

import pytest

from app.core.enums import FeeCategory
from app.core.exceptions import NotFoundError, ValidationError
from app.core.fees import FeeItemOptions, ScholarshipItemOptions, copy_fee_structure
from app.core.fees.builder import build_fee_items, compute_fee_totals
from app.core.fees.documents import AcademicYearSnapshot, ClassSnapshot, FeeTemplateDoc


def test_one_item_per_active_template(make_structure, fee_templates) -> None:
    fee_templates[2] = fee_templates[2].model_copy(update={"is_active": False})
    structure = make_structure(fee_amounts={"tpl-school": Decimal("5000")}, fees=fee_templates)
    assert [i.template_name for i in structure.fee_items] == ["School Fee", "Book Fee"]


def test_amount_prefers_admin_then_class_default_then_zero(make_structure) -> None:
    structure = make_structure(
        fee_amounts={"tpl-school": Decimal("5000"), "tpl-book": Decimal("1500")},
        fee_options={"tpl-book": FeeItemOptions(amount=Decimal("1800"))},
    )
    amounts = {i.template_id: i.amount for i in structure.fee_items}
    assert amounts == {"tpl-school": Decimal("5000"), "tpl-book": Decimal("1800"), "tpl-van": Decimal("0")}


def test_compulsory_defaults_to_regular_category(make_structure) -> None:
    structure = make_structure(fee_options={"tpl-van": FeeItemOptions(is_compulsory=True)})
    flags = {i.template_id: i.is_compulsory for i in structure.fee_items}
    assert flags == {"tpl-school": True, "tpl-book": False, "tpl-van": True}
    assert all(not i.is_editable_during_enrollment for i in structure.fee_items)


def test_order_ties_broken_by_case_sensitive_name() -> None:
    templates = [
        FeeTemplateDoc(id="a", name="book fee", category=FeeCategory.OPTIONAL, order=1),
        FeeTemplateDoc(id="b", name="Van Fee", category=FeeCategory.OPTIONAL, order=1),
        FeeTemplateDoc(id="c", name="Admission", category=FeeCategory.REGULAR, order=0),
    ]
    items = build_fee_items(templates)
    assert [i.template_name for i in items] == ["Admission", "Van Fee", "book fee"]


def test_admin_order_overrides_template_order(make_structure) -> None:
    structure = make_structure(fee_options={"tpl-van": FeeItemOptions(order=0)})
    assert structure.fee_items[0].template_name == "Van Fee"


def test_totals_are_sums_of_items(make_structure) -> None:
    structure = make_structure(
        fee_amounts={"tpl-school": Decimal("10000"), "tpl-book": Decimal("2000"), "tpl-van": Decimal("3000")},
        scholarship_amounts={"sch-merit": Decimal("500"), "sch-sibling": Decimal("300")},
        scholarship_options={"sch-merit": ScholarshipItemOptions(is_auto_applied=True)},
    )
    assert structure.total_fees.compulsory == Decimal("10000")
    assert structure.total_fees.optional == Decimal("5000")
    assert structure.total_fees.total == Decimal("15000")
    assert structure.total_scholarships.auto_applied == Decimal("500")
    assert structure.total_scholarships.manual == Decimal("300")
    assert structure.total_scholarships.total == Decimal("800")
    assert compute_fee_totals(structure.fee_items) == structure.total_fees


def test_default_name_uses_class_and_year(make_structure) -> None:
    assert make_structure().name == "5th - 2024-2025"


def test_negative_amount_rejected(make_structure) -> None:
    with pytest.raises(ValidationError):
        make_structure(fee_amounts={"tpl-book": Decimal("-1")})
    with pytest.raises(ValidationError):
        make_structure(scholarship_options={"sch-merit": ScholarshipItemOptions(amount=Decimal("-5"))})


def test_options_for_unknown_template_rejected(make_structure, fee_templates) -> None:
    with pytest.raises(NotFoundError):
        make_structure(fee_options={"tpl-missing": FeeItemOptions(amount=Decimal("10"))})
    inactive = [t.model_copy(update={"is_active": t.id != "tpl-van"}) for t in fee_templates]
    with pytest.raises(NotFoundError):
        make_structure(fees=inactive, fee_amounts={"tpl-van": Decimal("3000")})


def test_copy_gets_fresh_ids_and_target_snapshots(make_structure) -> None:
    source = make_structure(fee_amounts={"tpl-school": Decimal("5000")})
    target_year = AcademicYearSnapshot(
        year="2025-2026",
        start_date=source.academic_year.start_date.replace(year=2025),
        end_date=source.academic_year.end_date.replace(year=2026),
        is_active=False,
    )
    clone = copy_fee_structure(
        source,
        academic_year_id="ay-2",
        class_id="class-6",
        academic_year=target_year,
        school_class=ClassSnapshot(class_name="6th", is_active=True),
    )
    assert clone.id != source.id
    assert clone.name == "6th - 2025-2026"
    assert clone.academic_year_id == "ay-2"
    assert clone.academic_year.year == "2025-2026"
    assert {i.id for i in clone.fee_items}.isdisjoint({i.id for i in source.fee_items})
    assert [(i.template_id, i.amount) for i in clone.fee_items] == [
        (i.template_id, i.amount) for i in source.fee_items
    ]
    assert clone.total_fees == source.total_fees
