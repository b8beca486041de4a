"""Enrollment fee materializer: overrides, scholarship selection, ordering, rematerialization."""

from datetime import datetime
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.core.fees import allocate, apply_allocation, build_payment, current_overrides, materialize, rematerialize
from app.core.fees.documents import FeeTemplateDoc
from app.core.enums import FeeCategory

from conftest import ACTOR

WHEN = datetime(2024, 4, 1, 9, 0)


@pytest.fixture()
def structure(make_structure, fee_options, scholarship_options):
    return make_structure(
        fee_amounts={"tpl-school": Decimal("5000"), "tpl-book": Decimal("1000"), "tpl-van": Decimal("3000")},
        fee_options={"tpl-book": fee_options(is_editable_during_enrollment=True)},
        scholarship_amounts={"sch-merit": Decimal("500"), "sch-sibling": Decimal("300")},
        scholarship_options={
            "sch-merit": scholarship_options(is_auto_applied=True),
            "sch-sibling": scholarship_options(is_editable_during_enrollment=True),
        },
    )


def test_no_overrides_copies_structure_amounts(structure) -> None:
    m = materialize(structure, ACTOR, WHEN)
    for fee in m.fees:
        assert fee.amount == fee.original_amount
        assert fee.amount_paid == Decimal("0")
        assert fee.amount_due == fee.amount
        assert not fee.is_customized
    assert m.totals.fees.total == Decimal("9000")
    assert m.totals.net_amount.total == Decimal("8500")
    assert m.totals.net_amount.due == Decimal("8500")


def test_editable_override_keeps_original_amount(structure) -> None:
    m = materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-book": Decimal("1200")})
    book = next(f for f in m.fees if f.template_id == "tpl-book")
    assert book.amount == Decimal("1200")
    assert book.original_amount == Decimal("1000")
    assert book.amount_due == Decimal("1200")
    assert book.is_customized


def test_override_equal_to_default_is_no_override(structure) -> None:
    plain = materialize(structure, ACTOR, WHEN)
    same = materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-book": Decimal("1000.00")})
    assert [f.model_dump(exclude={"id"}) for f in plain.fees] == [f.model_dump(exclude={"id"}) for f in same.fees]
    assert plain.totals == same.totals


def test_override_on_non_editable_item_rejected(structure) -> None:
    with pytest.raises(ValidationError):
        materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-school": Decimal("4000")})
    # equal to the default is accepted even when not editable
    m = materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-school": Decimal("5000")})
    assert m.fees[0].amount == Decimal("5000")


def test_negative_or_excessive_override_rejected(structure) -> None:
    with pytest.raises(ValidationError):
        materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-book": Decimal("-1")})
    with pytest.raises(ValidationError):
        materialize(
            structure, ACTOR, WHEN,
            fee_overrides={"tpl-book": Decimal("5001")},
            ceiling=Decimal("5000"),
        )


def test_default_above_ceiling_is_accepted_back_unchanged(structure) -> None:
    plain = materialize(structure, ACTOR, WHEN)
    same = materialize(
        structure, ACTOR, WHEN,
        fee_overrides={"tpl-school": Decimal("5000"), "tpl-van": Decimal("3000")},
        ceiling=Decimal("2000"),
    )
    assert [f.amount for f in same.fees] == [f.amount for f in plain.fees]
    assert not any(f.is_customized for f in same.fees)
    with pytest.raises(ValidationError):
        materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-book": Decimal("2500")}, ceiling=Decimal("2000"))


def test_override_or_selection_for_unknown_template(structure) -> None:
    with pytest.raises(NotFoundError):
        materialize(structure, ACTOR, WHEN, fee_overrides={"tpl-missing": Decimal("10")})
    with pytest.raises(NotFoundError):
        materialize(structure, ACTOR, WHEN, selected_scholarships=["sch-missing"])


def test_override_for_unselected_scholarship_rejected(structure) -> None:
    with pytest.raises(ValidationError):
        materialize(structure, ACTOR, WHEN, scholarship_overrides={"sch-sibling": Decimal("200")})


def test_auto_applied_only_until_selected_then_rematerialized(structure, make_enrollment) -> None:
    enrollment = make_enrollment(structure)
    assert [s.template_id for s in enrollment.scholarships] == ["sch-merit"]
    assert enrollment.totals.scholarships.applied == Decimal("500")

    updated = rematerialize(enrollment, structure, [], ACTOR, WHEN, selected_scholarships={"sch-sibling"})
    assert enrollment.totals.scholarships.applied == Decimal("500")
    assert updated.totals.scholarships.applied == Decimal("800")
    assert [s.template_id for s in updated.scholarships] == ["sch-merit", "sch-sibling"]
    # the untouched auto-applied scholarship keeps its line
    assert updated.scholarships[0] == enrollment.scholarships[0]


def test_scholarship_override_on_selected_editable_item(structure) -> None:
    m = materialize(
        structure, ACTOR, WHEN,
        selected_scholarships=["sch-sibling"],
        scholarship_overrides={"sch-sibling": Decimal("250")},
    )
    sibling = next(s for s in m.scholarships if s.template_id == "sch-sibling")
    assert sibling.amount == Decimal("250")
    assert sibling.original_amount == Decimal("300")
    assert sibling.applied_by == ACTOR
    assert m.totals.scholarships.applied == Decimal("750")


def test_presentation_order(make_structure) -> None:
    templates = [
        FeeTemplateDoc(id="a", name="book fee", category=FeeCategory.OPTIONAL, order=1),
        FeeTemplateDoc(id="b", name="Van Fee", category=FeeCategory.OPTIONAL, order=1),
        FeeTemplateDoc(id="c", name="Tuition", category=FeeCategory.REGULAR, order=9),
    ]
    m = materialize(make_structure(fees=templates), ACTOR, WHEN)
    # compulsory first, then order, then case-insensitive name
    assert [f.template_name for f in m.fees] == ["Tuition", "book fee", "Van Fee"]


def test_rematerialize_keeps_line_ids_and_ledger_balances(structure, make_enrollment, make_request) -> None:
    enrollment = make_enrollment(structure)
    book = next(f for f in enrollment.fees if f.template_id == "tpl-book")
    request = make_request((book.id, 600))
    allocation = allocate(enrollment.fees, request)
    payment = build_payment(enrollment, allocation, request, "R1")
    paid = apply_allocation(enrollment, allocation, request.payment_date)

    updated = rematerialize(paid, structure, [payment], ACTOR, WHEN, fee_overrides={"tpl-book": Decimal("800")})
    new_book = next(f for f in updated.fees if f.template_id == "tpl-book")
    assert new_book.id == book.id
    assert new_book.amount == Decimal("800")
    assert new_book.amount_paid == Decimal("600")
    assert new_book.amount_due == Decimal("200")
    assert current_overrides(updated)[0] == {"tpl-book": Decimal("800")}

    with pytest.raises(ValidationError):
        rematerialize(paid, structure, [payment], ACTOR, WHEN, fee_overrides={"tpl-book": Decimal("500")})
