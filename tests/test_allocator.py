from datetime import datetime
from decimal import Decimal

import pytest

from app.core.enums import FeeStatusType, PaymentStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.fees import allocate, apply_allocation, build_payment, build_reversal

from conftest import ACTOR


def _pay(enrollment, request, receipt_no):
    allocation = allocate(enrollment.fees, request)
    payment = build_payment(enrollment, allocation, request, receipt_no)
    return apply_allocation(enrollment, allocation, request.payment_date), payment


@pytest.fixture()
def school_only(make_structure, fee_templates, make_enrollment):
    structure = make_structure(fee_amounts={"tpl-school": Decimal("5000")}, fees=fee_templates[:1])
    return make_enrollment(structure)


@pytest.fixture()
def two_lines(make_structure, fee_templates, make_enrollment):
    structure = make_structure(
        fee_amounts={"tpl-school": Decimal("5000"), "tpl-book": Decimal("2000")},
        fees=fee_templates[:2],
    )
    return make_enrollment(structure)


def test_partial_then_full_payment(school_only, make_request) -> None:
    fee = school_only.fees[0]
    assert fee.amount == Decimal("5000")
    assert fee.amount_due == Decimal("5000")

    after_first, first = _pay(school_only, make_request((fee.id, 2000)), "R1")
    assert after_first.fees[0].amount_paid == Decimal("2000")
    assert after_first.fees[0].amount_due == Decimal("3000")
    assert after_first.fee_status.status == FeeStatusType.PARTIAL
    assert first.total_amount == Decimal("2000")
    assert first.payment_items[0].fee_balance == Decimal("3000")

    after_second, _ = _pay(
        after_first, make_request((fee.id, 3000), when=datetime(2024, 7, 1, 10, 0)), "R2"
    )
    assert after_second.fees[0].amount_paid == Decimal("5000")
    assert after_second.fees[0].amount_due == Decimal("0")
    assert after_second.fee_status.status == FeeStatusType.PAID
    assert after_second.fee_status.last_payment_date == datetime(2024, 7, 1, 10, 0)
    assert after_second.totals.net_amount.due == Decimal("0")


def test_amount_above_due_rejected(make_structure, fee_templates, fee_options, make_enrollment, make_request) -> None:
    structure = make_structure(
        fee_amounts={"tpl-book": Decimal("1000")},
        fee_options={"tpl-book": fee_options(is_editable_during_enrollment=True)},
        fees=fee_templates[1:2],
    )
    enrollment = make_enrollment(structure, fee_overrides={"tpl-book": Decimal("1200")})
    book = enrollment.fees[0]
    with pytest.raises(ValidationError, match="exceeds due amount"):
        allocate(enrollment.fees, make_request((book.id, 1300)))
    allocation = allocate(enrollment.fees, make_request((book.id, 1200)))
    assert allocation.total_amount == Decimal("1200")


def test_only_named_lines_are_touched(two_lines, make_request) -> None:
    school, book = two_lines.fees
    allocation = allocate(two_lines.fees, make_request((book.id, 500)))
    assert allocation.fees[0] == school
    assert allocation.fees[1].amount_paid == Decimal("500")
    assert [i.fee_template_id for i in allocation.items] == ["tpl-book"]


def test_items_follow_request_order(two_lines, make_request) -> None:
    school, book = two_lines.fees
    allocation = allocate(two_lines.fees, make_request((book.id, 2000), (school.id, 1000)))
    assert [i.fee_template_name for i in allocation.items] == ["Book Fee", "School Fee"]
    assert [i.fee_balance for i in allocation.items] == [Decimal("0"), Decimal("4000")]
    assert allocation.total_amount == Decimal("3000")


def test_invalid_lines_rejected(two_lines, make_request) -> None:
    school, _ = two_lines.fees
    with pytest.raises(ValidationError):
        allocate(two_lines.fees, make_request())
    with pytest.raises(ValidationError):
        allocate(two_lines.fees, make_request((school.id, 0)))
    with pytest.raises(ValidationError):
        allocate(two_lines.fees, make_request((school.id, -10)))
    with pytest.raises(ValidationError):
        allocate(two_lines.fees, make_request((school.id, 100), (school.id, 200)))
    with pytest.raises(NotFoundError):
        allocate(two_lines.fees, make_request(("no-such-line", 100)))


def test_waived_status_survives_payment(school_only, make_request) -> None:
    waived = school_only.model_copy(
        update={"fee_status": school_only.fee_status.model_copy(update={"status": FeeStatusType.WAIVED})}
    )
    after, _ = _pay(waived, make_request((waived.fees[0].id, 1000)), "R1")
    assert after.fee_status.status == FeeStatusType.WAIVED


def test_payment_snapshots_and_remarks(school_only, make_request) -> None:
    request = make_request((school_only.fees[0].id, 100)).model_copy(update={"remarks": "  "})
    _, payment = _pay(school_only, request, "R1")
    assert payment.remarks is None
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.student == school_only.student
    assert payment.academic_year.year == "2024-2025"
    assert payment.student_enrollment_id == school_only.id


def test_reversal_negates_original(school_only, make_request) -> None:
    after, payment = _pay(school_only, make_request((school_only.fees[0].id, 2000)), "R1")
    reversal = build_reversal(payment, [payment], after, "R2", ACTOR, datetime(2024, 6, 2, 9, 0), " cheque bounced ")
    assert reversal.status == PaymentStatus.REVERSAL
    assert reversal.reversal_of == payment.id
    assert reversal.total_amount == Decimal("-2000")
    assert reversal.payment_items[0].amount == Decimal("-2000")
    assert reversal.payment_items[0].fee_balance == Decimal("5000")
    assert reversal.remarks == "Reversal of R1: cheque bounced"
    # the original entry is not modified
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.total_amount == Decimal("2000")


def test_reversal_conflicts(school_only, make_request) -> None:
    after, payment = _pay(school_only, make_request((school_only.fees[0].id, 2000)), "R1")
    when = datetime(2024, 6, 2, 9, 0)
    reversal = build_reversal(payment, [payment], after, "R2", ACTOR, when)
    assert reversal.remarks == "Reversal of R1"
    with pytest.raises(ConflictError):
        build_reversal(payment, [payment, reversal], after, "R3", ACTOR, when)
    with pytest.raises(ConflictError):
        build_reversal(reversal, [payment, reversal], after, "R3", ACTOR, when)
