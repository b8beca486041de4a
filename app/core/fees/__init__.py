"""Fee & scholarship computation engine: pure functions over fee documents, no I/O."""

from .allocator import Allocation, allocate, apply_allocation, build_payment, build_reversal
from .builder import (
    FeeItemOptions,
    ScholarshipItemOptions,
    build_fee_structure,
    compute_fee_totals,
    compute_scholarship_totals,
    copy_fee_structure,
)
from .documents import (
    BatchFailure,
    BatchResult,
    FeeStructureDoc,
    PaymentDoc,
    PaymentLine,
    PaymentRequest,
    StudentEnrollmentDoc,
)
from .materializer import MaterializedFees, current_overrides, materialize, rematerialize
from .receipts import format_receipt_no
from .recalculator import has_drifted, recalculate, recalculate_many

__all__ = [
    "Allocation",
    "BatchFailure",
    "BatchResult",
    "FeeItemOptions",
    "FeeStructureDoc",
    "MaterializedFees",
    "PaymentDoc",
    "PaymentLine",
    "PaymentRequest",
    "ScholarshipItemOptions",
    "StudentEnrollmentDoc",
    "allocate",
    "apply_allocation",
    "build_fee_structure",
    "build_payment",
    "build_reversal",
    "compute_fee_totals",
    "compute_scholarship_totals",
    "copy_fee_structure",
    "current_overrides",
    "format_receipt_no",
    "has_drifted",
    "materialize",
    "recalculate",
    "recalculate_many",
    "rematerialize",
]
