from app.core.models.academic_year import AcademicYear
from app.core.models.class_model import SchoolClass
from app.core.models.student import Student
from app.core.models.fee_template import FeeTemplate
from app.core.models.scholarship_template import ScholarshipTemplate
from app.core.models.fee_structure import FeeStructure
from app.core.models.student_enrollment import StudentEnrollment
from app.core.models.payment import Payment
from app.core.models.receipt_sequence import ReceiptSequence
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "AcademicYear",
    "SchoolClass",
    "Student",
    "FeeTemplate",
    "ScholarshipTemplate",
    "FeeStructure",
    "StudentEnrollment",
    "Payment",
    "ReceiptSequence",
    "FeeAuditLog",
]
