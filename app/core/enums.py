from enum import Enum


class FeeCategory(str, Enum):
    REGULAR = "REGULAR"
    OPTIONAL = "OPTIONAL"
    ACTIVITY = "ACTIVITY"
    EXAMINATION = "EXAMINATION"
    LATE_FEE = "LATE_FEE"


class ScholarshipType(str, Enum):
    MERIT = "MERIT"
    NEED_BASED = "NEED_BASED"
    GOVERNMENT = "GOVERNMENT"
    SPORTS = "SPORTS"
    MINORITY = "MINORITY"
    GENERAL = "GENERAL"


class FeeStatusType(str, Enum):
    PAID = "PAID"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    WAIVED = "WAIVED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    ONLINE = "ONLINE"
    CHEQUE = "CHEQUE"


class PaymentStatus(str, Enum):
    COMPLETED = "COMPLETED"
    REVERSAL = "REVERSAL"


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"
    TRANSFERRED = "TRANSFERRED"
