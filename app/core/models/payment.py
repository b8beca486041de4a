"""Payment: append-only ledger entry against a student enrollment."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, Uuid

from app.db.session import Base, JSONDocument


class Payment(Base):
    """
    Money received (status COMPLETED) or a reversal of an earlier payment (status
    REVERSAL, negative item amounts, ``reversal_of`` set). Rows are never updated.
    """

    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    receipt_no = Column(String(50), nullable=False, unique=True)
    student_enrollment_id = Column(
        Uuid(as_uuid=False),
        ForeignKey("student_enrollments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    academic_year_id = Column(
        Uuid(as_uuid=False),
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    class_id = Column(Uuid(as_uuid=False), nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False, index=True)
    payment_method = Column(String(20), nullable=False)  # CASH, ONLINE, CHEQUE
    remarks = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False)  # COMPLETED, REVERSAL
    reversal_of = Column(Uuid(as_uuid=False), ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True, unique=True)
    student = Column(JSONDocument, nullable=False)
    academic_year = Column(JSONDocument, nullable=False)
    payment_items = Column(JSONDocument, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
