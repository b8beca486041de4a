"""Student enrollment: one student's financial record for one academic year."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid

from app.db.session import Base, JSONDocument


class StudentEnrollment(Base):
    """
    Fee lines, scholarships, totals and fee status are embedded documents.
    ``version`` is checked on every write so two writers cannot interleave
    read -> compute -> write on the same enrollment.
    """

    __tablename__ = "student_enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "academic_year_id", name="uq_student_enrollment_student_ay"),
    )

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(Uuid(as_uuid=False), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    academic_year_id = Column(
        Uuid(as_uuid=False),
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    class_id = Column(Uuid(as_uuid=False), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    section = Column(String(20), nullable=False)
    enrollment_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    student = Column(JSONDocument, nullable=False)
    academic_year = Column(JSONDocument, nullable=False)
    school_class = Column(JSONDocument, nullable=False)
    fees = Column(JSONDocument, nullable=False, default=list)
    scholarships = Column(JSONDocument, nullable=False, default=list)
    totals = Column(JSONDocument, nullable=False)
    fee_status = Column(JSONDocument, nullable=False)
    fee_status_type = Column(String(20), nullable=False, index=True)  # PAID, PARTIAL, OVERDUE, WAIVED
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}
