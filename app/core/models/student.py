import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from app.db.session import Base


class Student(Base):
    """Student master record. Enrollments and receipts embed a snapshot of it."""

    __tablename__ = "students"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    admission_number = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    father_name = Column(String(255), nullable=False)
    mobile_no = Column(String(30), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")  # ACTIVE, INACTIVE, GRADUATED, TRANSFERRED
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
