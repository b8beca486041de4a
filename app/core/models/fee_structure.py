"""Fee structure: fee/scholarship plan per (academic year, class)."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid

from app.db.session import Base, JSONDocument


class FeeStructure(Base):
    """
    One per (academic_year_id, class_id). Items and totals are embedded documents;
    totals are always the aggregate of the items.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        UniqueConstraint("academic_year_id", "class_id", name="uq_fee_structure_ay_class"),
    )

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    academic_year_id = Column(
        Uuid(as_uuid=False),
        ForeignKey("academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    class_id = Column(Uuid(as_uuid=False), ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    academic_year = Column(JSONDocument, nullable=False)
    school_class = Column(JSONDocument, nullable=False)
    fee_items = Column(JSONDocument, nullable=False, default=list)
    scholarship_items = Column(JSONDocument, nullable=False, default=list)
    total_fees = Column(JSONDocument, nullable=False)
    total_scholarships = Column(JSONDocument, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
