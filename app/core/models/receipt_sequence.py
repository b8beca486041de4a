"""Per-academic-year receipt counter. Only ever changed by an atomic increment."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Uuid

from app.db.session import Base


class ReceiptSequence(Base):
    __tablename__ = "receipt_sequences"

    academic_year_id = Column(
        Uuid(as_uuid=False),
        ForeignKey("academic_years.id", ondelete="CASCADE"),
        primary_key=True,
    )
    last_sequence = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
