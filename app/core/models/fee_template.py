"""Fee template catalog (School Fee, Book Fee, Van Fee). Never deleted, soft-deactivated."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text, Uuid

from app.db.session import Base


class FeeTemplate(Base):
    """Catalog definition of a kind of fee, independent of any year or class."""

    __tablename__ = "fee_templates"
    __table_args__ = (
        CheckConstraint(
            "category IN ('REGULAR','OPTIONAL','ACTIVITY','EXAMINATION','LATE_FEE')",
            name="chk_fee_template_category",
        ),
    )

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    category = Column(String(30), nullable=False)
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
