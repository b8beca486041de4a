"""Scholarship template catalog (Merit, Sibling, Government). Never deleted, soft-deactivated."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text, Uuid

from app.db.session import Base


class ScholarshipTemplate(Base):
    __tablename__ = "scholarship_templates"
    __table_args__ = (
        CheckConstraint(
            "type IN ('MERIT','NEED_BASED','GOVERNMENT','SPORTS','MINORITY','GENERAL')",
            name="chk_scholarship_template_type",
        ),
    )

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    type = Column(String(30), nullable=False)
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
