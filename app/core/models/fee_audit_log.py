"""Fee audit log: immutable financial change tracking for audit safety."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from app.db.session import Base, JSONDocument


class FeeAuditLog(Base):
    """Immutable audit trail for fee-related financial changes."""

    __tablename__ = "fee_audit_logs"

    id = Column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid.uuid4()))
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(Uuid(as_uuid=False), nullable=False, index=True)
    action_type = Column(String(30), nullable=False)  # CREATE, UPDATE, REPLACE, REVERSE, RECALCULATE, WAIVE
    old_value = Column(JSONDocument, nullable=True)
    new_value = Column(JSONDocument, nullable=True)
    changed_by = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
