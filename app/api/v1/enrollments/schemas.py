"""Student enrollment schemas."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class EnrollmentCreate(BaseModel):
    """Enroll a student; fee and scholarship lines are materialized from the class fee structure."""

    student_id: UUID
    academic_year_id: UUID
    class_id: UUID
    section: str = Field("A", min_length=1, max_length=20)
    enrollment_date: Optional[date] = None
    next_due_date: Optional[date] = None
    fee_overrides: Dict[UUID, Decimal] = Field(
        default_factory=dict,
        description="Custom amount per fee template id (only for items editable during enrollment)",
    )
    scholarship_overrides: Dict[UUID, Decimal] = Field(default_factory=dict)
    selected_scholarships: List[UUID] = Field(
        default_factory=list,
        description="Manual (non auto-applied) scholarship template ids to apply",
    )


class EnrollmentFeesUpdate(BaseModel):
    """Omitted fields keep what the enrollment currently reflects; given ones replace it."""

    fee_overrides: Optional[Dict[UUID, Decimal]] = None
    scholarship_overrides: Optional[Dict[UUID, Decimal]] = None
    selected_scholarships: Optional[List[UUID]] = None


class FeeWaiverRequest(BaseModel):
    waived: bool = True
    reason: Optional[str] = Field(None, max_length=500)
