"""Fee structure schemas."""

from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FeeItemInput(BaseModel):
    """Admin choices for one fee template in the structure; omitted fields keep the derived default."""

    template_id: UUID
    amount: Optional[Decimal] = Field(None, ge=0)
    is_compulsory: Optional[bool] = None
    is_editable_during_enrollment: Optional[bool] = None
    order: Optional[int] = None


class ScholarshipItemInput(BaseModel):
    template_id: UUID
    amount: Optional[Decimal] = Field(None, ge=0)
    is_auto_applied: Optional[bool] = None
    is_editable_during_enrollment: Optional[bool] = None
    order: Optional[int] = None


class FeeStructureCreate(BaseModel):
    academic_year_id: UUID
    class_id: UUID
    name: Optional[str] = Field(None, max_length=200, description="Defaults to '<class> - <year>'")
    description: Optional[str] = None
    default_amounts: Dict[UUID, Decimal] = Field(
        default_factory=dict,
        description="Class default amount per fee template id",
    )
    scholarship_amounts: Dict[UUID, Decimal] = Field(default_factory=dict)
    fee_items: List[FeeItemInput] = Field(default_factory=list)
    scholarship_items: List[ScholarshipItemInput] = Field(default_factory=list)


class FeeStructureCopy(BaseModel):
    source_academic_year_id: UUID
    source_class_id: UUID
    target_academic_year_id: UUID
    target_class_id: UUID
    name: Optional[str] = Field(None, max_length=200)
