"""Scholarship template schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import ScholarshipType


class ScholarshipTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: ScholarshipType = ScholarshipType.GENERAL
    order: int = 0


class ScholarshipTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    type: Optional[ScholarshipType] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class ScholarshipTemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    type: ScholarshipType
    order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
