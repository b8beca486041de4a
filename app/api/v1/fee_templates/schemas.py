"""Fee template schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import FeeCategory


class FeeTemplateCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    category: FeeCategory = FeeCategory.REGULAR
    order: int = 0


class FeeTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    category: Optional[FeeCategory] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class FeeTemplateResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: FeeCategory
    order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
