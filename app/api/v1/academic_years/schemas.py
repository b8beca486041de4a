from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class AcademicYearCreate(BaseModel):
    """Create academic year. year must be unique."""

    year: str = Field(..., min_length=1, max_length=20, description="e.g. 2024-2025")
    start_date: date = Field(..., description="Academic year start date")
    end_date: date = Field(..., description="Academic year end date (must be after start_date)")
    set_as_current: bool = Field(
        False,
        description="Set this year as current? If true, all other years become inactive.",
    )


class AcademicYearUpdate(BaseModel):
    year: Optional[str] = Field(None, min_length=1, max_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class AcademicYearResponse(BaseModel):
    id: str
    year: str
    start_date: date
    end_date: date
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
