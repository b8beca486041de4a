"""Student directory schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.core.enums import StudentStatus


class StudentCreate(BaseModel):
    admission_number: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    father_name: str = Field(..., min_length=1, max_length=255)
    mobile_no: Optional[str] = Field(None, max_length=30)


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    father_name: Optional[str] = Field(None, min_length=1, max_length=255)
    mobile_no: Optional[str] = Field(None, max_length=30)
    status: Optional[StudentStatus] = None


class StudentResponse(BaseModel):
    id: str
    admission_number: str
    name: str
    father_name: str
    mobile_no: Optional[str] = None
    status: StudentStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
