from pydantic import BaseModel, validator
from typing import List, Optional
from datetime import date, datetime

from app.models.shared.enums import ScheduleStatus
from app.schemas.scheduling.shift_schema import ShiftResponse

class ScheduleBase(BaseModel):
    title: str
    start_date: date
    end_date: date
    department_id: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None

class ScheduleCreate(ScheduleBase):
    @validator('title')
    def validate_title(cls, v):
        if not v or not v.strip():
            raise ValueError('Schedule title is required')
        return v.strip()

    @validator('end_date')
    def validate_end_date(cls, v, values):
        start = values.get('start_date')
        if start and v < start:
            raise ValueError('End date must be on or after start date')
        return v

class ScheduleUpdate(BaseModel):
    title: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    department_id: Optional[int] = None
    location: Optional[str] = None
    notes: Optional[str] = None

class ScheduleCopy(BaseModel):
    target_start_date: date
    target_end_date: date
    copy_assignments: bool = True

    @validator('target_end_date')
    def validate_target_end_date(cls, v, values):
        start = values.get('target_start_date')
        if start and v < start:
            raise ValueError('Target end date must be on or after target start date')
        return v

class ScheduleResponse(ScheduleBase):
    id: int
    tenant_id: int
    status: ScheduleStatus
    published_at: Optional[datetime] = None
    published_by: Optional[int] = None
    locked_at: Optional[datetime] = None
    locked_by: Optional[int] = None
    lock_reason: Optional[str] = None
    unlocked_at: Optional[datetime] = None
    unlocked_by: Optional[int] = None
    unlock_reason: Optional[str] = None
    copied_from_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ScheduleSummary(ScheduleResponse):
    shift_count: int = 0
    conflict_count: int = 0

class ScheduleDetail(ScheduleSummary):
    shifts: List[ShiftResponse] = []

class SchedulePublishResult(BaseModel):
    schedule: ScheduleResponse
    notifications_sent: int
