from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import date, datetime

from app.models.shared.enums import AssignmentStatus, ConflictSeverity, ConflictType

class ConflictDetail(BaseModel):
    """A detected scheduling problem attached to a shift"""
    type: ConflictType
    severity: ConflictSeverity
    message: str
    conflicting_shift_id: Optional[int] = None

class ShiftBase(BaseModel):
    start_time: datetime
    end_time: datetime
    break_minutes: int = Field(0, ge=0)
    role: Optional[str] = None
    location: Optional[str] = None
    work_center: Optional[str] = None
    employee_id: Optional[int] = None
    color: Optional[str] = None
    notes: Optional[str] = None

class ShiftCreate(ShiftBase):
    pass

class ShiftUpdate(BaseModel):
    """Partial update; only fields explicitly set are applied, so employee_id=None unassigns"""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    break_minutes: Optional[int] = Field(None, ge=0)
    role: Optional[str] = None
    location: Optional[str] = None
    work_center: Optional[str] = None
    employee_id: Optional[int] = None
    color: Optional[str] = None
    notes: Optional[str] = None

class ShiftDuplicate(BaseModel):
    target_date: date
    preserve_assignment: bool = True

class ShiftResponse(ShiftBase):
    id: int
    tenant_id: int
    schedule_id: int
    assignment_status: AssignmentStatus
    has_conflicts: bool
    conflict_details: List[ConflictDetail] = []
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ShiftConflicts(BaseModel):
    shift_id: int
    employee_id: Optional[int] = None
    employee_name: Optional[str] = None
    conflicts: List[ConflictDetail] = []

class ScheduleConflictSummary(BaseModel):
    schedule_id: int
    conflicts: List[ShiftConflicts] = []
    total_conflicts: int = 0
    conflicts_by_employee: Dict[int, int] = {}
    can_publish: bool = True
