from pydantic import BaseModel, model_validator
from typing import Optional
from datetime import datetime

from app.models.shared.enums import SwapRequestStatus

class ShiftSwapRequestCreate(BaseModel):
    shift_id: int
    requested_to: Optional[int] = None
    target_shift_id: Optional[int] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    broadcast_to_role: bool = False

    @model_validator(mode="after")
    def validate_recipient(self):
        if not self.requested_to and not self.broadcast_to_role:
            raise ValueError('Either requested_to or broadcast_to_role must be specified')
        if self.broadcast_to_role and self.target_shift_id:
            raise ValueError('A target shift cannot be combined with a role broadcast')
        return self

class ShiftSwapRequestResponse(BaseModel):
    id: int
    tenant_id: int
    shift_id: int
    requested_by: int
    requested_to: int
    target_shift_id: Optional[int] = None
    status: SwapRequestStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
