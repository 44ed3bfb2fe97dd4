from sqlalchemy import Column, Integer, DateTime, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import SwapRequestStatus

class ShiftSwapRequest(BaseModel):
    __tablename__ = 'shift_swap_requests'
    
    tenant_id = Column(Integer, nullable=False, index=True)
    shift_id = Column(Integer, ForeignKey('shifts.id'), nullable=False, index=True)
    requested_by = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    requested_to = Column(Integer, ForeignKey('employees.id'), nullable=False, index=True)
    target_shift_id = Column(Integer, ForeignKey('shifts.id'), nullable=True)
    status = Column(SQLEnum(SwapRequestStatus, name="swap_request_status"), default=SwapRequestStatus.PENDING, nullable=False, index=True)
    reason = Column(Text)
    notes = Column(Text)
    approved_by = Column(Integer)
    approved_at = Column(DateTime)
    rejected_by = Column(Integer)
    rejected_at = Column(DateTime)
    rejection_reason = Column(Text)
    cancelled_by = Column(Integer)
    cancelled_at = Column(DateTime)
    
    # Relationships
    shift = relationship("Shift", foreign_keys=[shift_id])
    target_shift = relationship("Shift", foreign_keys=[target_shift_id])
    requester = relationship("Employee", foreign_keys=[requested_by])
    requestee = relationship("Employee", foreign_keys=[requested_to])
