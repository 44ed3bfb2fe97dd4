from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import AssignmentStatus

class Shift(BaseModel):
    __tablename__ = 'shifts'
    
    tenant_id = Column(Integer, nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey('schedules.id'), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    break_minutes = Column(Integer, default=0, nullable=False)
    role = Column(String(100))
    location = Column(String(200))
    work_center = Column(String(100))
    employee_id = Column(Integer, ForeignKey('employees.id'), nullable=True, index=True)
    assignment_status = Column(
        SQLEnum(AssignmentStatus, name="assignment_status"),
        default=AssignmentStatus.UNASSIGNED,
        nullable=False,
    )
    has_conflicts = Column(Boolean, default=False, nullable=False)
    conflict_details = Column(JSON, default=list)  # Derived; rewritten on every recompute
    color = Column(String(20))
    notes = Column(Text)
    
    # Relationships
    schedule = relationship("Schedule", back_populates="shifts")
    employee = relationship("Employee", back_populates="shifts")
