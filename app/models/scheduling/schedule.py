from sqlalchemy import Column, Integer, String, DateTime, Text, Date, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import ScheduleStatus

class Schedule(BaseModel):
    __tablename__ = 'schedules'
    
    tenant_id = Column(Integer, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    department_id = Column(Integer, index=True)
    location = Column(String(200))
    notes = Column(Text)
    status = Column(SQLEnum(ScheduleStatus, name="schedule_status"), default=ScheduleStatus.DRAFT, nullable=False, index=True)
    published_at = Column(DateTime)
    published_by = Column(Integer)
    locked_at = Column(DateTime)
    locked_by = Column(Integer)
    lock_reason = Column(Text)
    unlocked_at = Column(DateTime)
    unlocked_by = Column(Integer)
    unlock_reason = Column(Text)
    copied_from_id = Column(Integer, ForeignKey('schedules.id'))
    
    # Relationships
    shifts = relationship("Shift", back_populates="schedule")
