from sqlalchemy import Column, Integer, String, Enum as SQLEnum
from sqlalchemy.orm import relationship
from app.db.base import BaseModel
from app.models.shared.enums import EmployeeStatus

class Employee(BaseModel):
    """Employee profile, owned by the HR module; scheduling only reads it."""
    __tablename__ = 'employees'
    
    tenant_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False)  # Reference to User from auth system
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100))
    phone = Column(String(20))
    role = Column(String(100), index=True)  # Job role, matched against Shift.role
    department_id = Column(Integer)
    status = Column(SQLEnum(EmployeeStatus, name="employee_status"), default=EmployeeStatus.ACTIVE, nullable=False)
    
    # Relationships
    shifts = relationship("Shift", back_populates="employee")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
