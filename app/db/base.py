from sqlalchemy import Column, Integer, DateTime
from app.models.base import Base
from app.utils.date_time_serializer import utc_now

class BaseModel(Base):
    """Base model with common fields. Rows are never hard-deleted; deleted_at marks removal."""
    __abstract__ = True
    
    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime, nullable=True, index=True)
    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)
