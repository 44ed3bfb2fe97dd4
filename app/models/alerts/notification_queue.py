from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from app.db.base import BaseModel
from app.models.shared.enums import NotificationStatus

class NotificationQueue(BaseModel):
    __tablename__ = 'notification_queue'
    
    tenant_id = Column(Integer, index=True)
    notification_type = Column(String(50), nullable=False)  # PUSH
    recipient_id = Column(Integer)  # Employee ID
    recipient_email = Column(String(255))
    subject = Column(String(500))
    message = Column(Text, nullable=False)
    template_name = Column(String(100))
    template_data = Column(JSON)
    priority = Column(Integer, default=1)  # 1=High, 2=Medium, 3=Low
    status = Column(String(20), default=NotificationStatus.PENDING.value)  # PENDING, SENT, FAILED
    sent_at = Column(DateTime)
    retry_count = Column(Integer, default=0)
    max_retries = Column(Integer, default=3)
    error_message = Column(Text)
    reference_type = Column(String(50))
    reference_id = Column(Integer)
