from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from app.db.base import Base


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    timezone = Column(String, nullable=True)  # IANA name, e.g. "America/New_York"

    is_active = Column(Boolean, nullable=False, default=True)
    can_send_reminders = Column(Boolean, nullable=False, default=False)
    subscription_end_date = Column(DateTime(timezone=True), nullable=True)

    # Monthly reminder allowance; 0 disables automated reminders
    reminder_monthly_limit = Column(Integer, nullable=False, default=0)
    reminders_sent_this_period = Column(Integer, nullable=False, default=0)
    reminder_usage_period = Column(String(7), nullable=True)  # "YYYY-MM" the counter belongs to

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    owners = relationship("Owner", back_populates="clinic")
    users = relationship("User", back_populates="clinic")
