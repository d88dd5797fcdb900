from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.db.base import Base


class Visit(Base):
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)
    pet_id = Column(Integer, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True)

    visit_date = Column(DateTime(timezone=True), nullable=False)
    visit_type = Column(String, nullable=False)  # vaccination, checkup, surgery, ...
    notes = Column(Text, nullable=True)

    next_reminder_date = Column(DateTime(timezone=True), nullable=True)
    is_reminder_enabled = Column(Boolean, nullable=False, default=False)
    reminder_sent = Column(Boolean, nullable=False, default=False)  # only ever flips false -> true

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    pet = relationship("Pet", back_populates="visits")

    __table_args__ = (
        Index("ix_visits_visit_date", "visit_date"),
        Index("ix_visits_reminder_due", "is_reminder_enabled", "reminder_sent", "next_reminder_date"),
    )
