from datetime import datetime
from sqlalchemy import Column, String, DateTime
from app.db.base import Base


class RevokedToken(Base):
    """Refresh tokens invalidated by logout, keyed by their ``jti`` claim."""
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
