from sqlalchemy import Column, Float, ForeignKey, Integer, String

from app.models.database import Base


class LoginSession(Base):
    """Row backing a session when SESSION_BACKEND=database."""

    __tablename__ = "login_sessions"

    token = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(Float, nullable=False)  # unix timestamp
