# app/models/file.py
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.models.database import Base


class FileRecord(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    original_name = Column(String(255), nullable=False)            # Name user uploaded
    stored_name = Column(String(255), unique=True, nullable=False)  # Name we store under
    uploaded_at = Column(DateTime, default=datetime.utcnow)
