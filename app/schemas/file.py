from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FileRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_name: str
    stored_name: str
    uploaded_at: Optional[datetime] = None


class UploadResult(BaseModel):
    message: str
    file: FileRecordOut
