"""Upload, download and listing of study files.

Bytes go to a ``FileStorage`` backend under a generated name; the
``files`` table maps that name back to what the user uploaded.
"""
import logging
import re
import time
import uuid
from pathlib import PurePath
from typing import BinaryIO, Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InvalidUpload, NotFound
from app.core.storage import FileStorage
from app.models.file import FileRecord

logger = logging.getLogger(__name__)

_EXTENSION = re.compile(r"^\.[A-Za-z0-9]{1,16}$")


def clean_original_name(filename: Optional[str]) -> str:
    """Strip any client-side directory part, keeping just the basename."""
    name = PurePath((filename or "").replace("\\", "/")).name.strip()
    return name


def generate_stored_name(original_name: str, now: Optional[float] = None) -> str:
    """Build a collision-resistant storage name like ``1712345678901-3fa2b9c0.pdf``."""
    millis = int((time.time() if now is None else now) * 1000)
    ext = PurePath(original_name).suffix.lower()
    if not _EXTENSION.match(ext):
        ext = ""
    return f"{millis}-{uuid.uuid4().hex[:8]}{ext}"


def store_upload(
    db: Session,
    storage: FileStorage,
    stream: BinaryIO,
    filename: Optional[str],
) -> FileRecord:
    """Persist an uploaded stream and record its metadata.

    No record is written unless the bytes landed in storage. If writing the
    record fails, the stored bytes are removed again.
    """
    original_name = clean_original_name(filename)
    if not original_name:
        raise InvalidUpload()

    stored_name = generate_stored_name(original_name)
    storage.save(stored_name, stream)

    record = FileRecord(original_name=original_name, stored_name=stored_name)
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        storage.delete(stored_name)
        raise
    db.refresh(record)

    logger.info("File uploaded: %s stored as %s (id=%s)", original_name, stored_name, record.id)
    return record


def get_record(db: Session, file_id: int | str) -> FileRecord:
    # ids arrive straight from the URL path
    file_id = str(file_id)
    if not (file_id.isascii() and file_id.isdigit()) or len(file_id) > 18:
        raise NotFound()
    record = db.get(FileRecord, int(file_id))
    if record is None:
        raise NotFound()
    return record


def open_download(db: Session, storage: FileStorage, file_id: int | str) -> Tuple[FileRecord, Iterator[bytes]]:
    record = get_record(db, file_id)
    chunks = storage.open(record.stored_name)
    logger.info("Download started: %s (id=%s)", record.original_name, record.id)
    return record, chunks


def list_records(db: Session) -> List[FileRecord]:
    return db.query(FileRecord).order_by(FileRecord.id.asc()).all()
