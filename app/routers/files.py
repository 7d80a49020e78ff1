import logging
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import HTMLResponse, StreamingResponse
from sqlalchemy.orm import Session

from app.core.storage import FileStorage
from app.routers.deps import get_db, get_storage, require_user_id
from app.schemas.file import FileRecordOut, UploadResult
from app.services.files import list_records, open_download, store_upload
from app.templating import templates

logger = logging.getLogger(__name__)

# every route in here sits behind the access guard
router = APIRouter(dependencies=[Depends(require_user_id)])


def content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


# --- protected notes page ---
@router.get("/notes", response_class=HTMLResponse)
def notes_page(request: Request, db: Session = Depends(get_db)):
    return templates.TemplateResponse(request, "notes.html", {"files": list_records(db)})


# --- upload a new file ---
@router.post("/upload", response_model=UploadResult)
def upload_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    user_id: int = Depends(require_user_id),
):
    record = store_upload(db, storage, file.file, file.filename)
    logger.info("User id=%s uploaded file id=%s", user_id, record.id)
    return UploadResult(message="File uploaded successfully", file=FileRecordOut.model_validate(record))


# --- list every uploaded file ---
@router.get("/files", response_model=List[FileRecordOut])
def list_files(db: Session = Depends(get_db)):
    return list_records(db)


# --- download a file ---
@router.get("/download/{file_id}")
def download_file(
    file_id: str,
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    record, chunks = open_download(db, storage, file_id)
    return StreamingResponse(
        chunks,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(record.original_name)},
    )
