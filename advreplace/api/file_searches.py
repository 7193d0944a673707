from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from advreplace.api.downloads import duration_seconds, job_file_response
from advreplace.db.session import get_db
from advreplace.models.file_search import FileSearch
from advreplace.services.errors import ValidationError
from advreplace.services.job_dispatch import queue_task
from advreplace.services.jobs import copy_data, create_file_search, delete_job, get_job

router = APIRouter(prefix="/file-searches", tags=["file_searches"])


class FileSearchCreateRequest(BaseModel):
    pattern: str
    components: str | None = None
    skip_components: str | None = None
    mimetypes: str | None = None
    skip_mimetypes: str | None = None
    filenames: str | None = None
    skip_filenames: str | None = None
    skip_areas: str | None = None

    # None: open the container types that are opened by default (h5p)
    open_zips: bool | None = None
    zip_filenames: str | None = None
    skip_zip_filenames: str | None = None
    zip_mimetypes: str | None = None
    skip_zip_mimetypes: str | None = None

    name: str | None = None
    user_id: int = 0


class FileSearchCreateResponse(BaseModel):
    ok: bool
    file_search_id: int
    task_id: str


def _get_or_404(db: Session, file_search_id: int) -> FileSearch:
    job = get_job(db, FileSearch, file_search_id)
    if job is None:
        raise HTTPException(status_code=404, detail="File search not found")
    return job


# Filter columns shown in listings, with their labels
_OPTION_LABELS = [
    ("components", "components"),
    ("skip_components", "skip components"),
    ("mimetypes", "mimetypes"),
    ("skip_mimetypes", "skip mimetypes"),
    ("filenames", "filenames"),
    ("skip_filenames", "skip filenames"),
    ("skip_areas", "skip areas"),
    ("zip_filenames", "zip filenames"),
    ("skip_zip_filenames", "skip zip filenames"),
    ("zip_mimetypes", "zip mimetypes"),
    ("skip_zip_mimetypes", "skip zip mimetypes"),
]


def _options(job: FileSearch) -> str:
    parts = [f"{label}: {getattr(job, column)}" for column, label in _OPTION_LABELS if getattr(job, column)]
    if job.open_zips is not None:
        parts.append("open zips" if job.open_zips else "don't open zips")
    return "; ".join(parts)


def _as_dict(job: FileSearch) -> dict:
    return {
        "id": job.id,
        "name": job.name,
        "pattern": job.pattern,
        "options": _options(job),
        "status": job.status,
        "error": job.error,
        "progress": job.progress,
        "matches": job.matches,
        "skipped_containers": job.skipped_containers,
        "time_start": job.time_start.isoformat() if job.time_start else None,
        "time_end": job.time_end.isoformat() if job.time_end else None,
        "duration": duration_seconds(job),
    }


@router.post("", response_model=FileSearchCreateResponse)
def create_and_queue_file_search(
    req: FileSearchCreateRequest, db: Session = Depends(get_db)
) -> FileSearchCreateResponse:
    try:
        job = create_file_search(db, **req.model_dump(), origin="web")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async_result = queue_task(job)
    return FileSearchCreateResponse(ok=True, file_search_id=job.id, task_id=async_result.id)


@router.get("")
def list_file_searches(
    db: Session = Depends(get_db),
    status: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    query = db.query(FileSearch)
    if status:
        query = query.filter(FileSearch.status == status)

    total = query.count()
    rows = query.order_by(FileSearch.id.desc()).offset(offset).limit(limit).all()
    return {
        "ok": True,
        "total": total,
        "limit": limit,
        "offset": offset,
        "file_searches": [_as_dict(job) for job in rows],
    }


@router.get("/{file_search_id}")
def get_file_search(file_search_id: int, db: Session = Depends(get_db)):
    job = _get_or_404(db, file_search_id)
    return {"ok": True, **_as_dict(job), "origin": job.origin}


@router.get("/{file_search_id}/copy")
def copy_file_search(file_search_id: int, db: Session = Depends(get_db)):
    job = _get_or_404(db, file_search_id)
    return {"ok": True, "file_search_id": job.id, "data": copy_data(job)}


@router.get("/{file_search_id}/download")
def download_file_search(file_search_id: int, db: Session = Depends(get_db)):
    return job_file_response(_get_or_404(db, file_search_id))


@router.delete("/{file_search_id}")
def delete_file_search(file_search_id: int, db: Session = Depends(get_db)):
    job = _get_or_404(db, file_search_id)
    delete_job(db, job)
    return {"ok": True, "file_search_id": file_search_id, "deleted": True}
