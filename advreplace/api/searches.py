from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from advreplace.api.downloads import duration_seconds, job_file_response
from advreplace.db.session import get_db
from advreplace.models.search import Search
from advreplace.services.errors import ValidationError
from advreplace.services.job_dispatch import queue_task
from advreplace.services.jobs import copy_data, create_search, delete_job, get_job

router = APIRouter(prefix="/searches", tags=["searches"])


class SearchCreateRequest(BaseModel):
    search: str | None = None
    regex_match: str | None = None
    prematch: str | None = None
    tables: str | None = None
    skip_tables: str | None = None
    skip_columns: str | None = None
    summary: bool = False
    name: str | None = None
    user_id: int = 0


class SearchCreateResponse(BaseModel):
    ok: bool
    search_id: int
    task_id: str


class SearchGetResponse(BaseModel):
    ok: bool
    search_id: int
    name: str
    search: str
    regex: bool
    prematch: str
    tables: str
    skip_tables: str
    skip_columns: str
    summary: bool
    origin: str
    status: str
    error: str | None
    progress: float
    matches: int
    time_start: str | None
    time_end: str | None
    duration: float | None


def _get_or_404(db: Session, search_id: int) -> Search:
    job = get_job(db, Search, search_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Search not found")
    return job


def _options(job: Search) -> str:
    parts = []
    if job.prematch:
        parts.append(f"prematch: {job.prematch}")
    if job.tables:
        parts.append(f"tables: {job.tables}")
    if job.skip_tables:
        parts.append(f"skip tables: {job.skip_tables}")
    if job.skip_columns:
        parts.append(f"skip columns: {job.skip_columns}")
    if job.summary:
        parts.append("summary")
    return "; ".join(parts)


@router.post("", response_model=SearchCreateResponse)
def create_and_queue_search(req: SearchCreateRequest, db: Session = Depends(get_db)) -> SearchCreateResponse:
    try:
        job = create_search(
            db,
            search=req.search,
            regex_match=req.regex_match,
            prematch=req.prematch,
            tables=req.tables,
            skip_tables=req.skip_tables,
            skip_columns=req.skip_columns,
            summary=req.summary,
            name=req.name,
            origin="web",
            user_id=req.user_id,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async_result = queue_task(job)
    return SearchCreateResponse(ok=True, search_id=job.id, task_id=async_result.id)


@router.get("")
def list_searches(
    db: Session = Depends(get_db),
    status: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
):
    query = db.query(Search)
    if status:
        query = query.filter(Search.status == status)

    total = query.count()
    rows = query.order_by(Search.id.desc()).offset(offset).limit(limit).all()

    searches = []
    for job in rows:
        searches.append(
            {
                "id": job.id,
                "name": job.name,
                "search": job.search,
                "regex": job.regex,
                "options": _options(job),
                "status": job.status,
                "progress": job.progress,
                "matches": job.matches,
                "time_start": job.time_start.isoformat() if job.time_start else None,
                "duration": duration_seconds(job),
            }
        )

    return {"ok": True, "total": total, "limit": limit, "offset": offset, "searches": searches}


@router.get("/{search_id}", response_model=SearchGetResponse)
def get_search(search_id: int, db: Session = Depends(get_db)) -> SearchGetResponse:
    job = _get_or_404(db, search_id)
    return SearchGetResponse(
        ok=True,
        search_id=job.id,
        name=job.name,
        search=job.search,
        regex=job.regex,
        prematch=job.prematch,
        tables=job.tables,
        skip_tables=job.skip_tables,
        skip_columns=job.skip_columns,
        summary=job.summary,
        origin=job.origin,
        status=job.status,
        error=job.error,
        progress=job.progress,
        matches=job.matches,
        time_start=job.time_start.isoformat() if job.time_start else None,
        time_end=job.time_end.isoformat() if job.time_end else None,
        duration=duration_seconds(job),
    )


@router.get("/{search_id}/copy")
def copy_search(search_id: int, db: Session = Depends(get_db)):
    """Options of a previous search, to pre-fill a new submission."""
    job = _get_or_404(db, search_id)
    return {"ok": True, "search_id": job.id, "data": copy_data(job)}


@router.get("/{search_id}/download")
def download_search(search_id: int, db: Session = Depends(get_db)):
    return job_file_response(_get_or_404(db, search_id))


@router.delete("/{search_id}")
def delete_search(search_id: int, db: Session = Depends(get_db)):
    job = _get_or_404(db, search_id)
    delete_job(db, job)
    return {"ok": True, "search_id": search_id, "deleted": True}
