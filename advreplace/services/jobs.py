from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from advreplace.core.config import settings
from advreplace.models.file_search import FileSearch
from advreplace.models.search import Search
from advreplace.services.errors import ValidationError
from advreplace.services.file_storage import FileStorage
from advreplace.services.regex_matcher import RegexMatcher

logger = logging.getLogger(__name__)

ORIGINS = ("web", "cli")
NAME_MAX_LENGTH = 32

JobModel = TypeVar("JobModel", Search, FileSearch)

# Callback for an external supervisor: (percent, message)
ProgressCallback = Callable[[float, str], None]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _validate_common(name: str, origin: str) -> None:
    if origin not in ORIGINS:
        raise ValidationError(f"Invalid origin: {origin!r}. Use one of: {', '.join(ORIGINS)}")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    # The name becomes the result file name
    if "/" in name or "\\" in name or ".." in name or "\x00" in name:
        raise ValidationError("Name can't contain '/', '\\' or '..'")


def create_search(
    db: Session,
    *,
    search: str | None = None,
    regex_match: str | None = None,
    prematch: str | None = None,
    tables: str | None = None,
    skip_tables: str | None = None,
    skip_columns: str | None = None,
    summary: bool = False,
    name: str | None = None,
    origin: str = "web",
    user_id: int = 0,
) -> Search:
    """
    Validate submission parameters and persist a queued DB search.
    Nothing is written when validation fails.
    """
    search = search or ""
    regex_match = regex_match or ""
    if search and regex_match:
        raise ValidationError("Please choose one of the search methods: plain text or regular expression.")
    if not search and not regex_match:
        raise ValidationError("Either search text or a regular expression is required.")
    if regex_match:
        RegexMatcher(regex_match)  # raises ValidationError when it doesn't compile

    name = _clean(name)
    _validate_common(name, origin)

    job = Search(
        user_id=user_id,
        name=name,
        search=regex_match or search,
        regex=bool(regex_match),
        prematch=_clean(prematch),
        tables=_clean(tables),
        skip_tables=_clean(skip_tables),
        skip_columns=_clean(skip_columns),
        summary=bool(summary),
        origin=origin,
        status="queued",
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def create_file_search(
    db: Session,
    *,
    pattern: str | None,
    components: str | None = None,
    skip_components: str | None = None,
    mimetypes: str | None = None,
    skip_mimetypes: str | None = None,
    filenames: str | None = None,
    skip_filenames: str | None = None,
    skip_areas: str | None = None,
    open_zips: bool | None = None,
    zip_filenames: str | None = None,
    skip_zip_filenames: str | None = None,
    zip_mimetypes: str | None = None,
    skip_zip_mimetypes: str | None = None,
    name: str | None = None,
    origin: str = "web",
    user_id: int = 0,
) -> FileSearch:
    pattern = _clean(pattern)
    if not pattern:
        raise ValidationError("A regular expression is required.")

    member_filters = {
        "zip_filenames": _clean(zip_filenames),
        "skip_zip_filenames": _clean(skip_zip_filenames),
        "zip_mimetypes": _clean(zip_mimetypes),
        "skip_zip_mimetypes": _clean(skip_zip_mimetypes),
    }
    # File contents are matched as bytes, archive member names and mimetypes as text
    RegexMatcher(pattern).search(b"")
    for value in member_filters.values():
        if value:
            RegexMatcher(value)

    name = _clean(name)
    _validate_common(name, origin)

    job = FileSearch(
        user_id=user_id,
        name=name,
        pattern=pattern,
        components=_clean(components),
        skip_components=_clean(skip_components),
        mimetypes=_clean(mimetypes),
        skip_mimetypes=_clean(skip_mimetypes),
        filenames=_clean(filenames),
        skip_filenames=_clean(skip_filenames),
        skip_areas=_clean(skip_areas),
        open_zips=open_zips,
        origin=origin,
        status="queued",
        **member_filters,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_job(db: Session, model: type[JobModel], job_id: int) -> JobModel | None:
    return db.query(model).filter(model.id == job_id).first()


def set_job_status(db: Session, job: JobModel, status: str, error: str | None = None) -> JobModel:
    job.status = status
    job.error = error
    db.commit()
    db.refresh(job)
    return job


def start_job(db: Session, job: JobModel) -> JobModel:
    job.time_start = _now()
    job.time_end = None
    job.progress = 0
    job.matches = 0
    return set_job_status(db, job, "running")


def set_progress(db: Session, job: JobModel, progress: float, matches: int) -> JobModel:
    job.progress = progress
    job.matches = matches
    db.commit()
    return job


def finish_job(db: Session, job: JobModel, matches: int) -> JobModel:
    job.progress = 100
    job.matches = matches
    job.time_end = _now()
    return set_job_status(db, job, "finished")


def fail_job(db: Session, model: type[JobModel], job_id: int, error: str) -> JobModel | None:
    # The failing run may have left the session mid-transaction
    db.rollback()
    job = get_job(db, model, job_id)
    if job is None:
        return None
    return set_job_status(db, job, "failed", error=error)


def copy_data(job: JobModel) -> dict[str, Any]:
    """Options of a previous job, ready to submit as a new one."""
    data = {column: getattr(job, column) for column in job.COPY_COLUMNS}
    if isinstance(job, Search):
        # Submissions name the search method, the record keeps the flag
        term = data.pop("search")
        data["search"] = None if job.regex else term
        data["regex_match"] = term if job.regex else None
        data.pop("regex")
    return data


def get_filename(job: JobModel, temp: bool = False) -> str:
    # The default filename format should not be changed, downloads rely on it
    filename = job.name or f"searchresult-{job.id}"
    suffix = "-temp" if temp else ""
    return f"{filename.lower()}{suffix}.csv"


def delete_job(db: Session, job: JobModel, storage: FileStorage | None = None) -> None:
    storage = storage or FileStorage()
    filearea, job_id = job.FILEAREA, job.id
    db.delete(job)
    db.commit()
    storage.delete_artifact(filearea, job_id)
    storage.temp_path(filearea, job_id).unlink(missing_ok=True)


class ProgressTracker:
    """
    Weighted progress of a running job.

    Persists progress and the match tally at most every `seconds` or every
    `percent` points, to bound writes on the job table during long scans.
    The callback, if any, sees every step.
    """

    def __init__(
        self,
        db: Session,
        job: JobModel,
        total: int,
        on_progress: ProgressCallback | None = None,
        seconds: float | None = None,
        percent: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.job = job
        self.total = total
        self.on_progress = on_progress
        self.seconds = settings.progress_seconds if seconds is None else seconds
        self.step = settings.progress_percent if percent is None else percent
        self.clock = clock

        self.done = 0
        self.last_time = clock()
        self.last_percent = 0.0

    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return min(100.0, round(100 * self.done / self.total, 2))

    def advance(self, amount: int, matches: int, message: str = "") -> float:
        self.done += amount
        percent = self.percent()
        if self.on_progress:
            self.on_progress(percent, message)

        now = self.clock()
        if now >= self.last_time + self.seconds or percent >= self.last_percent + self.step:
            set_progress(self.db, self.job, percent, matches)
            self.last_time = now
            self.last_percent = percent
        return percent
