from fastapi import HTTPException
from fastapi.responses import FileResponse

from advreplace.services.file_storage import FileStorage
from advreplace.services.jobs import JobModel, get_filename


def duration_seconds(job: JobModel) -> float | None:
    if job.time_start is None or job.time_end is None:
        return None
    return (job.time_end - job.time_start).total_seconds()


def job_file_response(job: JobModel, storage: FileStorage | None = None) -> FileResponse:
    """The finished result file of a job or, while it is running, its partial output."""
    storage = storage or FileStorage()

    path = storage.get_artifact(job.FILEAREA, job.id, get_filename(job))
    if path is not None:
        return FileResponse(path, media_type="text/csv", filename=get_filename(job))

    temp = storage.temp_path(job.FILEAREA, job.id)
    if job.status == "running" and temp.exists():
        return FileResponse(temp, media_type="text/csv", filename=get_filename(job, temp=True))

    raise HTTPException(status_code=404, detail="No result file for this job")
