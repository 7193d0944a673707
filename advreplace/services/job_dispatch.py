from __future__ import annotations

from advreplace.models.file_search import FileSearch
from advreplace.models.search import Search
from advreplace.services.jobs import JobModel
from advreplace.worker import tasks as worker_tasks

# Job record type -> Celery task object
JOB_MODEL_TO_TASK = {
    Search: worker_tasks.search_db,
    FileSearch: worker_tasks.file_search,
}


def queue_task(job: JobModel):
    """
    Enqueue the run of a job through the task object (.apply_async) so ENV=test eager mode works.
    Returns the celery result object (EagerResult or AsyncResult).
    """
    task = JOB_MODEL_TO_TASK.get(type(job))
    if not task:
        raise ValueError(f"No task for job type: {type(job).__name__}")
    return task.apply_async(args=[job.id])
