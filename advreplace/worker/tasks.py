import logging

from sqlalchemy.orm import Session

from advreplace.db.session import SessionLocal
from advreplace.models.file_search import FileSearch
from advreplace.models.search import Search
from advreplace.services.db_search import search_db as run_search_db
from advreplace.services.file_search import search_files
from advreplace.services.jobs import fail_job, get_job
from advreplace.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="advreplace.search_db")
def search_db(search_id: int) -> dict:
    db: Session = SessionLocal()
    try:
        job = get_job(db, Search, search_id)
        if job is None:
            # Deleted before the worker picked it up
            logger.info("Search %s no longer exists, nothing to do", search_id)
            return {"ok": False, "search_id": search_id}
        matches = run_search_db(db, job)
        return {"ok": True, "search_id": search_id, "matches": matches}
    except Exception as e:
        logger.exception("Search %s failed", search_id)
        fail_job(db, Search, search_id, str(e))
        raise
    finally:
        db.close()


@celery_app.task(name="advreplace.file_search")
def file_search(file_search_id: int) -> dict:
    db: Session = SessionLocal()
    try:
        job = get_job(db, FileSearch, file_search_id)
        if job is None:
            logger.info("File search %s no longer exists, nothing to do", file_search_id)
            return {"ok": False, "file_search_id": file_search_id}
        matches = search_files(db, job)
        return {"ok": True, "file_search_id": file_search_id, "matches": matches}
    except Exception as e:
        logger.exception("File search %s failed", file_search_id)
        fail_job(db, FileSearch, file_search_id, str(e))
        raise
    finally:
        db.close()
