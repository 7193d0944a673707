import os
from pathlib import Path

from celery import Celery

from advreplace.core.celery_settings import test_env_overrides

# Workers are often started without the shell environment; read .env as the API does
try:
    from dotenv import load_dotenv

    env_path = Path(__file__).resolve().parents[2] / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
except Exception:
    pass


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v and v.strip() else default


BROKER_URL = _env("CELERY_BROKER_URL") or _env("REDIS_URL") or "redis://localhost:6379/0"
RESULT_BACKEND = _env("CELERY_RESULT_BACKEND") or BROKER_URL

celery_app = Celery(
    "advreplace",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
)

celery_app.autodiscover_tasks(["advreplace.worker"])

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    task_track_started=True,
    enable_utc=True,
    timezone="UTC",
    worker_prefetch_multiplier=1,
    **test_env_overrides(),
)

__all__ = ["celery_app"]
