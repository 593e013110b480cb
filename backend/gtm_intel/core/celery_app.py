from celery import Celery

from .config import get_settings
from .logging import configure_logging

settings = get_settings()
configure_logging()

celery_app = Celery(
    "gtm_intel",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_routes={"gtm_intel.services.pipeline.tasks.run_pipeline": {"queue": "pipelines"}},
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # A pipeline that crashed mid-phase must not be re-run by a redelivery
    task_acks_late=False,
    imports=("gtm_intel.services.pipeline.tasks",),
)
