"""
Celery tasks — upload directory housekeeping.
"""

import structlog

from imagepipe.core.config import settings
from imagepipe.factory import build_storage
from imagepipe.tasks import celery_app

logger = structlog.get_logger("tasks.maintenance")


@celery_app.task(bind=True, name="imagepipe.tasks.maintenance_tasks.cleanup_old_uploads")
def cleanup_old_uploads(self, max_age_seconds: int | None = None):
    """Delete stored uploads and results older than FILE_MAX_AGE_SECONDS."""
    max_age = settings.FILE_MAX_AGE_SECONDS if max_age_seconds is None else max_age_seconds
    task_log = logger.bind(task_id=self.request.id, max_age_seconds=max_age)

    task_log.info("Upload cleanup started")
    counts = build_storage(settings).cleanup_old_files(max_age)
    task_log.info("Upload cleanup task finished", deleted=counts["deleted"], errors=counts["errors"])
    return counts
