"""
Celery tasks — image processing pipeline.

Runs the PipelineEngine off the request path for files that are already
in the upload directory.
"""

import asyncio

import structlog

from imagepipe.core.config import settings
from imagepipe.core.constants import PipelineStatus
from imagepipe.factory import build_engine, build_storage
from imagepipe.pipeline.context import RequestContext, WorkingFile
from imagepipe.pipeline.errors import PipelineValidationError
from imagepipe.tasks import celery_app

logger = structlog.get_logger("tasks.processing")


@celery_app.task(bind=True, name="imagepipe.tasks.processing_tasks.run_pipeline")
def run_pipeline(self, files: list[dict], definition: list):
    """
    Run a pipeline definition over stored files.

    `files` are WorkingFile dicts as produced by WorkingFile.to_dict().
    Returns the PipelineResult as a dict; a rejected definition returns
    a FAILED status with the validation issues.
    """
    task_log = logger.bind(task_id=self.request.id, total_files=len(files))
    task_log.info("Pipeline task started")

    engine = build_engine(settings, build_storage(settings))
    request = RequestContext.build([WorkingFile(**f) for f in files], definition)

    try:
        # Run the async pipeline engine in sync Celery context
        result = asyncio.run(engine.submit(request))
    except PipelineValidationError as exc:
        task_log.warning("Pipeline task rejected definition", issues=len(exc.issues))
        return {
            "execution_id": exc.execution_id,
            "status": PipelineStatus.FAILED.value,
            "errors": [issue.to_dict() for issue in exc.issues],
        }

    task_log.info(
        "Pipeline task finished",
        execution_id=result.execution_id,
        pipeline_status=result.status,
        steps_completed=len(result.summary),
        duration_ms=result.total_duration_ms,
    )
    return result.to_dict()
