"""
Celery configuration for the image pipeline worker.

Loaded by `celery_app.config_from_object("celeryconfig")` in imagepipe/tasks/__init__.py.
Broker/result-backend URLs come from environment variables,
defaulting to localhost for local dev.
"""

import os

# ═══════════════════════════════════════════════════════════
#  Broker & Result Backend
# ═══════════════════════════════════════════════════════════

broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

# ═══════════════════════════════════════════════════════════
#  Serialization — JSON only
# ═══════════════════════════════════════════════════════════

task_serializer = "json"
result_serializer = "json"
accept_content = ["json"]

timezone = "UTC"
enable_utc = True

# ═══════════════════════════════════════════════════════════
#  Task Execution
# ═══════════════════════════════════════════════════════════

task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1

# Background removal alone may poll for two minutes per file
task_soft_time_limit = 900
task_time_limit = 960

result_expires = 86400

# ═══════════════════════════════════════════════════════════
#  Task Routes
# ═══════════════════════════════════════════════════════════
#   celery -A imagepipe.tasks worker -Q pipeline
#   celery -A imagepipe.tasks worker -Q default
#   celery -A imagepipe.tasks beat

task_routes = {
    "imagepipe.tasks.processing_tasks.*": {"queue": "pipeline"},
    "imagepipe.tasks.maintenance_tasks.*": {"queue": "default"},
}

task_default_queue = "default"

# ═══════════════════════════════════════════════════════════
#  Beat Schedule (periodic tasks)
# ═══════════════════════════════════════════════════════════

beat_schedule = {
    "cleanup-old-uploads": {
        "task": "imagepipe.tasks.maintenance_tasks.cleanup_old_uploads",
        "schedule": 3600.0,
    },
}
